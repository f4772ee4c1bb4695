from station_ledger.models.account import Account
from station_ledger.models.audit_log import AuditLog
from station_ledger.models.fuel_tank import FuelTank, StockMovement
from station_ledger.models.journal_entry import JournalEntry
from station_ledger.models.loan import Loan, LoanInstallment
from station_ledger.models.petty_cash import PettyCashAccount, PettyCashEntry
from station_ledger.models.reconciliation import AccountReconciliation

__all__ = [
    "Account",
    "AccountReconciliation",
    "AuditLog",
    "FuelTank",
    "JournalEntry",
    "Loan",
    "LoanInstallment",
    "PettyCashAccount",
    "PettyCashEntry",
    "StockMovement",
]
