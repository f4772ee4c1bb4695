"""Typed ledger errors.

Every error carries a machine-readable ``code`` (returned to HTTP callers as
the ``error`` string) and the HTTP status it maps to. Callers catch by type;
the message is for logs only.
"""


class LedgerError(Exception):
    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.details = details


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"


class AccountNotFound(LedgerError):
    code = "account_not_found"
    status_code = 404


class EntryNotFound(LedgerError):
    code = "entry_not_found"
    status_code = 404


class LoanNotFound(LedgerError):
    code = "loan_not_found"
    status_code = 404


class InstallmentNotFound(LedgerError):
    code = "installment_not_found"
    status_code = 404


class TankNotFound(LedgerError):
    code = "tank_not_found"
    status_code = 404


class SameAccount(LedgerError):
    code = "same_account"


class AlreadyPaid(LedgerError):
    code = "already_paid"
    status_code = 409


class AlreadyReconciled(LedgerError):
    code = "already_reconciled"
    status_code = 409


class LimitExceeded(LedgerError):
    code = "limit_exceeded"


class InsufficientStock(LedgerError):
    code = "insufficient_stock"


class InvalidState(LedgerError):
    code = "invalid_state"
    status_code = 409


class DuplicateAccount(LedgerError):
    code = "account_exists"
    status_code = 409


class ConcurrentUpdate(LedgerError):
    code = "concurrent_update"
    status_code = 409


class InvalidAmount(LedgerError):
    code = "invalid_amount"
