import datetime as dt
from decimal import Decimal

from pydantic import BaseModel


class ReconcileIn(BaseModel):
    statement_balance: Decimal
    as_of: dt.date | None = None


class ReconcileEntriesIn(BaseModel):
    entry_ids: list[int]
    reconciled_on: dt.date | None = None


class ReconciliationOut(BaseModel):
    account_id: int
    as_of: dt.date
    statement_balance: Decimal
    system_balance: Decimal
    difference: Decimal
    balanced: bool

    class Config:
        from_attributes = True


class ReconciliationSummaryOut(BaseModel):
    account_id: int
    opening_balance: Decimal
    current_balance: Decimal
    reconciled_credits: Decimal
    reconciled_debits: Decimal
    unreconciled_credits: Decimal
    unreconciled_debits: Decimal
    reconciled_balance: Decimal
    expected_balance: Decimal
    discrepancy: Decimal
    reconciled_count: int
    unreconciled_count: int
    last_reconciled_at: dt.date | None
    integrity_warning: bool

    class Config:
        from_attributes = True


class ReconciliationHistoryOut(BaseModel):
    id: int
    account_id: int
    as_of: dt.date
    statement_balance: Decimal
    system_balance: Decimal
    difference: Decimal
    performed_by: str | None
    created_at: dt.datetime | None = None

    class Config:
        from_attributes = True
