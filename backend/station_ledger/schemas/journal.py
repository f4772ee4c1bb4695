import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, field_validator

EntryType = Literal["deposit", "withdrawal", "transfer", "interest", "charge", "other"]
Direction = Literal["credit", "debit"]


class EntryCreate(BaseModel):
    entry_type: EntryType
    amount: Decimal
    description: str
    direction: Direction | None = None
    category: str = "other"
    entry_date: dt.date | None = None
    reference: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal):
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be a positive number")
        return v

    @field_validator("reference")
    @classmethod
    def reference_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        return v or None


class EntryOut(BaseModel):
    id: int
    account_id: int
    related_account_id: int | None
    date: dt.date
    entry_type: str
    direction: str
    amount: Decimal
    balance_after: Decimal
    category: str
    description: str
    reference: str | None
    transfer_ref: str | None
    reconciled: bool
    reconciled_at: dt.date | None
    created_by: str | None

    class Config:
        from_attributes = True


class StatementOut(BaseModel):
    account_id: int
    start: dt.date
    end: dt.date
    opening_balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    closing_balance: Decimal
    entries: list[EntryOut]
