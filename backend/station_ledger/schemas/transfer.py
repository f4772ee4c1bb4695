import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, field_validator

from station_ledger.schemas.journal import EntryOut


class TransferCreate(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: Decimal
    description: str = "Account transfer"
    entry_date: dt.date | None = None
    reference: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal):
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be a positive number")
        return v


class TransferOut(BaseModel):
    transfer_ref: str
    debit: EntryOut
    credit: EntryOut

    class Config:
        from_attributes = True
