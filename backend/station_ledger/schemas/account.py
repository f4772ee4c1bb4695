import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, field_validator


class AccountCreate(BaseModel):
    bank_name: str
    account_number: str
    opening_balance: Decimal = Decimal("0")
    currency: str | None = None
    account_type: str = "current"
    branch: str | None = None
    description: str | None = None
    station_id: str | None = None

    @field_validator("bank_name", "account_number")
    @classmethod
    def required_text(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class AccountUpdate(BaseModel):
    bank_name: str | None = None
    account_type: str | None = None
    branch: str | None = None
    description: str | None = None
    station_id: str | None = None


class AccountOut(BaseModel):
    id: int
    bank_name: str
    account_number: str
    account_type: str
    branch: str | None
    currency: str
    description: str | None
    station_id: str | None
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    last_reconciled_at: dt.date | None
    created_at: dt.datetime | None = None

    class Config:
        from_attributes = True


class BalanceCheckOut(BaseModel):
    account_id: int
    recorded_balance: Decimal
    journal_balance: Decimal
    difference: Decimal
    entry_count: int
    chain_breaks: list[int]
    consistent: bool

    class Config:
        from_attributes = True
