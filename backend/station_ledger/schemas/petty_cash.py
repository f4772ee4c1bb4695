import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, field_validator


class _AmountIn(BaseModel):
    amount: Decimal

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal):
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be a positive number")
        return v


class WithdrawalCreate(_AmountIn):
    description: str
    category: str = "other"
    entry_date: dt.date | None = None
    notes: str = ""


class ReplenishmentCreate(_AmountIn):
    description: str = "Petty cash replenishment"
    bank_account_id: int | None = None
    entry_date: dt.date | None = None
    notes: str = ""


class EntryUpdate(BaseModel):
    amount: Decimal | None = None
    description: str | None = None
    category: str | None = None
    date: dt.date | None = None
    notes: str | None = None


class RejectIn(BaseModel):
    reason: str | None = None


class LimitsIn(BaseModel):
    min_limit: Decimal
    max_limit: Decimal


class PettyCashBalanceOut(BaseModel):
    station_id: str
    current_balance: Decimal
    min_limit: Decimal
    max_limit: Decimal
    last_replenishment_amount: Decimal | None
    last_replenishment_date: dt.date | None
    needs_replenishment: bool
    recommended_replenishment: Decimal
    updated_by: str | None

    class Config:
        from_attributes = True


class PettyCashEntryOut(BaseModel):
    id: int
    entry_code: str
    station_id: str
    entry_type: str
    amount: Decimal
    date: dt.date
    description: str
    category: str
    notes: str
    approval_status: str
    requested_by: str
    approved_by: str | None
    bank_account_id: int | None
    bank_entry_id: int | None

    class Config:
        from_attributes = True


class CategoryTotal(BaseModel):
    category: str
    amount: Decimal


class PettyCashSummaryOut(BaseModel):
    station_id: str
    current_balance: Decimal
    min_limit: Decimal
    max_limit: Decimal
    needs_replenishment: bool
    recommended_replenishment: Decimal
    total_withdrawals: Decimal
    total_replenishments: Decimal
    net_change: Decimal
    withdrawals_by_category: dict[str, Decimal]
    top_categories: list[CategoryTotal]
    pending_count: int
    pending_amount: Decimal
