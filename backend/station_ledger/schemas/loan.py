import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class LoanApply(BaseModel):
    employee_id: str
    amount: Decimal
    purpose: str
    duration_months: int = Field(ge=1, le=120)
    start_date: dt.date | None = None
    interest_rate: Decimal | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal):
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be a positive number")
        return v


class LoanReschedule(BaseModel):
    amount: Decimal | None = None
    duration_months: int | None = Field(default=None, ge=1, le=120)
    interest_rate: Decimal | None = None
    start_date: dt.date | None = None
    purpose: str | None = None


class ReasonIn(BaseModel):
    reason: str | None = None


class PaymentIn(BaseModel):
    paid_on: dt.date | None = None
    payroll_ref: str | None = None
    notes: str | None = None


class ScheduleIn(BaseModel):
    principal: Decimal
    duration_months: int = Field(ge=1, le=120)
    interest_rate: Decimal | None = None
    start_date: dt.date


class ScheduleRowOut(BaseModel):
    number: int
    due_date: dt.date
    amount: Decimal

    class Config:
        from_attributes = True


class ScheduleOut(BaseModel):
    principal: Decimal
    interest_rate: Decimal
    duration_months: int
    installment_amount: Decimal
    total_repayable: Decimal
    rows: list[ScheduleRowOut]

    class Config:
        from_attributes = True


class InstallmentOut(BaseModel):
    number: int
    due_date: dt.date
    amount: Decimal
    status: str
    paid_date: dt.date | None
    payroll_ref: str | None
    notes: str | None

    class Config:
        from_attributes = True


class LoanOut(BaseModel):
    id: int
    loan_code: str
    employee_id: str
    purpose: str
    amount: Decimal
    interest_rate: Decimal
    duration_months: int
    installment_amount: Decimal
    total_repayable: Decimal
    remaining_amount: Decimal
    remaining_installments: int
    start_date: dt.date
    end_date: dt.date | None
    status: str
    approved_by: str | None
    approval_date: dt.date | None
    rejection_reason: str | None
    installments: list[InstallmentOut] = []

    class Config:
        from_attributes = True


class DeductionOut(BaseModel):
    loan_id: int
    loan_code: str
    installment_number: int
    due_date: dt.date
    amount: Decimal
    status: str


class OverdueInstallmentOut(BaseModel):
    loan_id: int
    installment_number: int
    due_date: dt.date
    amount: Decimal


class EmployeeLoanSummaryOut(BaseModel):
    employee_id: str
    loan_count: int
    status_counts: dict[str, int]
    total_borrowed: Decimal
    outstanding_amount: Decimal
    overdue_installments: list[OverdueInstallmentOut]
    overdue_amount: Decimal


class SweepOut(BaseModel):
    as_of: dt.date
    marked_overdue: int
