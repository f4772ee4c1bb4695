import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from station_ledger.db.base import Base

LOAN_PENDING = "pending"
LOAN_ACTIVE = "active"
LOAN_COMPLETED = "completed"
LOAN_REJECTED = "rejected"
LOAN_CANCELLED = "cancelled"

TERMINAL_STATUSES = (LOAN_COMPLETED, LOAN_REJECTED, LOAN_CANCELLED)

INSTALLMENT_PENDING = "pending"
INSTALLMENT_OVERDUE = "overdue"
INSTALLMENT_PAID = "paid"


class Loan(Base):
    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    loan_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    employee_id: Mapped[str] = mapped_column(String(64), index=True)
    purpose: Mapped[str] = mapped_column(String(256))

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(8, 4))
    duration_months: Mapped[int] = mapped_column(Integer)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    total_repayable: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    start_date: Mapped[dt.date] = mapped_column(Date)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(16), default=LOAN_PENDING, index=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approval_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(256), nullable=True)

    created_by: Mapped[str] = mapped_column(String(64))
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True, onupdate=func.now())

    installments: Mapped[list["LoanInstallment"]] = relationship(
        back_populates="loan",
        order_by="LoanInstallment.number",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def remaining_installments(self) -> int:
        return sum(1 for i in self.installments if i.status != INSTALLMENT_PAID)


class LoanInstallment(Base):
    __tablename__ = "loan_installments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    loan_id: Mapped[int] = mapped_column(ForeignKey("loans.id", ondelete="CASCADE"), index=True)
    number: Mapped[int] = mapped_column(Integer)
    due_date: Mapped[dt.date] = mapped_column(Date, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    status: Mapped[str] = mapped_column(String(16), default=INSTALLMENT_PENDING, index=True)

    paid_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    payroll_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(256), nullable=True)

    loan: Mapped[Loan] = relationship(back_populates="installments")

    __table_args__ = (
        UniqueConstraint("loan_id", "number", name="uq_loan_installments_loan_number"),
    )
