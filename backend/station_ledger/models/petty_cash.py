import datetime as dt
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from station_ledger.db.base import Base

PENDING = "Pending"
APPROVED = "Approved"
REJECTED = "Rejected"

WITHDRAWAL = "withdrawal"
REPLENISHMENT = "replenishment"


class PettyCashAccount(Base):
    __tablename__ = "petty_cash_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    station_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    min_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    max_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    last_replenishment_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    last_replenishment_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True, onupdate=func.now())

    __table_args__ = (CheckConstraint("current_balance >= 0", name="ck_petty_cash_balance_non_negative"),)
    __mapper_args__ = {"version_id_col": version}

    @property
    def needs_replenishment(self) -> bool:
        return self.current_balance < self.min_limit

    @property
    def recommended_replenishment(self) -> Decimal:
        gap = self.max_limit - self.current_balance
        return gap if gap > 0 else Decimal("0")


class PettyCashEntry(Base):
    __tablename__ = "petty_cash_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    station_id: Mapped[str] = mapped_column(String(64), index=True)

    entry_type: Mapped[str] = mapped_column(String(16))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    date: Mapped[dt.date] = mapped_column(Date)
    description: Mapped[str] = mapped_column(String(256))
    category: Mapped[str] = mapped_column(String(32))
    notes: Mapped[str] = mapped_column(String(512), default="")

    approval_status: Mapped[str] = mapped_column(String(16), default=PENDING)
    requested_by: Mapped[str] = mapped_column(String(64))
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    bank_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=True)
    bank_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id", ondelete="RESTRICT"), nullable=True
    )

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True, onupdate=func.now())


Index("ix_petty_cash_entries_station_date", PettyCashEntry.station_id, PettyCashEntry.date)
Index("ix_petty_cash_entries_status", PettyCashEntry.approval_status)
