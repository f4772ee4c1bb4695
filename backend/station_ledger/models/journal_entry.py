import datetime as dt
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from station_ledger.db.base import Base

CREDIT = "credit"
DEBIT = "debit"

ENTRY_TYPES = ("deposit", "withdrawal", "transfer", "interest", "charge", "other")


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="RESTRICT"), index=True)
    related_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=True
    )

    date: Mapped[dt.date] = mapped_column(Date, index=True)
    entry_type: Mapped[str] = mapped_column(String(16))
    direction: Mapped[str] = mapped_column(String(8))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    balance_after: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    category: Mapped[str] = mapped_column(String(32), default="other")
    description: Mapped[str] = mapped_column(String(256))
    reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    transfer_ref: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    reconciled: Mapped[bool] = mapped_column(Boolean, default=False)
    reconciled_at: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("account_id", "reference", name="uq_journal_entries_account_reference"),
        CheckConstraint("amount > 0", name="ck_journal_entries_amount_positive"),
        CheckConstraint("direction IN ('credit', 'debit')", name="ck_journal_entries_direction"),
    )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction == CREDIT else -self.amount


Index("ix_journal_entries_account_date", JournalEntry.account_id, JournalEntry.date)
