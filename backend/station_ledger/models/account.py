from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from station_ledger.db.base import Base


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bank_name: Mapped[str] = mapped_column(String(128))
    account_number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    account_type: Mapped[str] = mapped_column(String(32), default="current")
    branch: Mapped[str | None] = mapped_column(String(128), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="LKR")
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    station_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    opening_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_reconciled_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime, nullable=True, onupdate=func.now())

    __table_args__ = (CheckConstraint("current_balance >= 0", name="ck_accounts_balance_non_negative"),)
    __mapper_args__ = {"version_id_col": version}
