import datetime as dt
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from station_ledger.db.base import Base


class FuelTank(Base):
    __tablename__ = "fuel_tanks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tank_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    station_id: Mapped[str] = mapped_column(String(64), index=True)
    fuel_type: Mapped[str] = mapped_column(String(32))

    capacity: Mapped[Decimal] = mapped_column(Numeric(14, 3))
    current_volume: Mapped[Decimal] = mapped_column(Numeric(14, 3))
    cost_price: Mapped[Decimal] = mapped_column(Numeric(14, 4))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    last_stock_update: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __mapper_args__ = {"version_id_col": version}

    @property
    def stock_value(self) -> Decimal:
        return self.current_volume * self.cost_price


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tank_id: Mapped[int] = mapped_column(ForeignKey("fuel_tanks.id", ondelete="CASCADE"), index=True)
    movement_type: Mapped[str] = mapped_column(String(16))
    volume: Mapped[Decimal] = mapped_column(Numeric(14, 3))
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    volume_after: Mapped[Decimal] = mapped_column(Numeric(14, 3))
    cost_price_after: Mapped[Decimal] = mapped_column(Numeric(14, 4))
    reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())
