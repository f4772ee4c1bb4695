import datetime as dt
from decimal import Decimal

from pydantic import BaseModel


class TankCreate(BaseModel):
    tank_code: str
    station_id: str
    fuel_type: str
    capacity: Decimal
    current_volume: Decimal = Decimal("0")
    cost_price: Decimal = Decimal("0")


class StockDelivery(BaseModel):
    volume: Decimal
    cost_price: Decimal
    reference: str | None = None
    notes: str | None = None


class StockSale(BaseModel):
    volume: Decimal
    reference: str | None = None
    notes: str | None = None


class TankOut(BaseModel):
    id: int
    tank_code: str
    station_id: str
    fuel_type: str
    capacity: Decimal
    current_volume: Decimal
    cost_price: Decimal
    stock_value: Decimal
    last_stock_update: dt.datetime | None

    class Config:
        from_attributes = True


class MovementOut(BaseModel):
    id: int
    tank_id: int
    movement_type: str
    volume: Decimal
    cost_price: Decimal | None
    volume_after: Decimal
    cost_price_after: Decimal
    reference: str | None
    notes: str | None
    created_at: dt.datetime | None = None

    class Config:
        from_attributes = True
