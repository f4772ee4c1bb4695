"""Fuel tank stock with weighted-average cost.

The cost price is recomputed in the same locked unit that changes the volume,
so two deliveries racing on one tank cannot both average against the old
volume.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from station_ledger.core.errors import InsufficientStock, InvalidAmount, InvalidState, LimitExceeded, TankNotFound
from station_ledger.models.fuel_tank import FuelTank, StockMovement
from station_ledger.services.locks import for_update, run_unit, tank_key
from station_ledger.utils.dates import utc_now

log = logging.getLogger(__name__)

Q3 = Decimal("0.001")
Q4 = Decimal("0.0001")


def _vol(v) -> Decimal:
    return Decimal(str(v)).quantize(Q3, rounding=ROUND_HALF_UP)


def _price(v) -> Decimal:
    return Decimal(str(v)).quantize(Q4, rounding=ROUND_HALF_UP)


def weighted_cost(old_volume: Decimal, old_cost: Decimal, volume: Decimal, cost: Decimal) -> Decimal:
    total = old_volume + volume
    if total <= 0:
        return _price(cost)
    return _price((old_volume * old_cost + volume * cost) / total)


def create_tank(
    s: Session,
    *,
    tank_code: str,
    station_id: str,
    fuel_type: str,
    capacity,
    current_volume=0,
    cost_price=0,
) -> FuelTank:
    cap = _vol(capacity)
    cur = _vol(current_volume)
    if cap <= 0:
        raise InvalidAmount("capacity must be greater than zero", capacity=str(capacity))
    if cur < 0 or cur > cap:
        raise LimitExceeded("initial volume must be within capacity", capacity=str(cap), volume=str(cur))
    exists = s.execute(select(FuelTank.id).where(FuelTank.tank_code == tank_code)).scalar_one_or_none()
    if exists is not None:
        raise InvalidState(f"tank {tank_code} already exists", tank_id=exists)

    tank = FuelTank(
        tank_code=tank_code,
        station_id=station_id,
        fuel_type=fuel_type,
        capacity=cap,
        current_volume=cur,
        cost_price=_price(cost_price),
    )
    s.add(tank)
    s.commit()
    s.refresh(tank)
    return tank


def get_tank(s: Session, tank_id: int) -> FuelTank:
    tank = s.get(FuelTank, tank_id)
    if tank is None:
        raise TankNotFound(f"tank {tank_id} not found", tank_id=tank_id)
    return tank


def _locked(s: Session, tank_id: int) -> FuelTank:
    tank = for_update(s, FuelTank, FuelTank.id == tank_id)
    if tank is None:
        raise TankNotFound(f"tank {tank_id} not found", tank_id=tank_id)
    return tank


def add_stock(s: Session, tank_id: int, volume, cost_price, *, reference: str | None = None, notes: str | None = None) -> FuelTank:
    vol = _vol(volume)
    cost = _price(cost_price)
    if vol <= 0 or cost <= 0:
        raise InvalidAmount("volume and cost price must be greater than zero", volume=str(volume), cost_price=str(cost_price))

    def _do() -> FuelTank:
        tank = _locked(s, tank_id)
        old_vol = Decimal(str(tank.current_volume))
        old_cost = Decimal(str(tank.cost_price))
        if old_vol + vol > tank.capacity:
            raise LimitExceeded(
                "delivery would exceed tank capacity",
                tank_id=tank_id,
                capacity=str(tank.capacity),
                current_volume=str(old_vol),
                volume=str(vol),
            )
        tank.cost_price = weighted_cost(old_vol, old_cost, vol, cost)
        tank.current_volume = old_vol + vol
        tank.last_stock_update = utc_now()
        s.add(
            StockMovement(
                tank_id=tank_id,
                movement_type="delivery",
                volume=vol,
                cost_price=cost,
                volume_after=tank.current_volume,
                cost_price_after=tank.cost_price,
                reference=reference,
                notes=notes,
            )
        )
        return tank

    tank = run_unit(s, [tank_key(tank_id)], _do, label="add_stock")
    log.info(
        "stock added",
        extra={"tank_id": tank_id, "volume": str(vol), "cost_price_after": str(tank.cost_price)},
    )
    return tank


def reduce_stock(s: Session, tank_id: int, volume, *, reference: str | None = None, notes: str | None = None) -> FuelTank:
    vol = _vol(volume)
    if vol <= 0:
        raise InvalidAmount("volume must be greater than zero", volume=str(volume))

    def _do() -> FuelTank:
        tank = _locked(s, tank_id)
        old_vol = Decimal(str(tank.current_volume))
        if vol > old_vol:
            raise InsufficientStock(
                "not enough fuel in tank",
                tank_id=tank_id,
                available=str(old_vol),
                requested=str(vol),
            )
        tank.current_volume = old_vol - vol
        tank.last_stock_update = utc_now()
        s.add(
            StockMovement(
                tank_id=tank_id,
                movement_type="sale",
                volume=vol,
                cost_price=None,
                volume_after=tank.current_volume,
                cost_price_after=tank.cost_price,
                reference=reference,
                notes=notes,
            )
        )
        return tank

    tank = run_unit(s, [tank_key(tank_id)], _do, label="reduce_stock")
    log.info("stock reduced", extra={"tank_id": tank_id, "volume": str(vol), "volume_after": str(tank.current_volume)})
    return tank


def list_movements(s: Session, tank_id: int, limit: int = 100) -> list[StockMovement]:
    get_tank(s, tank_id)
    return list(
        s.execute(
            select(StockMovement)
            .where(StockMovement.tank_id == tank_id)
            .order_by(StockMovement.id.desc())
            .limit(limit)
        )
        .scalars()
        .all()
    )
