from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from station_ledger.api.deps import current_user, db, require_admin
from station_ledger.schemas.common import Envelope, ok
from station_ledger.schemas.stock import MovementOut, StockDelivery, StockSale, TankCreate, TankOut
from station_ledger.services import stock
from station_ledger.services.audit import log_event

router = APIRouter(prefix="/tanks", tags=["stock"])


@router.post("", response_model=Envelope[TankOut])
def create_tank(body: TankCreate, s: Session = Depends(db), u=Depends(require_admin)):
    tank = stock.create_tank(s, **body.model_dump())
    log_event(s, u, action="tank.create", entity_type="tank", entity_id=tank.id, details={"tank_code": tank.tank_code})
    return ok(tank)


@router.get("/{tank_id}", response_model=Envelope[TankOut])
def get_tank(tank_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return ok(stock.get_tank(s, tank_id))


@router.post("/{tank_id}/deliveries", response_model=Envelope[TankOut])
def add_stock(tank_id: int, body: StockDelivery, s: Session = Depends(db), u=Depends(current_user)):
    tank = stock.add_stock(s, tank_id, body.volume, body.cost_price, reference=body.reference, notes=body.notes)
    log_event(
        s,
        u,
        action="tank.delivery",
        entity_type="tank",
        entity_id=tank_id,
        details={"volume": str(body.volume), "cost_price": str(body.cost_price), "cost_price_after": str(tank.cost_price)},
    )
    return ok(tank)


@router.post("/{tank_id}/sales", response_model=Envelope[TankOut])
def reduce_stock(tank_id: int, body: StockSale, s: Session = Depends(db), u=Depends(current_user)):
    tank = stock.reduce_stock(s, tank_id, body.volume, reference=body.reference, notes=body.notes)
    return ok(tank)


@router.get("/{tank_id}/movements", response_model=Envelope[list[MovementOut]])
def list_movements(
    tank_id: int,
    s: Session = Depends(db),
    u=Depends(current_user),
    limit: int = Query(default=100, ge=1, le=1000),
):
    return ok(stock.list_movements(s, tank_id, limit=limit))
