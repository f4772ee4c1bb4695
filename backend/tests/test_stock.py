from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from station_ledger.core.errors import InsufficientStock, InvalidAmount, LimitExceeded, TankNotFound
from station_ledger.services import stock


@pytest.fixture()
def tank(session):
    return stock.create_tank(
        session,
        tank_code="T1-PETROL92",
        station_id="ST-001",
        fuel_type="petrol_92",
        capacity="20000",
        current_volume="1000",
        cost_price="300",
    )


def test_delivery_recomputes_weighted_average_cost(session, tank):
    t = stock.add_stock(session, tank.id, "3000", "320", reference="GRN-1")

    assert t.current_volume == Decimal("4000.000")
    assert t.cost_price == Decimal("315.0000")
    assert t.stock_value == Decimal("4000") * Decimal("315")


def test_sale_keeps_cost_price(session, tank):
    stock.add_stock(session, tank.id, "1000", "310")
    t = stock.reduce_stock(session, tank.id, "500")

    assert t.current_volume == Decimal("1500.000")
    assert t.cost_price == Decimal("305.0000")

    moves = stock.list_movements(session, tank.id)
    assert [m.movement_type for m in moves] == ["sale", "delivery"]
    assert moves[0].volume_after == Decimal("1500.000")


def test_capacity_and_stock_limits(session, tank):
    with pytest.raises(LimitExceeded):
        stock.add_stock(session, tank.id, "19000.001", "300")
    with pytest.raises(InsufficientStock):
        stock.reduce_stock(session, tank.id, "1000.5")
    with pytest.raises(InvalidAmount):
        stock.add_stock(session, tank.id, "10", "0")
    with pytest.raises(TankNotFound):
        stock.reduce_stock(session, 404, "1")

    t = stock.get_tank(session, tank.id)
    assert t.current_volume == Decimal("1000.000")
    assert stock.list_movements(session, tank.id) == []


def test_weighted_cost_from_empty_tank():
    assert stock.weighted_cost(Decimal("0"), Decimal("0"), Decimal("500"), Decimal("412.5")) == Decimal("412.5000")


def test_movements_stamp_last_stock_update_in_utc(session, tank):
    assert tank.last_stock_update is None
    before = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=1)

    t = stock.add_stock(session, tank.id, "100", "300")
    delivered = t.last_stock_update
    assert delivered.tzinfo is None
    assert delivered >= before

    t = stock.reduce_stock(session, tank.id, "50")
    assert t.last_stock_update >= delivered
