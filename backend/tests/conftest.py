import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("OVERDUE_SWEEP_ENABLED", "false")

from decimal import Decimal, getcontext

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from station_ledger.db.base import Base
import station_ledger.models  # noqa: F401
from station_ledger.services import ledger

getcontext().prec = 50


@pytest.fixture()
def engine(tmp_path):
    # a file database so worker threads see each other's commits
    eng = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def make_account(session):
    counter = {"n": 0}

    def _make(opening="0", **kw):
        counter["n"] += 1
        kw.setdefault("bank_name", "Commercial Bank")
        kw.setdefault("account_number", f"ACC-{counter['n']:04d}")
        return ledger.create_account(session, opening_balance=Decimal(str(opening)), **kw)

    return _make


def dec(v) -> Decimal:
    return Decimal(str(v))
