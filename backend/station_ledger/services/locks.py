"""Per-entity serialization for ledger writes.

A unit of work holds an in-process lock for every entity it touches from its
first read until commit, reads rows with ``SELECT ... FOR UPDATE`` where the
database supports it, and relies on the ``version`` column of the mutated rows
to detect writers in other processes. A version conflict rolls the whole unit
back and runs it again from the start.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Hashable, Iterable, Iterator, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from station_ledger.core.config import settings
from station_ledger.core.errors import ConcurrentUpdate, LedgerError

log = logging.getLogger(__name__)

T = TypeVar("T")

LockKey = tuple[str, Hashable]

_lock = threading.Lock()
# key -> [lock, number of threads holding or waiting on it]
_entity_locks: dict[LockKey, list] = {}


def account_key(account_id: int) -> LockKey:
    return ("account", int(account_id))


def petty_cash_key(station_id: str) -> LockKey:
    return ("petty_cash", str(station_id))


def loan_key(loan_id: int) -> LockKey:
    return ("loan", int(loan_id))


def employee_key(employee_id: str) -> LockKey:
    return ("employee", str(employee_id))


def tank_key(tank_id: int) -> LockKey:
    return ("tank", int(tank_id))


def _checkout(key: LockKey) -> threading.RLock:
    with _lock:
        slot = _entity_locks.get(key)
        if slot is None:
            slot = [threading.RLock(), 0]
            _entity_locks[key] = slot
        slot[1] += 1
        return slot[0]


def _checkin(key: LockKey) -> None:
    with _lock:
        slot = _entity_locks[key]
        slot[1] -= 1
        if slot[1] == 0:
            del _entity_locks[key]


@contextmanager
def hold(keys: Iterable[LockKey]) -> Iterator[None]:
    # fixed global order so two multi-entity units cannot deadlock
    ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
    acquired: list[tuple[LockKey, threading.RLock]] = []
    try:
        for key in ordered:
            lk = _checkout(key)
            try:
                lk.acquire()
            except BaseException:
                _checkin(key)
                raise
            acquired.append((key, lk))
        yield
    finally:
        for key, lk in reversed(acquired):
            lk.release()
            _checkin(key)


def for_update(s: Session, model, *criteria):
    return (
        s.execute(
            select(model)
            .where(*criteria)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )


def run_unit(s: Session, keys: Iterable[LockKey], fn: Callable[[], T], *, label: str) -> T:
    """Run `fn` and commit it as one all-or-nothing unit while holding `keys`."""
    keys = list(keys)
    attempts = max(1, int(settings.ledger_max_retries))
    for attempt in range(1, attempts + 1):
        with hold(keys):
            try:
                result = fn()
                s.commit()
                return result
            except LedgerError:
                s.rollback()
                raise
            except StaleDataError:
                s.rollback()
                log.warning(
                    "ledger unit hit a concurrent write, retrying",
                    extra={"unit": label, "attempt": attempt, "lock_keys": [list(map(str, k)) for k in keys]},
                )
            except Exception:
                s.rollback()
                log.exception(
                    "ledger unit failed and was rolled back",
                    extra={"unit": label, "lock_keys": [list(map(str, k)) for k in keys]},
                )
                raise

    raise ConcurrentUpdate(f"{label}: gave up after {attempts} attempts", unit=label)
