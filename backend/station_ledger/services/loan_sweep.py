from __future__ import annotations

import asyncio
import logging
from datetime import date

from station_ledger.core.config import settings
from station_ledger.db.session import SessionLocal
from station_ledger.services.loans import sweep_overdue
from station_ledger.utils.dates import today_local


def sweep_once(as_of: date | None = None) -> int:
    with SessionLocal() as s:
        return sweep_overdue(s, as_of or today_local())


async def overdue_sweep_loop() -> None:
    if not settings.overdue_sweep_enabled:
        return

    interval = int(settings.overdue_sweep_interval_seconds or 3600)
    await asyncio.sleep(3)

    while True:
        try:
            await asyncio.to_thread(sweep_once)
        except Exception as e:
            logging.exception("overdue sweep failed", exc_info=e)

        await asyncio.sleep(max(60, interval))
