import calendar
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from station_ledger.core.config import settings


def now_local() -> datetime:
    return datetime.now(tz=ZoneInfo(settings.station_timezone))


def today_local() -> date:
    return now_local().date()


def utc_now() -> datetime:
    """Naive UTC, matching the `DateTime` columns and their `func.now()` defaults."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(d: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the last day of shorter months."""
    idx = d.month - 1 + months
    year = d.year + idx // 12
    month = idx % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
