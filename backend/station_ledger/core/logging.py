"""Process-wide logging setup."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from station_ledger.core.config import settings


class LedgerJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "station-ledger"


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    use_json = settings.log_json if json_output is None else json_output
    if use_json:
        handler.setFormatter(LedgerJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
