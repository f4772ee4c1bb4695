from datetime import date
from uuid import uuid4


def generate_code(prefix: str, on: date | None = None) -> str:
    day = (on or date.today()).strftime("%Y%m%d")
    return f"{prefix}{day}{uuid4().hex[:6].upper()}"
