from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

CENTAVO = Decimal("0.01")


def money(value: Any) -> Decimal:
    """
    Redondeo contable (half-up) a 2 decimales. Acepta float/str/Decimal/None.
    """
    if value is None:
        return Decimal("0.00")
    try:
        q = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        q = Decimal("0")
    return q.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def as_date(d: Any) -> Optional[date]:
    if not d:
        return None
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    try:
        return datetime.fromisoformat(str(d)).date()
    except ValueError:
        return None
