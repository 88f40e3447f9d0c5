# app/utils/money.py
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Round to currency precision (2 dp, half-up)."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value) -> int:
    # bramka liczy w najmniejszej jednostce (kobo)
    return int(to_money(value) * 100)


def as_utc(value: datetime | None) -> datetime | None:
    # sqlite zwraca naiwne daty, traktujemy je jako UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
