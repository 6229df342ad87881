from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

CENT = Decimal("0.01")

def to_cents(amount: Union[str, int, Decimal]) -> int:
    """
    Converts a display amount ("1245.00", Decimal("1785.5")) to integer cents.
    Floats are rejected; they are how cents got lost in the first place.
    """
    if isinstance(amount, float):
        raise TypeError("Use str or Decimal amounts, not float")

    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise ValueError(f"Invalid amount '{amount}'")

    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def format_cents(cents: int) -> str:
    """
    Formats integer cents as a two-decimal display string: 303050 -> "3030.50".
    """
    return str((Decimal(cents) / 100).quantize(CENT))

def ensure_utc(moment: datetime) -> datetime:
    """
    Naive datetimes coming back from the database are UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)

def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days
