"""Conversion between major units (rupees) and gateway minor units (paise).

Rounding rule: ``to_minor_units`` rounds half away from zero
(``ROUND_HALF_UP`` on ``Decimal``), so 0.005 becomes 1 paisa. Floats are
converted through ``str()`` first so their binary representation never
leaks into the amount.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from .errors import InvalidAmount

MINOR_UNIT_FACTOR = 100
MINOR_UNIT_QUANT = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "INR": "₹",
}

MajorAmount = Union[Decimal, int, float, str]


def _as_decimal(value: MajorAmount) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmount(f"Invalid amount: {value!r}") from exc


def to_minor_units(major_amount: MajorAmount) -> int:
    """Convert a positive major-unit amount to integer minor units.

    Raises:
        InvalidAmount: If the amount is not a finite positive number, or
            rounds to zero minor units.
    """
    value = _as_decimal(major_amount)
    if not value.is_finite() or value <= 0:
        raise InvalidAmount(f"Amount must be a positive finite number, got {major_amount!r}")
    minor = (value * MINOR_UNIT_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if minor <= 0:
        raise InvalidAmount(f"Amount {major_amount!r} is below the smallest currency unit")
    return int(minor)


def to_major_units(minor_amount: int) -> Decimal:
    """Exact inverse of ``to_minor_units`` for integer minor amounts."""
    if isinstance(minor_amount, bool) or not isinstance(minor_amount, int):
        raise InvalidAmount(f"Minor amount must be an integer, got {minor_amount!r}")
    return (Decimal(minor_amount) / MINOR_UNIT_FACTOR).quantize(MINOR_UNIT_QUANT)


def _group_indian(digits: str) -> str:
    # 12345678 -> 1,23,45,678
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def _group_thousands(digits: str) -> str:
    return f"{int(digits):,}"


def format_for_display(minor_amount: int, currency: str = "INR") -> str:
    """Format a minor-unit amount for people to read.

    Presentation only; never compare the returned string.
    """
    major = to_major_units(minor_amount)
    sign = "-" if major < 0 else ""
    whole, _, fraction = f"{abs(major):.2f}".partition(".")
    currency = currency.upper()
    if currency == "INR":
        return f"{sign}{CURRENCY_SYMBOLS['INR']}{_group_indian(whole)}.{fraction}"
    symbol = CURRENCY_SYMBOLS.get(currency)
    grouped = _group_thousands(whole)
    if symbol:
        return f"{sign}{symbol}{grouped}.{fraction}"
    return f"{sign}{currency} {grouped}.{fraction}"
