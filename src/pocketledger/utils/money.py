"""Decimal money helpers.

All ledger arithmetic goes through these functions so that every stored
amount is quantized the same way (half-up at the currency's precision).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, str, float]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_to_precision(amount: Number, precision: int = 2) -> Decimal:
    """Round an amount half-up to ``precision`` decimal places."""
    quantum = Decimal(1).scaleb(-precision)
    return to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def get_epsilon(precision: int = 2) -> Decimal:
    """Return the comparison tolerance for a precision: 10^-(precision+1)."""
    return Decimal(1).scaleb(-(precision + 1))


def amounts_are_equal(a: Number, b: Number, precision: int = 2) -> bool:
    """Return True if two amounts differ by less than the precision's epsilon."""
    return abs(to_decimal(a) - to_decimal(b)) < get_epsilon(precision)


def safe_add(a: Number, b: Number, precision: int = 2) -> Decimal:
    return round_to_precision(to_decimal(a) + to_decimal(b), precision)


def safe_subtract(a: Number, b: Number, precision: int = 2) -> Decimal:
    return round_to_precision(to_decimal(a) - to_decimal(b), precision)
