"""Parsing of user-entered amounts and exchange rates."""

from decimal import Decimal, InvalidOperation
import re

_SYMBOLS = re.compile(r"[$€£¥₹₩]")
_TRAILING_CODE = re.compile(r"\s*[A-Za-z]{3}$")


def _clean(text: str) -> tuple[str, bool]:
    text = text.strip()
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    text = _TRAILING_CODE.sub("", _SYMBOLS.sub("", text))
    return text.replace(",", "").strip(), negative


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Accepts plain numbers, thousands separators, a leading currency symbol,
    a trailing ISO code ("85.00 EUR") and accounting-style negatives
    ("(123.45)").

    Raises:
        ValueError: If the string is empty or not a finite number
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text, negative = _clean(amount_str)
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'") from None
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str.strip()}'")
    return -amount if negative else amount


def parse_rate(rate_str: str) -> Decimal:
    """Parse an exchange rate; it must be a positive number."""
    try:
        rate = parse_amount(rate_str)
    except ValueError:
        raise ValueError(f"Invalid exchange rate '{rate_str}'") from None
    if rate <= 0:
        raise ValueError(f"Exchange rate must be positive, got {rate_str}")
    return rate
