"""Currency precision lookups."""

from typing import Optional

from pocketledger.database.base import Database
from pocketledger.domain.constants import DEFAULT_PRECISION, PRECISION_OVERRIDES
from pocketledger.domain.entities import Currency
from pocketledger.domain.errors import ValidationError


def normalize_currency_code(code: str) -> str:
    """Upper-case and validate a three letter currency code.

    Raises:
        ValidationError: If the code is not three letters
    """
    normalized = (code or "").strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValidationError(f"Invalid currency code '{code}'")
    return normalized


class CurrencyService:
    """Service for currency metadata, chiefly decimal precision."""

    def __init__(self, db: Database):
        """Initialize currency service.

        Args:
            db: Database instance
        """
        self.db = db
        self._precision_cache: dict[str, int] = {}

    def get_precision(self, currency_code: Optional[str]) -> int:
        """Return the number of decimal places for a currency.

        Unknown currencies fall back to a small override table and then to
        two decimal places.
        """
        if not currency_code:
            return DEFAULT_PRECISION
        code = currency_code.upper()
        if code in self._precision_cache:
            return self._precision_cache[code]

        currency = self.db.get_currency(code)
        if currency is not None:
            precision = currency.precision
        else:
            precision = PRECISION_OVERRIDES.get(code, DEFAULT_PRECISION)
        self._precision_cache[code] = precision
        return precision

    def get_currency(self, currency_code: str) -> Optional[Currency]:
        return self.db.get_currency(currency_code.upper())

    def list_currencies(self) -> list[Currency]:
        return self.db.list_currencies()

    def ensure_currency(
        self, code: str, name: str, symbol: Optional[str] = None, precision: int = DEFAULT_PRECISION
    ) -> Currency:
        """Create or update a currency row.

        Raises:
            ValidationError: If the code or precision is invalid
        """
        code = normalize_currency_code(code)
        if precision < 0 or precision > 8:
            raise ValidationError(f"Invalid precision {precision} for {code}")
        self.db.upsert_currency(code=code, name=name, symbol=symbol or code, precision=precision)
        self._precision_cache.pop(code, None)
        return self.db.get_currency(code)
