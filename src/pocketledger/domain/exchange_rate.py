"""Exchange rate resolution.

Rates are looked up in three layers: an in-memory table per base currency,
the persistent ``exchange_rates`` cache, and finally the external provider.
A failed fetch falls back to the newest persisted rate however old it is,
since a stale rate is better than blocking a ledger entry.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

import httpx
import structlog

from pocketledger.database.base import Database
from pocketledger.domain.errors import (
    RateContentTypeError,
    RateFetchError,
    RateHTTPError,
    RatePayloadError,
    RateUnavailableError,
)
from pocketledger.utils.money import Number, to_decimal

logger = structlog.get_logger(__name__)

DEFAULT_RATE_URL = "https://open.er-api.com/v6/latest"


@dataclass(frozen=True)
class Conversion:
    """Result of converting an amount; ``converted_amount`` is not rounded."""

    rate: Decimal
    converted_amount: Decimal


class ExchangeRateResolver:
    """Resolves conversion rates between currency codes."""

    def __init__(
        self,
        db: Database,
        base_url: str = DEFAULT_RATE_URL,
        freshness: timedelta = timedelta(hours=24),
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize resolver.

        Args:
            db: Database holding the persistent rate cache
            base_url: Provider endpoint; ``/<BASE>`` is appended per request
            freshness: How long cached rates are used without refetching
            timeout: Per-request timeout in seconds
            http_client: Shared client; a short-lived one is used per request if None
            clock: Returns the current time, naive like stored dates
        """
        self.db = db
        self.base_url = base_url.rstrip("/")
        self.freshness = freshness
        self.timeout = timeout
        self.http_client = http_client
        self.clock = clock

        # base -> (effective date, {target: rate})
        self._memory: dict[str, tuple[datetime, dict[str, Decimal]]] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    def _is_fresh(self, effective_date: datetime) -> bool:
        return self.clock() - effective_date < self.freshness

    def clear_memory_cache(self) -> None:
        self._memory.clear()

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Return the rate that converts one unit of ``from_currency`` into ``to_currency``.

        Raises:
            RateUnavailableError: If no fresh, fetched or stale rate exists
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return Decimal("1")

        memory = self._memory.get(from_currency)
        if memory is not None and self._is_fresh(memory[0]) and to_currency in memory[1]:
            return memory[1][to_currency]

        cached = self.db.get_cached_rate(from_currency, to_currency)
        if cached is not None and self._is_fresh(cached.effective_date):
            self._remember(from_currency, cached.effective_date, {to_currency: cached.rate})
            logger.debug("exchange_rate_cache_hit", base=from_currency, target=to_currency)
            return cached.rate

        try:
            rates = await self.fetch_rates_for_base(from_currency)
        except RateFetchError as e:
            if cached is not None:
                logger.warning(
                    "exchange_rate_stale_fallback",
                    base=from_currency,
                    target=to_currency,
                    effective_date=cached.effective_date.isoformat(),
                    error=str(e),
                )
                return cached.rate
            raise RateUnavailableError(from_currency, to_currency, str(e)) from e

        if to_currency in rates:
            return rates[to_currency]
        if cached is not None:
            logger.warning(
                "exchange_rate_missing_from_provider",
                base=from_currency,
                target=to_currency,
            )
            return cached.rate
        raise RateUnavailableError(from_currency, to_currency, "provider has no rate for target")

    async def convert(self, amount: Number, from_currency: str, to_currency: str) -> Conversion:
        """Convert an amount; rounding is left to the caller."""
        rate = await self.get_rate(from_currency, to_currency)
        return Conversion(rate=rate, converted_amount=to_decimal(amount) * rate)

    async def fetch_rates_for_base(self, base: str) -> dict[str, Decimal]:
        """Fetch and persist the full rate table for ``base``.

        Concurrent calls for the same base share a single request; the
        in-flight marker is dropped once that request settles, so a later
        call fetches again.
        """
        base = base.upper()
        task = self._in_flight.get(base)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(base))
            self._in_flight[base] = task

            def _clear(done: asyncio.Task, key: str = base) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_clear)
        return await asyncio.shield(task)

    async def _fetch_and_store(self, base: str) -> dict[str, Decimal]:
        rates = await self._request_rates(base)
        effective_date = self.clock()
        self.db.cache_rates(base, rates, effective_date)
        self._memory[base] = (effective_date, dict(rates))
        logger.info("exchange_rates_fetched", base=base, count=len(rates))
        return rates

    def _remember(self, base: str, effective_date: datetime, rates: dict[str, Decimal]) -> None:
        current = self._memory.get(base)
        if current is not None and current[0] >= effective_date:
            current[1].update({k: v for k, v in rates.items() if k not in current[1]})
            return
        merged = dict(current[1]) if current is not None else {}
        merged.update(rates)
        self._memory[base] = (effective_date, merged)

    async def _request_rates(self, base: str) -> dict[str, Decimal]:
        url = f"{self.base_url}/{base}"
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.warning("exchange_rate_fetch_timeout", base=base, timeout=self.timeout)
            raise RateFetchError(f"Exchange rate request for {base} timed out") from e
        except httpx.RequestError as e:
            logger.warning("exchange_rate_fetch_failed", base=base, error=str(e))
            raise RateFetchError(f"Exchange rate request for {base} failed: {e}") from e

        if not response.is_success:
            logger.warning(
                "exchange_rate_http_error",
                base=base,
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise RateHTTPError(response.status_code, response.reason_phrase)

        content_type = response.headers.get("content-type")
        if not content_type or "json" not in content_type.lower():
            logger.warning("exchange_rate_bad_content_type", base=base, content_type=content_type)
            raise RateContentTypeError(content_type)

        try:
            payload = response.json()
        except ValueError as e:
            raise RatePayloadError(f"Exchange rate response for {base} is not valid JSON") from e

        raw_rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(raw_rates, dict):
            raise RatePayloadError(f"Exchange rate response for {base} has no rates table")

        rates: dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            code = str(code).upper()
            if code == base:
                continue
            try:
                rate = to_decimal(value)
            except (InvalidOperation, TypeError, ValueError):
                continue
            if rate > 0:
                rates[code] = rate
        return rates
