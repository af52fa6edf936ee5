"""Tests for the exchange rate resolver."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import httpx
import pytest

from pocketledger.domain.errors import (
    RateContentTypeError,
    RateFetchError,
    RateHTTPError,
    RatePayloadError,
    RateUnavailableError,
)
from pocketledger.domain.exchange_rate import ExchangeRateResolver

RATE_URL = "https://rates.test/v6/latest"


@pytest.mark.asyncio
async def test_same_currency_is_identity(resolver, rate_provider):
    assert await resolver.get_rate("usd", "USD") == Decimal("1")
    assert rate_provider.requests == []


@pytest.mark.asyncio
async def test_fetch_then_memory_cache(resolver, rate_provider):
    assert await resolver.get_rate("USD", "EUR") == Decimal("0.85")
    assert await resolver.get_rate("USD", "GBP") == Decimal("0.8")
    assert rate_provider.requests == ["USD"]


@pytest.mark.asyncio
async def test_persistent_cache_survives_new_resolver(temp_db, resolver, http_client, rate_provider, clock):
    await resolver.get_rate("USD", "EUR")

    fresh = ExchangeRateResolver(temp_db, base_url=RATE_URL, http_client=http_client, clock=clock)
    assert await fresh.get_rate("USD", "EUR") == Decimal("0.85")
    assert rate_provider.requests == ["USD"]


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_fetch(resolver, rate_provider):
    """Concurrent lookups for one base currency issue a single request."""
    rates = await asyncio.gather(
        resolver.get_rate("USD", "EUR"),
        resolver.get_rate("USD", "GBP"),
        resolver.get_rate("USD", "JPY"),
    )
    assert rates == [Decimal("0.85"), Decimal("0.8"), Decimal("150")]
    assert rate_provider.requests == ["USD"]


@pytest.mark.asyncio
async def test_refetch_after_completed_fetch(resolver, rate_provider):
    await resolver.fetch_rates_for_base("EUR")
    await resolver.fetch_rates_for_base("EUR")
    assert rate_provider.requests == ["EUR", "EUR"]


@pytest.mark.asyncio
async def test_stale_rate_refreshed_when_expired(resolver, rate_provider, clock):
    await resolver.get_rate("USD", "EUR")
    rate_provider.rates["USD"]["EUR"] = 0.9
    clock.now += timedelta(hours=25)

    assert await resolver.get_rate("USD", "EUR") == Decimal("0.9")
    assert rate_provider.requests == ["USD", "USD"]


@pytest.mark.asyncio
async def test_stale_fallback_when_provider_fails(resolver, rate_provider, clock):
    await resolver.get_rate("USD", "EUR")
    clock.now += timedelta(hours=25)
    rate_provider.status_code = 503

    assert await resolver.get_rate("USD", "EUR") == Decimal("0.85")


@pytest.mark.asyncio
async def test_unavailable_without_any_data(resolver, rate_provider):
    rate_provider.status_code = 500
    with pytest.raises(RateUnavailableError) as exc_info:
        await resolver.get_rate("GBP", "EUR")
    assert isinstance(exc_info.value.__cause__, RateHTTPError)


@pytest.mark.asyncio
async def test_unknown_target_is_unavailable(resolver):
    with pytest.raises(RateUnavailableError):
        await resolver.get_rate("USD", "XYZ")


@pytest.mark.asyncio
async def test_http_error_carries_status(resolver, rate_provider):
    rate_provider.status_code = 404
    with pytest.raises(RateHTTPError) as exc_info:
        await resolver.fetch_rates_for_base("USD")
    assert exc_info.value.status_code == 404
    assert "HTTP 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_content_type(resolver, rate_provider):
    rate_provider.content_type = "text/html"
    with pytest.raises(RateContentTypeError):
        await resolver.fetch_rates_for_base("USD")


@pytest.mark.asyncio
async def test_payload_without_rates(temp_db, clock):
    def handler(request):
        return httpx.Response(200, json={"result": "error"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = ExchangeRateResolver(temp_db, base_url=RATE_URL, http_client=client, clock=clock)
    with pytest.raises(RatePayloadError):
        await resolver.fetch_rates_for_base("USD")


@pytest.mark.asyncio
async def test_network_failure_is_fetch_error(temp_db, clock):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = ExchangeRateResolver(temp_db, base_url=RATE_URL, http_client=client, clock=clock)
    with pytest.raises(RateFetchError):
        await resolver.fetch_rates_for_base("USD")


@pytest.mark.asyncio
async def test_fetched_rates_are_persisted(temp_db, resolver):
    await resolver.fetch_rates_for_base("EUR")
    cached = {r.to_currency: r.rate for r in temp_db.list_rates_for_base("EUR")}
    assert cached == {"USD": Decimal("1.2"), "GBP": Decimal("0.9")}


@pytest.mark.asyncio
async def test_convert(resolver):
    conversion = await resolver.convert("100", "USD", "EUR")
    assert conversion.rate == Decimal("0.85")
    assert conversion.converted_amount == Decimal("85.00")
