"""Shared pytest fixtures for pocketledger tests."""

import json
import os
import tempfile
from datetime import datetime

import httpx
import pytest

from pocketledger.database.factories import create_sqlite_database
from pocketledger.domain.account import AccountService
from pocketledger.domain.audit import AuditService
from pocketledger.domain.balance import BalanceService
from pocketledger.domain.currency import CurrencyService
from pocketledger.domain.entry import EntryService
from pocketledger.domain.exchange_rate import ExchangeRateResolver
from pocketledger.domain.integrity import IntegrityService
from pocketledger.domain.journal import JournalService
from pocketledger.domain.rebuild import AccountingRebuildService, RebuildQueue

NOW = datetime(2024, 3, 15, 12, 0, 0)

RATE_URL = "https://rates.test/v6/latest"


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RateProvider:
    """Fake exchange rate endpoint for ``httpx.MockTransport``."""

    def __init__(self, rates: dict[str, dict[str, float]]):
        self.rates = rates
        self.requests: list[str] = []
        self.status_code = 200
        self.content_type = "application/json"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        base = request.url.path.rsplit("/", 1)[-1]
        self.requests.append(base)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="unavailable")
        body = json.dumps({"result": "success", "base_code": base, "rates": self.rates.get(base, {})})
        return httpx.Response(200, content=body, headers={"content-type": self.content_type})


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def currency_service(temp_db):
    return CurrencyService(temp_db)


@pytest.fixture
def audit_service(temp_db):
    return AuditService(temp_db)


@pytest.fixture
def rebuilder(temp_db, currency_service):
    return AccountingRebuildService(temp_db, currency_service)


@pytest.fixture
def rebuild_queue(rebuilder):
    return RebuildQueue(rebuilder)


@pytest.fixture
def journal_service(temp_db, currency_service, rebuild_queue, audit_service, clock):
    return JournalService(temp_db, currency_service, rebuild_queue, audit_service, clock=clock)


@pytest.fixture
def account_service(temp_db, currency_service, audit_service, journal_service, clock):
    return AccountService(temp_db, currency_service, audit_service, journal_service, clock=clock)


@pytest.fixture
def rate_provider():
    return RateProvider(
        {
            "USD": {"USD": 1, "EUR": 0.85, "GBP": 0.8, "JPY": 150},
            "EUR": {"EUR": 1, "USD": 1.2, "GBP": 0.9},
            "GBP": {"GBP": 1, "USD": 1.25, "EUR": 1.1},
        }
    )


@pytest.fixture
def http_client(rate_provider):
    return httpx.AsyncClient(transport=httpx.MockTransport(rate_provider))


@pytest.fixture
def resolver(temp_db, http_client, clock):
    return ExchangeRateResolver(temp_db, base_url=RATE_URL, http_client=http_client, clock=clock)


@pytest.fixture
def balance_service(temp_db, resolver, currency_service, clock):
    return BalanceService(temp_db, resolver, currency_service, default_currency="USD", clock=clock)


@pytest.fixture
def entry_service(journal_service, resolver, currency_service):
    return EntryService(journal_service, resolver, currency_service)


@pytest.fixture
def integrity_service(temp_db, balance_service, rebuilder):
    return IntegrityService(temp_db, balance_service, rebuilder)


@pytest.fixture
def accounts(account_service):
    """A small chart of accounts in USD plus one EUR asset."""
    ids = {
        "checking": account_service.create_account("Checking", "ASSET", "USD"),
        "savings_eur": account_service.create_account("Savings EUR", "ASSET", "EUR"),
        "visa": account_service.create_account("Visa", "LIABILITY", "USD"),
        "salary": account_service.create_account("Salary", "INCOME", "USD"),
        "groceries": account_service.create_account("Groceries", "EXPENSE", "USD"),
        "rent": account_service.create_account("Rent", "EXPENSE", "USD"),
    }
    return ids


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
