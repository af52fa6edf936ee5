"""Service wiring for CLI commands.

Commands share one set of services per invocation, built lazily from the
database stored in the click context.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

import click

from pocketledger.config import Settings, get_settings
from pocketledger.database.base import Database
from pocketledger.domain.account import AccountService
from pocketledger.domain.audit import AuditService
from pocketledger.domain.balance import BalanceService
from pocketledger.domain.currency import CurrencyService
from pocketledger.domain.entities import Preferences
from pocketledger.domain.entry import EntryService
from pocketledger.domain.exchange_rate import ExchangeRateResolver
from pocketledger.domain.integrity import IntegrityService
from pocketledger.domain.journal import JournalService
from pocketledger.domain.rebuild import AccountingRebuildService, RebuildQueue


@dataclass
class Ledger:
    """All services a command may need."""

    db: Database
    settings: Settings
    currencies: CurrencyService
    audit: AuditService
    rebuilder: AccountingRebuildService
    rebuild_queue: RebuildQueue
    journals: JournalService
    accounts: AccountService
    resolver: ExchangeRateResolver
    balances: BalanceService
    entries: EntryService
    integrity: IntegrityService

    @property
    def preferences(self) -> Preferences:
        return Preferences(default_currency=self.settings.default_currency)

    def flush_rebuilds(self) -> None:
        """Bring running balances up to date before reporting anything."""
        if self.rebuild_queue.pending_count:
            asyncio.run(self.rebuild_queue.flush())

    def format_amount(self, amount: Decimal, currency_code: str) -> str:
        precision = self.currencies.get_precision(currency_code)
        return f"{amount:,.{precision}f} {currency_code}"


def build_ledger(db: Database, settings: Settings) -> Ledger:
    currencies = CurrencyService(db)
    audit = AuditService(db)
    rebuilder = AccountingRebuildService(db, currencies)
    queue = RebuildQueue(
        rebuilder,
        max_batch_size=settings.rebuild_batch_size,
        retry_limit=settings.rebuild_retry_limit,
    )
    journals = JournalService(db, currencies, queue, audit)
    accounts = AccountService(db, currencies, audit, journals)
    resolver = ExchangeRateResolver(
        db,
        base_url=settings.exchange_rate_url,
        freshness=timedelta(hours=settings.rate_freshness_hours),
        timeout=settings.rate_fetch_timeout,
    )
    balances = BalanceService(db, resolver, currencies, default_currency=settings.default_currency)
    return Ledger(
        db=db,
        settings=settings,
        currencies=currencies,
        audit=audit,
        rebuilder=rebuilder,
        rebuild_queue=queue,
        journals=journals,
        accounts=accounts,
        resolver=resolver,
        balances=balances,
        entries=EntryService(journals, resolver, currencies),
        integrity=IntegrityService(db, balances, rebuilder),
    )


def get_ledger(ctx: click.Context) -> Ledger:
    """Return the services for this invocation, creating them on first use."""
    obj = ctx.find_root().obj
    if "ledger" not in obj:
        obj["ledger"] = build_ledger(obj["db"], get_settings())
    return obj["ledger"]
