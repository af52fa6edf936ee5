"""Tests for running balance rebuilds and the rebuild queue."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pocketledger.domain.errors import NotFoundError
from pocketledger.domain.rebuild import RebuildQueue

from helpers import simple


def running_balances(db, account_id):
    return [t.running_balance for t in db.list_account_transactions(account_id)]


def test_rebuild_replays_from_scratch(temp_db, journal_service, rebuilder, accounts, clock):
    journal_service.create_journal(simple(accounts["checking"], accounts["salary"], "100", clock.now))
    journal_service.create_journal(simple(accounts["groceries"], accounts["checking"], "30", clock.now))
    temp_db.update_running_balances(
        {t.id: Decimal("999") for t in temp_db.list_account_transactions(accounts["checking"])}
    )

    updated = rebuilder.rebuild_account_balances(accounts["checking"])
    assert updated == 2
    assert running_balances(temp_db, accounts["checking"]) == [Decimal("100"), Decimal("70")]


def test_rebuild_writes_only_changed_rows(journal_service, rebuilder, accounts, clock):
    journal_service.create_journal(simple(accounts["checking"], accounts["salary"], "100", clock.now))
    assert rebuilder.rebuild_account_balances(accounts["checking"]) == 0


def test_rebuild_from_date_anchors_on_previous_balance(temp_db, journal_service, rebuilder, accounts, clock):
    first = clock.now - timedelta(days=10)
    journal_service.create_journal(simple(accounts["checking"], accounts["salary"], "100", first))
    journal_service.create_journal(simple(accounts["checking"], accounts["salary"], "20", clock.now))
    later = temp_db.list_account_transactions(accounts["checking"])[-1]
    temp_db.update_running_balances({later.id: Decimal("0")})

    updated = rebuilder.rebuild_account_balances(accounts["checking"], clock.now - timedelta(days=1))
    assert updated == 1
    assert running_balances(temp_db, accounts["checking"]) == [Decimal("100"), Decimal("120")]


def test_rebuild_missing_account(rebuilder):
    with pytest.raises(NotFoundError):
        rebuilder.rebuild_account_balances(12345)


@pytest.mark.asyncio
async def test_backdated_entry_is_rebuilt_on_flush(temp_db, journal_service, rebuild_queue, accounts, clock):
    journal_service.create_journal(simple(accounts["checking"], accounts["salary"], "100", clock.now))
    journal_service.create_journal(
        simple(accounts["checking"], accounts["salary"], "50", clock.now - timedelta(days=2))
    )

    assert set(rebuild_queue.pending()) == {accounts["checking"], accounts["salary"]}
    assert None in running_balances(temp_db, accounts["checking"])

    await rebuild_queue.flush()
    assert rebuild_queue.pending_count == 0
    assert running_balances(temp_db, accounts["checking"]) == [Decimal("50"), Decimal("150")]
    assert running_balances(temp_db, accounts["salary"]) == [Decimal("50"), Decimal("150")]


class FlakyRebuilder:
    """Fails a fixed number of times per account before succeeding."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls: list[tuple[int, datetime | None]] = []

    def rebuild_account_balances(self, account_id, from_date=None):
        self.calls.append((account_id, from_date))
        if len([c for c in self.calls if c[0] == account_id]) <= self.failures:
            raise RuntimeError("database is locked")
        return 0


def test_enqueue_coalesces_to_earliest_date():
    queue = RebuildQueue(FlakyRebuilder(0))
    queue.enqueue(1, datetime(2024, 3, 10))
    queue.enqueue(1, datetime(2024, 3, 5))
    queue.enqueue(1, datetime(2024, 3, 8))
    queue.enqueue(2, datetime(2024, 3, 8))
    assert queue.pending() == {1: datetime(2024, 3, 5), 2: datetime(2024, 3, 8)}


def test_enqueue_none_means_full_rebuild():
    queue = RebuildQueue(FlakyRebuilder(0))
    queue.enqueue(1, datetime(2024, 3, 10))
    queue.enqueue(1, None)
    queue.enqueue(1, datetime(2024, 3, 1))
    assert queue.pending() == {1: None}


@pytest.mark.asyncio
async def test_flush_processes_in_batches():
    rebuilder = FlakyRebuilder(0)
    queue = RebuildQueue(rebuilder, max_batch_size=2)
    queue.enqueue_many([1, 2, 3, 4, 5])
    await queue.flush()
    assert [c[0] for c in rebuilder.calls] == [1, 2, 3, 4, 5]
    assert not queue.has_pending


@pytest.mark.asyncio
async def test_failed_rebuild_is_retried():
    rebuilder = FlakyRebuilder(2)
    queue = RebuildQueue(rebuilder, retry_limit=3)
    queue.enqueue(7, datetime(2024, 3, 1))
    await queue.flush()
    assert rebuilder.calls == [(7, datetime(2024, 3, 1))] * 3
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_gives_up_after_retry_limit():
    rebuilder = FlakyRebuilder(100)
    queue = RebuildQueue(rebuilder, retry_limit=2)
    queue.enqueue(7)
    await queue.flush()
    # First attempt plus two retries
    assert len(rebuilder.calls) == 3
    assert queue.pending_count == 0


def test_stop_drops_pending_work():
    queue = RebuildQueue(FlakyRebuilder(0))
    queue.enqueue_many([1, 2])
    queue.stop()
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_debounced_flush_runs_in_background():
    rebuilder = FlakyRebuilder(0)
    queue = RebuildQueue(rebuilder, debounce_seconds=0.01)
    queue.enqueue(3, datetime(2024, 3, 1))
    assert rebuilder.calls == []

    await asyncio.sleep(0.1)
    assert rebuilder.calls == [(3, datetime(2024, 3, 1))]
    assert not queue.has_pending


@pytest.mark.asyncio
async def test_stop_cancels_running_background_flush():
    rebuilder = FlakyRebuilder(100)
    queue = RebuildQueue(rebuilder, retry_limit=5, retry_delay=10, debounce_seconds=0.01)
    queue.enqueue(3)

    # The background flush is now waiting out its first retry delay
    await asyncio.sleep(0.05)
    assert len(rebuilder.calls) == 1

    queue.stop()
    await asyncio.sleep(0.05)
    assert len(rebuilder.calls) == 1
    assert queue.pending_count == 0
