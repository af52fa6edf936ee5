"""Running balance rebuilds.

Backdated writes invalidate the stored running balance of every later
transaction on the touched accounts. Instead of fixing them on the write
path, accounts are queued in a ``RebuildQueue`` and replayed later by
``AccountingRebuildService``.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.accounting import calculate_new_balance
from pocketledger.domain.currency import CurrencyService
from pocketledger.domain.errors import NotFoundError, account_not_found

logger = structlog.get_logger(__name__)


class AccountingRebuildService:
    """Recomputes stored running balances for one account."""

    def __init__(self, db: Database, currency_service: Optional[CurrencyService] = None):
        """Initialize rebuild service.

        Args:
            db: Database instance
            currency_service: Precision lookup (created from ``db`` if omitted)
        """
        self.db = db
        self.currency_service = currency_service or CurrencyService(db)

    def rebuild_account_balances(self, account_id: int, from_date: Optional[datetime] = None) -> int:
        """Replay an account's transactions from ``from_date`` forward.

        The starting point is the stored running balance of the last
        transaction strictly before ``from_date`` (zero when there is none or
        when ``from_date`` is None). Only rows whose balance actually changes
        are written back.

        Args:
            account_id: Account to rebuild
            from_date: Earliest date affected by a change

        Returns:
            Number of transactions whose running balance was rewritten

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        precision = self.currency_service.get_precision(account.currency_code)

        balance = Decimal("0")
        if from_date is not None:
            previous = self.db.find_latest_for_account_before_date(account_id, from_date)
            if previous is not None:
                if previous.running_balance is None:
                    # The anchor itself is stale; replay the whole history.
                    return self.rebuild_account_balances(account_id, None)
                balance = previous.running_balance

        updates: dict[int, Decimal] = {}
        for transaction in self.db.list_account_transactions(account_id, start=from_date):
            balance = calculate_new_balance(
                balance,
                transaction.amount,
                account.account_type,
                transaction.transaction_type,
                precision,
            )
            if transaction.running_balance is None or transaction.running_balance != balance:
                updates[transaction.id] = balance

        self.db.update_running_balances(updates)
        logger.debug(
            "account_rebuilt",
            account_id=account_id,
            from_date=from_date.isoformat() if from_date else None,
            updated=len(updates),
        )
        return len(updates)


class RebuildQueue:
    """Coalescing worklist of accounts whose running balances need a rebuild.

    ``enqueue`` only records intent and is safe to call from the synchronous
    write path. ``flush`` does the work. Several writes touching the same
    account collapse into one rebuild from the earliest affected date.
    """

    def __init__(
        self,
        rebuilder: AccountingRebuildService,
        max_batch_size: int = 10,
        retry_limit: int = 3,
        retry_delay: float = 0.0,
        debounce_seconds: Optional[float] = None,
    ):
        """Initialize the queue.

        Args:
            rebuilder: Service that performs a single account rebuild
            max_batch_size: Accounts processed per batch
            retry_limit: Retries for a failing account before it is dropped
            retry_delay: Seconds to wait per retry attempt before re-queueing
            debounce_seconds: If set, schedule a background flush this long
                after the last enqueue (requires a running event loop)
        """
        self.rebuilder = rebuilder
        self.max_batch_size = max_batch_size
        self.retry_limit = retry_limit
        self.retry_delay = retry_delay
        self.debounce_seconds = debounce_seconds

        # account_id -> earliest from_date (None means from the beginning)
        self._queue: dict[int, Optional[datetime]] = {}
        self._retry_counts: dict[int, int] = {}
        self._lock = asyncio.Lock()
        self._processing = False
        self._scheduled: Optional[asyncio.TimerHandle] = None
        self._flush_tasks: set[asyncio.Task] = set()

    def enqueue(self, account_id: int, from_date: Optional[datetime] = None) -> None:
        """Queue an account, widening an existing entry to the earlier date."""
        if account_id in self._queue:
            existing = self._queue[account_id]
            if existing is not None and (from_date is None or from_date < existing):
                self._queue[account_id] = from_date
        else:
            self._queue[account_id] = from_date
        logger.debug("rebuild_enqueued", account_id=account_id, pending=len(self._queue))
        self._schedule()

    def enqueue_many(self, account_ids: Iterable[int], from_date: Optional[datetime] = None) -> None:
        for account_id in account_ids:
            self.enqueue(account_id, from_date)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def has_pending(self) -> bool:
        return bool(self._queue) or self._processing

    def pending(self) -> dict[int, Optional[datetime]]:
        """Snapshot of queued accounts and their rebuild-from dates."""
        return dict(self._queue)

    def stop(self) -> None:
        """Cancel any scheduled or running background flush and drop all pending work."""
        self._cancel_scheduled()
        for task in self._flush_tasks:
            task.cancel()
        self._flush_tasks.clear()
        self._queue.clear()
        self._retry_counts.clear()

    async def flush(self) -> None:
        """Process batches until the queue is empty."""
        self._cancel_scheduled()
        async with self._lock:
            while self._queue:
                await self._process_batch()

    async def _process_batch(self) -> None:
        batch = list(self._queue.items())[: self.max_batch_size]
        for account_id, _ in batch:
            del self._queue[account_id]

        self._processing = True
        failures = []
        try:
            logger.debug("rebuild_batch_started", size=len(batch))
            for account_id, from_date in batch:
                try:
                    self.rebuilder.rebuild_account_balances(account_id, from_date)
                except Exception as e:
                    failures.append((account_id, from_date, e))
                else:
                    self._retry_counts.pop(account_id, None)
        finally:
            self._processing = False

        if failures:
            logger.warning("rebuild_batch_failures", failed=len(failures), size=len(batch))

        for account_id, from_date, error in failures:
            attempts = self._retry_counts.get(account_id, 0) + 1
            self._retry_counts[account_id] = attempts
            if attempts <= self.retry_limit:
                logger.warning(
                    "rebuild_retry_scheduled",
                    account_id=account_id,
                    attempt=attempts,
                    error=str(error),
                )
                if self.retry_delay:
                    await asyncio.sleep(self.retry_delay * attempts)
                self.enqueue(account_id, from_date)
            else:
                logger.error(
                    "rebuild_gave_up",
                    account_id=account_id,
                    attempts=attempts,
                    error=str(error),
                )
                self._retry_counts.pop(account_id, None)

    def _schedule(self) -> None:
        if self.debounce_seconds is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to run a background flush; callers flush explicitly.
            return
        self._cancel_scheduled()
        self._scheduled = loop.call_later(self.debounce_seconds, self._start_background_flush, loop)

    def _start_background_flush(self, loop: asyncio.AbstractEventLoop) -> None:
        self._scheduled = None
        task = loop.create_task(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._background_flush_done)

    def _background_flush_done(self, task: asyncio.Task) -> None:
        self._flush_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("rebuild_flush_failed", error=str(error))

    def _cancel_scheduled(self) -> None:
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None
