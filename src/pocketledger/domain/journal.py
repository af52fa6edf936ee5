"""Journal domain service.

Every write to the ledger goes through ``JournalService``: it resolves the
accounts, rounds each line to its account's currency precision, refuses
unbalanced journals, computes running balances for in-order entries and
queues rebuilds for backdated ones.
"""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.accounting import (
    get_journal_display_type,
    is_backdated,
    calculate_new_balance,
    reverse_transaction_type,
    validate_distinct_accounts,
    validate_journal,
)
from pocketledger.domain.audit import AuditService
from pocketledger.domain.constants import (
    MIN_EXCHANGE_RATE,
    AuditAction,
    AuditEntityType,
    JournalStatus,
    TransactionType,
)
from pocketledger.domain.currency import CurrencyService, normalize_currency_code
from pocketledger.domain.entities import (
    Account,
    Journal,
    JournalInput,
    JournalLineInput,
    JournalWrite,
    Transaction,
    TransactionWrite,
)
from pocketledger.domain.errors import (
    ConflictError,
    NotFoundError,
    UnbalancedJournalError,
    ValidationError,
    account_not_found,
    journal_not_found,
)
from pocketledger.domain.rebuild import AccountingRebuildService, RebuildQueue
from pocketledger.utils.date_parser import to_naive_local
from pocketledger.utils.money import round_to_precision, to_decimal

logger = structlog.get_logger(__name__)


def _line_snapshot(account_id, amount, transaction_type, exchange_rate, notes) -> dict:
    return {
        "account_id": account_id,
        "amount": amount,
        "transaction_type": transaction_type,
        "exchange_rate": exchange_rate,
        "notes": notes,
    }


class JournalService:
    """Service for creating, changing and reading journals."""

    def __init__(
        self,
        db: Database,
        currency_service: Optional[CurrencyService] = None,
        rebuild_queue: Optional[RebuildQueue] = None,
        audit_service: Optional[AuditService] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize journal service.

        Args:
            db: Database instance
            currency_service: Precision lookup (created from ``db`` if omitted)
            rebuild_queue: Queue receiving accounts whose balances went stale
            audit_service: Audit sink (created from ``db`` if omitted)
            clock: Returns "now" for duplicated and reversal journals
        """
        self.db = db
        self.currency_service = currency_service or CurrencyService(db)
        self.rebuild_queue = rebuild_queue or RebuildQueue(
            AccountingRebuildService(db, self.currency_service)
        )
        self.audit_service = audit_service or AuditService(db)
        self.clock = clock

    # Write path
    def _resolve_accounts(self, lines: list[JournalLineInput]) -> dict[int, Account]:
        account_ids = [line.account_id for line in lines]
        accounts = {a.id: a for a in self.db.get_accounts_by_ids(account_ids)}
        for account_id in account_ids:
            account = accounts.get(account_id)
            if account is None or account.is_deleted:
                raise ValidationError(account_not_found(account_id))
        return accounts

    def _prepare(
        self, data: JournalInput, exclude_journal_id: Optional[int] = None
    ) -> tuple[JournalWrite, set[int]]:
        """Validate a proposed journal and compute everything that gets stored.

        Returns:
            The journal ready for persistence, and the accounts whose
            running balances must be rebuilt from the journal date.
        """
        if not isinstance(data.journal_date, datetime):
            raise ValidationError(f"Invalid journal date: {data.journal_date!r}")
        journal_date = to_naive_local(data.journal_date)

        lines = list(data.lines)
        if len(lines) < 2:
            raise ValidationError("A journal entry needs at least 2 lines")
        if not validate_distinct_accounts(line.account_id for line in lines).is_valid:
            raise ValidationError("A journal entry must involve at least 2 distinct accounts")

        currency_code = normalize_currency_code(data.currency_code)
        accounts = self._resolve_accounts(lines)
        precisions = {
            account_id: self.currency_service.get_precision(account.currency_code)
            for account_id, account in accounts.items()
        }
        journal_precision = self.currency_service.get_precision(currency_code)

        rounded: list[JournalLineInput] = []
        for line in lines:
            amount = to_decimal(line.amount)
            if amount < 0:
                raise ValidationError(f"Amount must not be negative (got {amount})")
            rate = to_decimal(line.exchange_rate) if line.exchange_rate is not None else Decimal("1")
            if rate <= MIN_EXCHANGE_RATE:
                raise ValidationError(
                    f"Invalid exchange rate: {rate}. Exchange rate must be greater than {MIN_EXCHANGE_RATE}."
                )
            rounded.append(
                JournalLineInput(
                    account_id=line.account_id,
                    amount=round_to_precision(amount, precisions[line.account_id]),
                    transaction_type=TransactionType(line.transaction_type),
                    notes=line.notes,
                    exchange_rate=rate,
                )
            )

        validation = validate_journal(rounded, journal_precision)
        if not validation.is_valid:
            raise UnbalancedJournalError(
                validation.imbalance, validation.total_debits, validation.total_credits
            )

        accounts_to_rebuild: set[int] = set()
        running: dict[int, Optional[Decimal]] = {}
        for account_id in {line.account_id for line in rounded}:
            latest = self.db.find_latest_for_account(account_id, exclude_journal_id=exclude_journal_id)
            latest_date = latest.transaction_date if latest is not None else None
            if is_backdated(journal_date, latest_date):
                accounts_to_rebuild.add(account_id)
            elif latest is not None and latest.running_balance is None:
                # A rebuild is already owed; this entry joins it.
                accounts_to_rebuild.add(account_id)
            else:
                running[account_id] = latest.running_balance if latest is not None else Decimal("0")

        transactions: list[TransactionWrite] = []
        for line in rounded:
            account = accounts[line.account_id]
            balance = None
            if line.account_id not in accounts_to_rebuild:
                balance = calculate_new_balance(
                    running[line.account_id],
                    line.amount,
                    account.account_type,
                    line.transaction_type,
                    precisions[line.account_id],
                )
                running[line.account_id] = balance
            transactions.append(
                TransactionWrite(
                    account_id=line.account_id,
                    amount=line.amount,
                    transaction_type=line.transaction_type,
                    currency_code=account.currency_code,
                    exchange_rate=line.exchange_rate,
                    running_balance=balance,
                    notes=line.notes,
                )
            )

        total_amount = round_to_precision(
            max(abs(validation.total_debits), abs(validation.total_credits)), journal_precision
        )
        display_type = get_journal_display_type(
            rounded, {account_id: a.account_type for account_id, a in accounts.items()}
        )

        write = JournalWrite(
            journal_date=journal_date,
            currency_code=currency_code,
            description=data.description,
            total_amount=total_amount,
            display_type=display_type,
            transactions=transactions,
        )
        return write, accounts_to_rebuild

    def create_journal(
        self, data: JournalInput, reversal_of_journal_id: Optional[int] = None
    ) -> Journal:
        """Create a balanced journal with its transactions.

        Args:
            data: Proposed journal
            reversal_of_journal_id: Set when the journal reverses another one

        Returns:
            The persisted journal

        Raises:
            ValidationError: If accounts are missing, fewer than two distinct
                accounts are involved, or an amount or rate is invalid
            UnbalancedJournalError: If debits and credits differ
        """
        write, accounts_to_rebuild = self._prepare(data)
        if reversal_of_journal_id is not None:
            write = replace(write, reversal_of_journal_id=reversal_of_journal_id)
        journal_id = self.db.create_journal_with_transactions(write)
        logger.info(
            "journal_created",
            journal_id=journal_id,
            accounts=sorted({t.account_id for t in write.transactions}),
            backdated_accounts=sorted(accounts_to_rebuild),
        )

        self.audit_service.log(
            AuditEntityType.JOURNAL,
            journal_id,
            AuditAction.CREATE,
            {
                "description": write.description,
                "journal_date": write.journal_date,
                "currency_code": write.currency_code,
                "total_amount": write.total_amount,
                "transactions": [
                    _line_snapshot(t.account_id, t.amount, t.transaction_type, t.exchange_rate, t.notes)
                    for t in write.transactions
                ],
            },
        )

        if accounts_to_rebuild:
            self.rebuild_queue.enqueue_many(accounts_to_rebuild, write.journal_date)

        return self.db.get_journal(journal_id)

    def update_journal(self, journal_id: int, data: JournalInput) -> Journal:
        """Replace a journal's fields and its whole transaction set.

        Every account touched before or after the change is queued for a
        rebuild from the earlier of the old and new dates.

        Raises:
            NotFoundError: If the journal does not exist or was deleted
            ValidationError: As for create_journal
        """
        existing = self.db.get_journal(journal_id)
        if existing is None or existing.is_deleted:
            raise NotFoundError(journal_not_found(journal_id))

        old_transactions = self.db.list_journal_transactions(journal_id)
        write, _ = self._prepare(data, exclude_journal_id=journal_id)
        self.db.update_journal_with_transactions(journal_id, write)

        affected = {t.account_id for t in old_transactions} | {t.account_id for t in write.transactions}
        rebuild_from = min(existing.journal_date, write.journal_date)
        logger.info(
            "journal_updated",
            journal_id=journal_id,
            accounts=sorted(affected),
            rebuild_from=rebuild_from.isoformat(),
        )

        self.audit_service.log(
            AuditEntityType.JOURNAL,
            journal_id,
            AuditAction.UPDATE,
            {
                "before": {
                    "description": existing.description,
                    "journal_date": existing.journal_date,
                    "currency_code": existing.currency_code,
                    "total_amount": existing.total_amount,
                    "transactions": [
                        _line_snapshot(t.account_id, t.amount, t.transaction_type, t.exchange_rate, t.notes)
                        for t in old_transactions
                    ],
                },
                "after": {
                    "description": write.description,
                    "journal_date": write.journal_date,
                    "currency_code": write.currency_code,
                    "total_amount": write.total_amount,
                    "transactions": [
                        _line_snapshot(t.account_id, t.amount, t.transaction_type, t.exchange_rate, t.notes)
                        for t in write.transactions
                    ],
                },
            },
        )

        self.rebuild_queue.enqueue_many(affected, rebuild_from)
        return self.db.get_journal(journal_id)

    def delete_journal(self, journal_id: int) -> None:
        """Soft-delete a journal and its transactions.

        Deleting a missing or already deleted journal does nothing.
        """
        journal = self.db.get_journal(journal_id)
        if journal is None or journal.is_deleted:
            logger.debug("journal_delete_skipped", journal_id=journal_id)
            return

        transactions = self.db.list_journal_transactions(journal_id)
        self.db.delete_journal(journal_id)
        account_ids = {t.account_id for t in transactions}
        logger.info("journal_deleted", journal_id=journal_id, accounts=sorted(account_ids))

        self.audit_service.log(
            AuditEntityType.JOURNAL,
            journal_id,
            AuditAction.DELETE,
            {"description": journal.description, "journal_date": journal.journal_date},
        )
        self.rebuild_queue.enqueue_many(account_ids, journal.journal_date)

    def duplicate_journal(self, journal_id: int) -> Journal:
        """Create a copy of a journal dated now.

        The copy goes through the full validation pipeline.

        Raises:
            NotFoundError: If the journal does not exist
        """
        journal = self.require_journal(journal_id)
        transactions = self.db.list_journal_transactions(journal_id)
        lines = [
            JournalLineInput(
                account_id=t.account_id,
                amount=t.amount,
                transaction_type=t.transaction_type,
                notes=t.notes,
                exchange_rate=t.exchange_rate,
            )
            for t in transactions
        ]
        return self.create_journal(
            JournalInput(
                journal_date=self.clock(),
                currency_code=journal.currency_code,
                lines=lines,
                description=f"Copy of {journal.description or f'journal {journal.id}'}",
            )
        )

    def create_reversal_journal(self, journal_id: int, reason: str = "Reversal") -> Journal:
        """Post the mirror image of a journal and mark the original REVERSED.

        The reversal is dated now; the original's transactions are left
        untouched.

        Raises:
            NotFoundError: If the journal does not exist
            ConflictError: If it is already reversed or is itself a reversal
        """
        journal = self.require_journal(journal_id)
        if journal.status == JournalStatus.REVERSED or journal.reversed_by_journal_id is not None:
            raise ConflictError(f"Journal {journal_id} has already been reversed")
        if journal.reversal_of_journal_id is not None:
            raise ConflictError(f"Journal {journal_id} is a reversal and cannot be reversed")

        transactions = self.db.list_journal_transactions(journal_id)
        lines = [
            JournalLineInput(
                account_id=t.account_id,
                amount=t.amount,
                transaction_type=reverse_transaction_type(t.transaction_type),
                notes=f"Reversal: {t.notes}" if t.notes else f"Reversal: {reason}",
                exchange_rate=t.exchange_rate,
            )
            for t in transactions
        ]
        reversal = self.create_journal(
            JournalInput(
                journal_date=self.clock(),
                currency_code=journal.currency_code,
                lines=lines,
                description=f"Reversal of: {journal.description or journal.id} ({reason})",
            ),
            reversal_of_journal_id=journal.id,
        )
        logger.info("journal_reversed", journal_id=journal.id, reversal_id=reversal.id)

        self.audit_service.log(
            AuditEntityType.JOURNAL,
            journal.id,
            AuditAction.UPDATE,
            {
                "status": JournalStatus.REVERSED,
                "reversed_by_journal_id": reversal.id,
                "reason": reason,
            },
        )
        return self.db.get_journal(reversal.id)

    # Read path
    def get_journal(self, journal_id: int) -> Optional[Journal]:
        """Get an active journal by ID, or None."""
        journal = self.db.get_journal(journal_id)
        if journal is None or journal.is_deleted:
            return None
        return journal

    def require_journal(self, journal_id: int) -> Journal:
        """Get an active journal by ID.

        Raises:
            NotFoundError: If the journal does not exist or was deleted
        """
        journal = self.get_journal(journal_id)
        if journal is None:
            raise NotFoundError(journal_not_found(journal_id))
        return journal

    def list_journals(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        include_reversed: bool = True,
    ) -> list[Journal]:
        """List active journals, newest first."""
        journals = self.db.list_journals(start=start, end=end, limit=limit)
        if not include_reversed:
            journals = [j for j in journals if j.status != JournalStatus.REVERSED]
        return journals

    def get_journal_transactions(self, journal_id: int) -> list[Transaction]:
        return self.db.list_journal_transactions(journal_id)

    def list_account_transactions(
        self,
        account_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Transaction]:
        """List an account's active transactions in chronological order."""
        return self.db.list_account_transactions(account_id, start=start, end=end)
