"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

# Import entities directly to avoid circular import through the service modules
from pocketledger.domain.constants import AccountType, AuditAction
from pocketledger.domain.entities import (
    Account,
    AuditEntry,
    Currency,
    ExchangeRate,
    Journal,
    JournalWrite,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for pocketledger."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables, seed currencies)."""
        pass

    # Currency operations
    @abstractmethod
    def get_currency(self, code: str) -> Optional[Currency]:
        """Get currency by code."""
        pass

    @abstractmethod
    def list_currencies(self) -> list[Currency]:
        """List all known currencies."""
        pass

    @abstractmethod
    def upsert_currency(self, code: str, name: str, symbol: str, precision: int) -> None:
        """Create or replace a currency row."""
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self,
        name: str,
        account_type: AccountType,
        currency_code: str,
        parent_account_id: Optional[int] = None,
        order_num: int = 0,
        icon: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID, including soft-deleted accounts."""
        pass

    @abstractmethod
    def get_accounts_by_ids(self, account_ids: list[int]) -> list[Account]:
        """Get all accounts with the given IDs, including soft-deleted ones."""
        pass

    @abstractmethod
    def get_account_by_name(self, name: str) -> Optional[Account]:
        """Get an active account by exact name."""
        pass

    @abstractmethod
    def list_accounts(self, include_deleted: bool = False) -> list[Account]:
        """List accounts ordered by order_num then name."""
        pass

    @abstractmethod
    def update_account(self, account_id: int, changes: Mapping[str, Any]) -> None:
        """Update account columns named in ``changes``."""
        pass

    @abstractmethod
    def soft_delete_account(self, account_id: int) -> None:
        """Set the deleted_at marker on an account."""
        pass

    @abstractmethod
    def restore_account(self, account_id: int) -> None:
        """Clear the deleted_at marker on an account."""
        pass

    @abstractmethod
    def count_account_transactions(self, account_id: int) -> int:
        """Count active transactions posted to an account."""
        pass

    # Journal operations
    @abstractmethod
    def get_journal(self, journal_id: int) -> Optional[Journal]:
        """Get journal by ID, including soft-deleted journals."""
        pass

    @abstractmethod
    def list_journals(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Journal]:
        """List active journals, newest first."""
        pass

    @abstractmethod
    def create_journal_with_transactions(self, data: JournalWrite) -> int:
        """Atomically create a journal and its transactions. Returns journal ID.

        A reversal journal also marks its original REVERSED in the same write.
        """
        pass

    @abstractmethod
    def update_journal_with_transactions(self, journal_id: int, data: JournalWrite) -> None:
        """Atomically replace a journal's fields and its whole transaction set."""
        pass

    @abstractmethod
    def delete_journal(self, journal_id: int) -> None:
        """Soft-delete a journal and all of its transactions."""
        pass

    # Transaction operations
    @abstractmethod
    def list_journal_transactions(self, journal_id: int) -> list[Transaction]:
        """List active transactions of a journal in line order."""
        pass

    @abstractmethod
    def list_account_transactions(
        self,
        account_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Transaction]:
        """List active transactions of an account in chronological order.

        Chronological order is (transaction_date, id); both bounds are inclusive.
        """
        pass

    @abstractmethod
    def find_latest_for_account(
        self, account_id: int, exclude_journal_id: Optional[int] = None
    ) -> Optional[Transaction]:
        """Get the chronologically last active transaction of an account."""
        pass

    @abstractmethod
    def find_latest_for_account_before_date(
        self,
        account_id: int,
        before: datetime,
        inclusive: bool = False,
        exclude_journal_id: Optional[int] = None,
    ) -> Optional[Transaction]:
        """Get the last active transaction dated before (or at, if inclusive) a date."""
        pass

    @abstractmethod
    def update_running_balances(self, balances: Mapping[int, Decimal]) -> None:
        """Write running balances keyed by transaction ID in one batch."""
        pass

    # Exchange rate operations
    @abstractmethod
    def cache_rates(
        self, from_currency: str, rates: Mapping[str, Decimal], effective_date: datetime
    ) -> None:
        """Append one cache row per (from_currency, target) pair."""
        pass

    @abstractmethod
    def get_cached_rate(self, from_currency: str, to_currency: str) -> Optional[ExchangeRate]:
        """Get the newest cached rate for a pair, however old."""
        pass

    @abstractmethod
    def list_rates_for_base(self, from_currency: str) -> list[ExchangeRate]:
        """Get the newest cached rate for every target of a base currency."""
        pass

    # Audit operations
    @abstractmethod
    def create_audit_entry(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: Mapping[str, Any],
    ) -> int:
        """Persist an audit entry. Returns entry ID."""
        pass

    @abstractmethod
    def list_audit_entries(self, entity_type: str, entity_id: int) -> list[AuditEntry]:
        """List audit entries of one entity, oldest first."""
        pass

    @abstractmethod
    def list_recent_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        """List the most recent audit entries, newest first."""
        pass
