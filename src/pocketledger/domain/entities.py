"""Domain model entities for pocketledger.

These are pure data classes representing ledger concepts, independent of the
database schema. Persisted entities are frozen; derived values such as
balances are plain mutable dataclasses because the aggregation engine fills
them in level by level.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pocketledger.domain.constants import (
    AccountType,
    AuditAction,
    JournalDisplayType,
    JournalStatus,
    TransactionType,
)


@dataclass(frozen=True)
class Currency:
    """Currency with its decimal precision."""

    code: str
    name: str
    symbol: str
    precision: int


@dataclass(frozen=True)
class Account:
    """Ledger account domain entity.

    Accounts form a forest through ``parent_account_id``. A child always has
    the same ``account_type`` as its parent.
    """

    id: int
    name: str
    account_type: AccountType
    currency_code: str
    parent_account_id: Optional[int]
    order_num: int
    created_at: datetime
    updated_at: datetime
    icon: Optional[str] = None
    description: Optional[str] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Journal:
    """Journal (a balanced set of transactions) domain entity."""

    id: int
    journal_date: datetime
    description: Optional[str]
    currency_code: str
    status: JournalStatus
    total_amount: Decimal
    transaction_count: int
    display_type: JournalDisplayType
    created_at: datetime
    updated_at: datetime
    reversal_of_journal_id: Optional[int] = None
    reversed_by_journal_id: Optional[int] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Transaction:
    """Single journal line against one account.

    ``amount`` is always non-negative and in the account's currency.
    ``exchange_rate`` converts it into the journal's currency.
    ``running_balance`` is the account balance right after this line, or
    None while a rebuild for the account is pending.
    """

    id: int
    journal_id: int
    account_id: int
    amount: Decimal
    transaction_type: TransactionType
    currency_code: str
    exchange_rate: Decimal
    running_balance: Optional[Decimal]
    transaction_date: datetime
    created_at: datetime
    notes: Optional[str] = None
    deleted_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExchangeRate:
    """Persisted exchange rate cache entry."""

    id: int
    from_currency: str
    to_currency: str
    rate: Decimal
    effective_date: datetime


@dataclass(frozen=True)
class AuditEntry:
    """Audit log record."""

    id: int
    entity_type: str
    entity_id: int
    action: AuditAction
    changes: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True)
class JournalLineInput:
    """One proposed line of a journal."""

    account_id: int
    amount: Decimal
    transaction_type: TransactionType
    notes: Optional[str] = None
    exchange_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class JournalInput:
    """Proposed journal passed to create/update."""

    journal_date: datetime
    currency_code: str
    lines: list[JournalLineInput]
    description: Optional[str] = None


@dataclass(frozen=True)
class TransactionWrite:
    """Fully computed transaction row ready for persistence."""

    account_id: int
    amount: Decimal
    transaction_type: TransactionType
    currency_code: str
    exchange_rate: Decimal
    running_balance: Optional[Decimal]
    notes: Optional[str] = None


@dataclass(frozen=True)
class JournalWrite:
    """Fully computed journal with its transactions ready for persistence."""

    journal_date: datetime
    currency_code: str
    description: Optional[str]
    total_amount: Decimal
    display_type: JournalDisplayType
    transactions: list[TransactionWrite]
    reversal_of_journal_id: Optional[int] = None


@dataclass
class ChildBalance:
    """Per-currency subtotal of a multi-currency subtree."""

    currency_code: str
    balance: Decimal
    transaction_count: int = 0


@dataclass
class AccountBalance:
    """Point-in-time balance of an account (derived, never persisted)."""

    account_id: int
    balance: Decimal
    currency_code: str
    transaction_count: int
    monthly_income: Decimal
    monthly_expenses: Decimal
    as_of_date: datetime
    child_balances: list[ChildBalance] = field(default_factory=list)


@dataclass(frozen=True)
class Preferences:
    """User preferences consumed by the guided entry builder."""

    default_currency: str = "USD"
    last_used_source_account_id: Optional[int] = None
    last_used_destination_account_id: Optional[int] = None
