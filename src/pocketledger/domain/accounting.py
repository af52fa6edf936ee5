"""Double-entry accounting rules.

Pure functions shared by the journal, balance and rebuild services. Nothing
here touches the database.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from pocketledger.domain.constants import (
    BALANCE_SHEET_TYPES,
    DEBIT_NORMAL_TYPES,
    DEFAULT_PRECISION,
    AccountType,
    JournalDisplayType,
    TransactionType,
)
from pocketledger.utils.money import Number, round_to_precision, to_decimal


class JournalLine(Protocol):
    """Anything with an amount, a side and an optional rate."""

    amount: Decimal
    transaction_type: TransactionType
    exchange_rate: Optional[Decimal]


class AccountLine(Protocol):
    account_id: int
    transaction_type: TransactionType


@dataclass(frozen=True)
class JournalValidation:
    """Result of a balance check in journal currency."""

    is_valid: bool
    total_debits: Decimal
    total_credits: Decimal
    imbalance: Decimal


@dataclass(frozen=True)
class DistinctAccountsValidation:
    is_valid: bool
    unique_count: int


def get_impact_multiplier(account_type: AccountType, transaction_type: TransactionType) -> int:
    """Return +1 if the line increases the account balance, -1 otherwise.

    ASSET and EXPENSE accounts grow on DEBIT; LIABILITY, EQUITY and INCOME
    accounts grow on CREDIT.
    """
    account_type = AccountType(account_type)
    transaction_type = TransactionType(transaction_type)
    if account_type in DEBIT_NORMAL_TYPES:
        return 1 if transaction_type == TransactionType.DEBIT else -1
    return 1 if transaction_type == TransactionType.CREDIT else -1


def is_balance_increase(account_type: AccountType, transaction_type: TransactionType) -> bool:
    return get_impact_multiplier(account_type, transaction_type) > 0


def reverse_transaction_type(transaction_type: TransactionType) -> TransactionType:
    """Swap DEBIT and CREDIT."""
    if TransactionType(transaction_type) == TransactionType.DEBIT:
        return TransactionType.CREDIT
    return TransactionType.DEBIT


def calculate_new_balance(
    previous_balance: Number,
    amount: Number,
    account_type: AccountType,
    transaction_type: TransactionType,
    precision: int = DEFAULT_PRECISION,
) -> Decimal:
    """Apply one transaction to a running balance.

    Args:
        previous_balance: Balance before the transaction
        amount: Non-negative transaction amount in account currency
        account_type: Type of the account the transaction belongs to
        transaction_type: DEBIT or CREDIT
        precision: Decimal places of the account currency

    Returns:
        New balance rounded half-up to ``precision``
    """
    multiplier = get_impact_multiplier(account_type, transaction_type)
    return round_to_precision(
        to_decimal(previous_balance) + to_decimal(amount) * multiplier, precision
    )


def validate_journal(lines: Iterable[JournalLine], precision: int = DEFAULT_PRECISION) -> JournalValidation:
    """Check that debits equal credits once converted to journal currency.

    Each line contributes ``amount * (exchange_rate or 1)``. The totals are
    compared after rounding to the journal currency precision; the returned
    imbalance is the signed, unrounded difference debits - credits.
    """
    total_debits = Decimal("0")
    total_credits = Decimal("0")
    for line in lines:
        rate = to_decimal(line.exchange_rate) if line.exchange_rate else Decimal("1")
        converted = to_decimal(line.amount) * rate
        if TransactionType(line.transaction_type) == TransactionType.DEBIT:
            total_debits += converted
        else:
            total_credits += converted

    is_valid = round_to_precision(total_debits, precision) == round_to_precision(total_credits, precision)
    return JournalValidation(
        is_valid=is_valid,
        total_debits=total_debits,
        total_credits=total_credits,
        imbalance=total_debits - total_credits,
    )


def validate_distinct_accounts(account_ids: Iterable[Optional[int]]) -> DistinctAccountsValidation:
    """A journal must touch at least two different accounts. Empty ids are ignored."""
    unique = {account_id for account_id in account_ids if account_id}
    return DistinctAccountsValidation(is_valid=len(unique) >= 2, unique_count=len(unique))


def is_backdated(new_entry_date: datetime, latest_existing_date: Optional[datetime]) -> bool:
    """Return True if the entry lands before the account's latest transaction."""
    if latest_existing_date is None:
        return False
    return new_entry_date < latest_existing_date


def get_journal_display_type(
    transactions: Sequence[AccountLine],
    account_types_by_id: Mapping[int, AccountType],
) -> JournalDisplayType:
    """Classify a journal for display from the types of the accounts it touches.

    Only a plain two-line entry (one DEBIT, one CREDIT) gets a specific
    label; every other shape is a generic JOURNAL.
    """
    if len(transactions) != 2:
        return JournalDisplayType.JOURNAL

    sides = {TransactionType(tx.transaction_type) for tx in transactions}
    if sides != {TransactionType.DEBIT, TransactionType.CREDIT}:
        return JournalDisplayType.JOURNAL

    types = [account_types_by_id.get(tx.account_id) for tx in transactions]
    if any(t is None for t in types):
        return JournalDisplayType.JOURNAL
    types = [AccountType(t) for t in types]

    if all(t in BALANCE_SHEET_TYPES for t in types):
        return JournalDisplayType.TRANSFER

    first, second = types
    for category, other in ((first, second), (second, first)):
        if other not in BALANCE_SHEET_TYPES:
            continue
        if category == AccountType.INCOME:
            return JournalDisplayType.INCOME
        if category == AccountType.EXPENSE:
            return JournalDisplayType.EXPENSE

    return JournalDisplayType.JOURNAL
