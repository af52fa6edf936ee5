"""Guided entry builders.

Two front doors to the journal service for form-style callers. Both return
an ``EntryResult`` instead of raising, so that a failed submission can be
shown next to the form that produced it.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

import structlog

from pocketledger.domain.accounting import validate_distinct_accounts, validate_journal
from pocketledger.domain.constants import (
    BALANCE_SHEET_TYPES,
    RATE_PLACES,
    AccountType,
    EntryType,
    TransactionType,
)
from pocketledger.domain.currency import CurrencyService
from pocketledger.domain.entities import Account, Journal, JournalInput, JournalLineInput, Preferences
from pocketledger.domain.errors import DomainError, ValidationError, account_not_found
from pocketledger.domain.exchange_rate import ExchangeRateResolver
from pocketledger.domain.journal import JournalService
from pocketledger.utils.amount_parser import parse_amount
from pocketledger.utils.money import round_to_precision, to_decimal

logger = structlog.get_logger(__name__)

AmountInput = Union[str, Decimal, int, None]


@dataclass(frozen=True)
class SimpleEntry:
    """A two-account expense, income or transfer."""

    entry_type: EntryType
    amount: Decimal
    journal_date: datetime
    description: Optional[str] = None
    source_account_id: Optional[int] = None
    destination_account_id: Optional[int] = None
    exchange_rate: Optional[Decimal] = None
    journal_id: Optional[int] = None


@dataclass(frozen=True)
class EntryLine:
    """One line of a multi-line entry as typed into a form."""

    account_id: Optional[int]
    amount: AmountInput
    transaction_type: TransactionType
    notes: str = ""
    exchange_rate: AmountInput = None


@dataclass(frozen=True)
class EntryResult:
    success: bool
    error: Optional[str] = None
    action: Optional[str] = None
    journal: Optional[Journal] = None
    preferences: Optional[Preferences] = None


def _parse_optional(value: AmountInput) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        return parse_amount(value)
    return to_decimal(value)


class EntryService:
    """Builds journals from simple and multi-line entry forms."""

    def __init__(
        self,
        journal_service: JournalService,
        resolver: ExchangeRateResolver,
        currency_service: Optional[CurrencyService] = None,
    ):
        """Initialize entry service.

        Args:
            journal_service: Journal orchestration service that does the writes
            resolver: Exchange rate resolver for cross-currency simple entries
            currency_service: Precision lookup
        """
        self.journal_service = journal_service
        self.db = journal_service.db
        self.resolver = resolver
        self.currency_service = currency_service or journal_service.currency_service

    def _active_account(self, account_id: int) -> Account:
        account = self.db.get_account(account_id)
        if account is None or account.is_deleted:
            raise ValidationError(account_not_found(account_id))
        return account

    def _save(self, data: JournalInput, journal_id: Optional[int]) -> tuple[Journal, str]:
        if journal_id is not None:
            return self.journal_service.update_journal(journal_id, data), "updated"
        return self.journal_service.create_journal(data), "created"

    async def save_simple_entry(self, entry: SimpleEntry, preferences: Preferences) -> EntryResult:
        """Create or update a two-line journal.

        The destination is debited and the source credited, in the source
        account's currency. When the two accounts use different currencies
        the destination amount is converted and rounded first, and its stored
        exchange rate is then derived from the two rounded amounts, so the
        stored journal balances exactly.

        Missing accounts fall back to the last-used ones in ``preferences``.
        """
        try:
            journal, action = await self._save_simple_entry(entry, preferences)
        except ValueError as e:
            # DomainError and bad enum/amount values alike
            logger.info("simple_entry_rejected", error=str(e))
            return EntryResult(success=False, error=str(e), preferences=preferences)

        entry_type = EntryType(entry.entry_type)
        source_id = entry.source_account_id or preferences.last_used_source_account_id
        destination_id = entry.destination_account_id or preferences.last_used_destination_account_id
        updated = preferences
        if entry_type in (EntryType.EXPENSE, EntryType.TRANSFER):
            updated = replace(updated, last_used_source_account_id=source_id)
        if entry_type in (EntryType.INCOME, EntryType.TRANSFER):
            updated = replace(updated, last_used_destination_account_id=destination_id)
        return EntryResult(success=True, action=action, journal=journal, preferences=updated)

    async def _save_simple_entry(self, entry: SimpleEntry, preferences: Preferences) -> tuple[Journal, str]:
        entry_type = EntryType(entry.entry_type)
        amount = to_decimal(entry.amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        source_id = entry.source_account_id or preferences.last_used_source_account_id
        destination_id = entry.destination_account_id or preferences.last_used_destination_account_id
        if not source_id or not destination_id:
            raise ValidationError("Both a source and a destination account are required")
        if source_id == destination_id:
            raise ValidationError("Source and destination accounts must be different")

        source = self._active_account(source_id)
        destination = self._active_account(destination_id)
        self._check_entry_shape(entry_type, source, destination)

        source_amount = round_to_precision(amount, self.currency_service.get_precision(source.currency_code))
        destination_amount = source_amount
        destination_rate = Decimal("1")
        if source.currency_code != destination.currency_code:
            if entry.exchange_rate is not None:
                rate = to_decimal(entry.exchange_rate)
            else:
                rate = await self.resolver.get_rate(source.currency_code, destination.currency_code)
            destination_amount = round_to_precision(
                source_amount * rate,
                self.currency_service.get_precision(destination.currency_code),
            )
            if destination_amount <= 0:
                raise ValidationError("Converted amount rounds to zero")
            # Rate from the destination currency into the journal (source) currency
            destination_rate = round_to_precision(source_amount / destination_amount, RATE_PLACES)

        data = JournalInput(
            journal_date=entry.journal_date,
            currency_code=source.currency_code,
            description=(entry.description or "").strip() or None,
            lines=[
                JournalLineInput(
                    account_id=destination.id,
                    amount=destination_amount,
                    transaction_type=TransactionType.DEBIT,
                    exchange_rate=destination_rate,
                ),
                JournalLineInput(
                    account_id=source.id,
                    amount=source_amount,
                    transaction_type=TransactionType.CREDIT,
                    exchange_rate=Decimal("1"),
                ),
            ],
        )
        return self._save(data, entry.journal_id)

    @staticmethod
    def _check_entry_shape(entry_type: EntryType, source: Account, destination: Account) -> None:
        if entry_type == EntryType.EXPENSE and destination.account_type != AccountType.EXPENSE:
            raise ValidationError("An expense must go to an expense account")
        if entry_type == EntryType.INCOME and source.account_type != AccountType.INCOME:
            raise ValidationError("Income must come from an income account")
        if entry_type == EntryType.TRANSFER and not (
            source.account_type in BALANCE_SHEET_TYPES and destination.account_type in BALANCE_SHEET_TYPES
        ):
            raise ValidationError("Transfers must be between asset or liability accounts")

    def submit_journal_entry(
        self,
        lines: list[EntryLine],
        description: str,
        journal_date: datetime,
        preferences: Preferences,
        journal_id: Optional[int] = None,
    ) -> EntryResult:
        """Validate and save a multi-line journal entry.

        Checks run in a fixed order (balance, description, accounts, distinct
        accounts) and the first failure is reported. The journal is written
        in the preferred default currency.
        """
        try:
            parsed = [
                JournalLineInput(
                    account_id=line.account_id,
                    amount=_parse_optional(line.amount) or Decimal("0"),
                    transaction_type=TransactionType(line.transaction_type),
                    notes=(line.notes or "").strip() or None,
                    exchange_rate=_parse_optional(line.exchange_rate),
                )
                for line in lines
            ]
        except ValueError as e:
            return EntryResult(success=False, error=str(e), preferences=preferences)

        currency_code = preferences.default_currency
        precision = self.currency_service.get_precision(currency_code)
        validation = validate_journal(parsed, precision)
        if not validation.is_valid:
            return EntryResult(
                success=False,
                error=f"Journal is not balanced. Discrepancy: {validation.imbalance}",
                preferences=preferences,
            )
        if not (description or "").strip():
            return EntryResult(success=False, error="Description is required", preferences=preferences)
        if any(not line.account_id for line in parsed):
            return EntryResult(success=False, error="All lines must have an account", preferences=preferences)
        if not validate_distinct_accounts(line.account_id for line in parsed).is_valid:
            return EntryResult(
                success=False,
                error="A journal entry must involve at least 2 distinct accounts",
                preferences=preferences,
            )

        data = JournalInput(
            journal_date=journal_date,
            currency_code=currency_code,
            description=description.strip(),
            lines=parsed,
        )
        try:
            journal, action = self._save(data, journal_id)
        except DomainError as e:
            logger.info("journal_entry_rejected", error=str(e))
            return EntryResult(success=False, error=str(e), preferences=preferences)
        return EntryResult(success=True, action=action, journal=journal, preferences=preferences)
