"""Mapper functions to convert SQLAlchemy models into domain entities.

Enum columns are stored as plain strings; they are turned back into the
domain enums here so that services never see raw column values.
"""

from decimal import Decimal

from pocketledger.domain import entities as domain
from pocketledger.domain.constants import (
    AccountType,
    AuditAction,
    JournalDisplayType,
    JournalStatus,
    TransactionType,
)
from pocketledger.database.models import (
    Account as ORMAccount,
    AuditLog as ORMAuditLog,
    Currency as ORMCurrency,
    ExchangeRate as ORMExchangeRate,
    Journal as ORMJournal,
    Transaction as ORMTransaction,
)


def currency_to_domain(orm_currency: ORMCurrency) -> domain.Currency:
    """Convert SQLAlchemy Currency model to domain Currency entity."""
    return domain.Currency(
        code=orm_currency.code,
        name=orm_currency.name,
        symbol=orm_currency.symbol,
        precision=orm_currency.precision,
    )


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        account_type=AccountType(orm_account.account_type),
        currency_code=orm_account.currency_code,
        parent_account_id=orm_account.parent_account_id,
        order_num=orm_account.order_num,
        created_at=orm_account.created_at,
        updated_at=orm_account.updated_at,
        icon=orm_account.icon,
        description=orm_account.description,
        deleted_at=orm_account.deleted_at,
    )


def journal_to_domain(orm_journal: ORMJournal) -> domain.Journal:
    """Convert SQLAlchemy Journal model to domain Journal entity."""
    return domain.Journal(
        id=orm_journal.id,
        journal_date=orm_journal.journal_date,
        description=orm_journal.description,
        currency_code=orm_journal.currency_code,
        status=JournalStatus(orm_journal.status),
        total_amount=Decimal(orm_journal.total_amount),
        transaction_count=orm_journal.transaction_count,
        display_type=JournalDisplayType(orm_journal.display_type),
        created_at=orm_journal.created_at,
        updated_at=orm_journal.updated_at,
        reversal_of_journal_id=orm_journal.reversal_of_journal_id,
        reversed_by_journal_id=orm_journal.reversed_by_journal_id,
        deleted_at=orm_journal.deleted_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    running_balance = orm_transaction.running_balance
    return domain.Transaction(
        id=orm_transaction.id,
        journal_id=orm_transaction.journal_id,
        account_id=orm_transaction.account_id,
        amount=Decimal(orm_transaction.amount),
        transaction_type=TransactionType(orm_transaction.transaction_type),
        currency_code=orm_transaction.currency_code,
        exchange_rate=Decimal(orm_transaction.exchange_rate),
        running_balance=Decimal(running_balance) if running_balance is not None else None,
        transaction_date=orm_transaction.transaction_date,
        created_at=orm_transaction.created_at,
        notes=orm_transaction.notes,
        deleted_at=orm_transaction.deleted_at,
    )


def exchange_rate_to_domain(orm_rate: ORMExchangeRate) -> domain.ExchangeRate:
    """Convert SQLAlchemy ExchangeRate model to domain ExchangeRate entity."""
    return domain.ExchangeRate(
        id=orm_rate.id,
        from_currency=orm_rate.from_currency,
        to_currency=orm_rate.to_currency,
        rate=Decimal(orm_rate.rate),
        effective_date=orm_rate.effective_date,
    )


def audit_log_to_domain(orm_log: ORMAuditLog) -> domain.AuditEntry:
    """Convert SQLAlchemy AuditLog model to domain AuditEntry entity."""
    return domain.AuditEntry(
        id=orm_log.id,
        entity_type=orm_log.entity_type,
        entity_id=orm_log.entity_id,
        action=AuditAction(orm_log.action),
        changes=dict(orm_log.changes or {}),
        timestamp=orm_log.timestamp,
    )
