"""Small builders shared by the test modules."""

from datetime import datetime
from decimal import Decimal

from pocketledger.domain.constants import TransactionType
from pocketledger.domain.entities import JournalInput, JournalLineInput

DEBIT = TransactionType.DEBIT
CREDIT = TransactionType.CREDIT


def line(account_id, amount, transaction_type, exchange_rate=None, notes=None):
    return JournalLineInput(
        account_id=account_id,
        amount=Decimal(str(amount)),
        transaction_type=transaction_type,
        notes=notes,
        exchange_rate=Decimal(str(exchange_rate)) if exchange_rate is not None else None,
    )


def journal(when: datetime, *lines, currency_code="USD", description=None):
    return JournalInput(
        journal_date=when,
        currency_code=currency_code,
        lines=list(lines),
        description=description,
    )


def simple(debit_id, credit_id, amount, when: datetime, description=None):
    """A two-line journal moving ``amount`` from ``credit_id`` to ``debit_id``."""
    return journal(
        when,
        line(debit_id, amount, DEBIT),
        line(credit_id, amount, CREDIT),
        description=description,
    )
