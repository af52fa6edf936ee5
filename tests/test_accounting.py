"""Tests for the double-entry rules engine."""

from datetime import datetime
from decimal import Decimal

import pytest

from pocketledger.domain.accounting import (
    calculate_new_balance,
    get_impact_multiplier,
    get_journal_display_type,
    is_backdated,
    is_balance_increase,
    reverse_transaction_type,
    validate_distinct_accounts,
    validate_journal,
)
from pocketledger.domain.constants import AccountType, JournalDisplayType, TransactionType

from helpers import CREDIT, DEBIT, line


@pytest.mark.parametrize(
    "account_type, debit, credit",
    [
        (AccountType.ASSET, 1, -1),
        (AccountType.EXPENSE, 1, -1),
        (AccountType.LIABILITY, -1, 1),
        (AccountType.EQUITY, -1, 1),
        (AccountType.INCOME, -1, 1),
    ],
)
def test_impact_multiplier_table(account_type, debit, credit):
    assert get_impact_multiplier(account_type, DEBIT) == debit
    assert get_impact_multiplier(account_type, CREDIT) == credit


def test_impact_multiplier_accepts_plain_strings():
    assert get_impact_multiplier("LIABILITY", "CREDIT") == 1
    assert is_balance_increase("ASSET", "DEBIT")
    assert not is_balance_increase("INCOME", "DEBIT")


def test_reverse_transaction_type():
    assert reverse_transaction_type(DEBIT) == TransactionType.CREDIT
    assert reverse_transaction_type(CREDIT) == TransactionType.DEBIT


def test_calculate_new_balance():
    assert calculate_new_balance(Decimal("100"), Decimal("42.50"), AccountType.ASSET, CREDIT) == Decimal("57.50")
    assert calculate_new_balance(0, Decimal("10"), AccountType.LIABILITY, CREDIT) == Decimal("10.00")
    # JPY has no minor unit
    assert calculate_new_balance(0, Decimal("99.5"), AccountType.ASSET, DEBIT, precision=0) == Decimal("100")


def test_validate_journal_balanced():
    result = validate_journal([line(1, "100", DEBIT), line(2, "60", CREDIT), line(3, "40", CREDIT)])
    assert result.is_valid
    assert result.total_debits == Decimal("100")
    assert result.total_credits == Decimal("100")
    assert result.imbalance == 0


def test_validate_journal_reports_signed_imbalance():
    result = validate_journal([line(1, "100", DEBIT), line(2, "90", CREDIT)])
    assert not result.is_valid
    assert result.imbalance == Decimal("10")

    result = validate_journal([line(1, "90", DEBIT), line(2, "100", CREDIT)])
    assert result.imbalance == Decimal("-10")


def test_validate_journal_applies_exchange_rates():
    """100 USD debit against 85 EUR credit converted at 100/85."""
    rate = Decimal("100") / Decimal("85")
    result = validate_journal([line(1, "100", DEBIT), line(2, "85", CREDIT, exchange_rate=rate)])
    assert result.is_valid


def test_validate_journal_compares_rounded_totals():
    assert validate_journal([line(1, "10.004", DEBIT), line(2, "10", CREDIT)]).is_valid
    assert not validate_journal([line(1, "10.006", DEBIT), line(2, "10", CREDIT)]).is_valid


def test_validate_distinct_accounts():
    assert validate_distinct_accounts([1, 2]).is_valid
    assert validate_distinct_accounts([1, 1, 2]).unique_count == 2
    assert not validate_distinct_accounts([1, 1]).is_valid
    assert not validate_distinct_accounts([1, None]).is_valid


def test_is_backdated():
    latest = datetime(2024, 3, 10)
    assert is_backdated(datetime(2024, 3, 9), latest)
    assert not is_backdated(datetime(2024, 3, 10), latest)
    assert not is_backdated(datetime(2024, 3, 11), latest)
    assert not is_backdated(datetime(2024, 3, 9), None)


class TestDisplayType:
    types = {
        1: AccountType.ASSET,
        2: AccountType.LIABILITY,
        3: AccountType.INCOME,
        4: AccountType.EXPENSE,
        5: AccountType.EQUITY,
    }

    def classify(self, *lines):
        return get_journal_display_type(list(lines), self.types)

    def test_expense(self):
        assert self.classify(line(4, 1, DEBIT), line(1, 1, CREDIT)) == JournalDisplayType.EXPENSE

    def test_income(self):
        assert self.classify(line(1, 1, DEBIT), line(3, 1, CREDIT)) == JournalDisplayType.INCOME

    def test_transfer(self):
        assert self.classify(line(2, 1, DEBIT), line(1, 1, CREDIT)) == JournalDisplayType.TRANSFER

    def test_equity_is_generic(self):
        assert self.classify(line(1, 1, DEBIT), line(5, 1, CREDIT)) == JournalDisplayType.JOURNAL

    def test_three_lines_are_generic(self):
        assert (
            self.classify(line(4, 1, DEBIT), line(4, 1, DEBIT), line(1, 2, CREDIT))
            == JournalDisplayType.JOURNAL
        )

    def test_same_side_is_generic(self):
        assert self.classify(line(4, 1, DEBIT), line(1, 1, DEBIT)) == JournalDisplayType.JOURNAL
