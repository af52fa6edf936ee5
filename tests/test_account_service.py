"""Tests for the account service."""

from datetime import timedelta
from decimal import Decimal

import pytest

from pocketledger.domain.constants import AccountType, AuditAction, AuditEntityType
from pocketledger.domain.errors import ConflictError, DependencyError, NotFoundError, ValidationError

from helpers import simple


def test_create_account(account_service):
    """Test creating an account."""
    account_id = account_service.create_account("Checking", "asset", "usd", icon="bank")
    account = account_service.get_account(account_id)
    assert account.name == "Checking"
    assert account.account_type == AccountType.ASSET
    assert account.currency_code == "USD"
    assert account.icon == "bank"
    assert account.parent_account_id is None


def test_create_requires_name(account_service):
    with pytest.raises(ValidationError):
        account_service.create_account("  ", AccountType.ASSET, "USD")


def test_create_rejects_bad_type_and_currency(account_service):
    with pytest.raises(ValidationError):
        account_service.create_account("Cash", "SAVINGS", "USD")
    with pytest.raises(ValidationError):
        account_service.create_account("Cash", "ASSET", "DOLLARS")


def test_duplicate_name_rejected(account_service):
    account_service.create_account("Checking", "ASSET", "USD")
    with pytest.raises(ConflictError, match="already exists"):
        account_service.create_account("Checking", "ASSET", "EUR")


def test_child_must_match_parent_type(account_service):
    food = account_service.create_account("Food", "EXPENSE", "USD")
    with pytest.raises(ValidationError, match="same type"):
        account_service.create_account("Snacks", "ASSET", "USD", parent_account_id=food)


def test_children_are_ordered_last(account_service):
    food = account_service.create_account("Food", "EXPENSE", "USD")
    first = account_service.create_account("Groceries", "EXPENSE", "USD", parent_account_id=food)
    second = account_service.create_account("Dining", "EXPENSE", "USD", parent_account_id=food)
    assert account_service.get_account(first).order_num == 0
    assert account_service.get_account(second).order_num == 1


def test_account_tree(account_service):
    food = account_service.create_account("Food", "EXPENSE", "USD")
    groceries = account_service.create_account("Groceries", "EXPENSE", "USD", parent_account_id=food)
    produce = account_service.create_account("Produce", "EXPENSE", "USD", parent_account_id=groceries)
    tree = [(account.id, depth) for account, depth in account_service.get_account_tree()]
    assert tree == [(food, 0), (groceries, 1), (produce, 2)]
    assert account_service.is_descendant(food, produce)
    assert not account_service.is_descendant(produce, food)


def test_opening_balance_posts_against_equity(account_service, balance_service):
    account_id = account_service.create_account("Savings", "ASSET", "USD", initial_balance=Decimal("1500"))
    equity = account_service.get_account_by_name("Opening Balances (USD)")

    assert equity is not None
    assert equity.account_type == AccountType.EQUITY
    assert balance_service.get_account_balance(account_id).balance == Decimal("1500.00")
    assert balance_service.get_account_balance(equity.id).balance == Decimal("1500.00")


def test_negative_opening_balance_on_liability(account_service, balance_service):
    account_id = account_service.create_account("Loan", "LIABILITY", "USD", initial_balance=Decimal("-200"))
    assert balance_service.get_account_balance(account_id).balance == Decimal("-200.00")


class TestUpdateAccount:
    def test_rename(self, account_service, audit_service, accounts):
        updated = account_service.update_account(accounts["checking"], name="Main Checking")
        assert updated.name == "Main Checking"
        change = audit_service.find(AuditEntityType.ACCOUNT, accounts["checking"])[-1]
        assert change.action == AuditAction.UPDATE
        assert change.changes == {"name": {"from": "Checking", "to": "Main Checking"}}

    def test_rename_to_existing_name(self, account_service, accounts):
        with pytest.raises(ConflictError):
            account_service.update_account(accounts["checking"], name="Visa")

    def test_unknown_field(self, account_service, accounts):
        with pytest.raises(ValidationError):
            account_service.update_account(accounts["checking"], balance=10)

    def test_type_locked_once_used(self, account_service, journal_service, accounts, clock):
        journal_service.create_journal(simple(accounts["rent"], accounts["checking"], "10", clock.now))
        with pytest.raises(ConflictError, match="1 transaction"):
            account_service.update_account(accounts["rent"], account_type="LIABILITY")
        with pytest.raises(ConflictError):
            account_service.update_account(accounts["rent"], currency_code="EUR")

    def test_type_change_without_transactions(self, account_service, accounts):
        updated = account_service.update_account(accounts["rent"], account_type="LIABILITY")
        assert updated.account_type == AccountType.LIABILITY

    def test_cycle_rejected(self, account_service):
        food = account_service.create_account("Food", "EXPENSE", "USD")
        groceries = account_service.create_account("Groceries", "EXPENSE", "USD", parent_account_id=food)
        with pytest.raises(ValidationError, match="cycle"):
            account_service.update_account(food, parent_account_id=groceries)
        with pytest.raises(ValidationError):
            account_service.update_account(food, parent_account_id=food)

    def test_move_to_root(self, account_service):
        food = account_service.create_account("Food", "EXPENSE", "USD")
        groceries = account_service.create_account("Groceries", "EXPENSE", "USD", parent_account_id=food)
        assert account_service.update_account(groceries, parent_account_id=None).parent_account_id is None

    def test_missing_account(self, account_service):
        with pytest.raises(NotFoundError):
            account_service.update_account(404, name="Nope")


class TestDeleteAccount:
    def test_delete_and_recover(self, account_service, accounts):
        account_service.delete_account(accounts["rent"])
        assert account_service.get_account_by_name("Rent") is None
        assert accounts["rent"] not in [a.id for a in account_service.list_accounts()]
        assert accounts["rent"] in [a.id for a in account_service.list_accounts(include_deleted=True)]

        recovered = account_service.recover_account(accounts["rent"])
        assert not recovered.is_deleted

    def test_delete_blocked_by_children(self, account_service):
        food = account_service.create_account("Food", "EXPENSE", "USD")
        account_service.create_account("Groceries", "EXPENSE", "USD", parent_account_id=food)
        with pytest.raises(DependencyError, match="1 child account"):
            account_service.delete_account(food)

    def test_deleted_name_can_be_reused(self, account_service, accounts):
        account_service.delete_account(accounts["rent"])
        account_service.create_account("Rent", "EXPENSE", "USD")
        with pytest.raises(ConflictError):
            account_service.recover_account(accounts["rent"])


class TestAdjustBalance:
    def test_adjust_posts_difference(self, account_service, journal_service, balance_service, accounts, clock):
        journal_service.create_journal(
            simple(accounts["checking"], accounts["salary"], "100", clock.now - timedelta(days=1))
        )
        correction = account_service.adjust_balance(accounts["checking"], Decimal("80"))

        assert correction is not None
        assert correction.total_amount == Decimal("20.00")
        assert balance_service.get_account_balance(accounts["checking"]).balance == Decimal("80.00")
        assert account_service.get_account_by_name("Balance Corrections (USD)") is not None

    def test_adjust_noop_when_matching(self, account_service, accounts):
        assert account_service.adjust_balance(accounts["checking"], Decimal("0")) is None


def test_resolve_by_name_or_id(account_service, accounts):
    assert account_service.resolve("Checking") == accounts["checking"]
    assert account_service.resolve(str(accounts["visa"])) == accounts["visa"]
    assert account_service.resolve(accounts["rent"]) == accounts["rent"]


def test_resolve_rejects_unknown_and_deleted(account_service, accounts):
    with pytest.raises(NotFoundError):
        account_service.resolve("Nope")
    account_service.delete_account(accounts["rent"])
    with pytest.raises(NotFoundError):
        account_service.resolve("Rent")
    with pytest.raises(NotFoundError):
        account_service.resolve(accounts["rent"])
