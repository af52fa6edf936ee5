"""Account domain service."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.accounting import is_balance_increase, reverse_transaction_type
from pocketledger.domain.audit import AuditService
from pocketledger.domain.balance import BalanceService
from pocketledger.domain.constants import (
    BALANCE_CORRECTIONS_ACCOUNT,
    OPENING_BALANCES_ACCOUNT,
    AccountType,
    AuditAction,
    AuditEntityType,
    TransactionType,
)
from pocketledger.domain.currency import CurrencyService, normalize_currency_code
from pocketledger.domain.entities import Account, Journal, JournalInput, JournalLineInput
from pocketledger.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
    account_type_locked,
    duplicate_account_name,
    parent_type_mismatch,
)
from pocketledger.domain.journal import JournalService
from pocketledger.utils.money import amounts_are_equal, round_to_precision, to_decimal

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {
    "name",
    "account_type",
    "currency_code",
    "parent_account_id",
    "order_num",
    "icon",
    "description",
}


def _parse_account_type(account_type: AccountType | str) -> AccountType:
    if isinstance(account_type, AccountType):
        return account_type
    try:
        return AccountType(str(account_type).strip().upper())
    except ValueError:
        allowed = ", ".join(t.value for t in AccountType)
        raise ValidationError(
            f"Invalid account type '{account_type}'. Expected one of: {allowed}"
        ) from None


class AccountService:
    """Service for managing the chart of accounts."""

    def __init__(
        self,
        db: Database,
        currency_service: Optional[CurrencyService] = None,
        audit_service: Optional[AuditService] = None,
        journal_service: Optional[JournalService] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize account service.

        Args:
            db: Database instance
            currency_service: Precision lookup (created from ``db`` if omitted)
            audit_service: Audit sink (created from ``db`` if omitted)
            journal_service: Used to post opening balances and corrections
            clock: Returns the current time
        """
        self.db = db
        self.currency_service = currency_service or CurrencyService(db)
        self.audit_service = audit_service or AuditService(db)
        self.journal_service = journal_service or JournalService(
            db, self.currency_service, audit_service=self.audit_service, clock=clock
        )
        self.clock = clock

    def create_account(
        self,
        name: str,
        account_type: AccountType | str,
        currency_code: str,
        parent_account_id: Optional[int] = None,
        icon: Optional[str] = None,
        order_num: Optional[int] = None,
        description: Optional[str] = None,
        initial_balance: Optional[Decimal] = None,
    ) -> int:
        """Create a new account.

        Args:
            name: Account name, unique among active accounts
            account_type: ASSET, LIABILITY, EQUITY, INCOME or EXPENSE
            currency_code: Three letter currency code
            parent_account_id: Optional parent; must have the same type
            icon: Optional icon name
            order_num: Sibling sort key (defaults to last)
            description: Optional free text
            initial_balance: If non-zero, posted against the opening balances
                equity account of the currency

        Returns:
            Account ID

        Raises:
            ValidationError: If name, type, currency or parent are invalid
            ConflictError: If the name is already used
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name is required")
        if self.db.get_account_by_name(name) is not None:
            raise ConflictError(duplicate_account_name(name))

        account_type = _parse_account_type(account_type)
        currency_code = normalize_currency_code(currency_code)

        if parent_account_id is not None:
            parent = self._require_active(parent_account_id, ValidationError)
            if parent.account_type != account_type:
                raise ValidationError(
                    parent_type_mismatch(parent.name, parent.account_type.value, account_type.value)
                )

        if order_num is None:
            siblings = [a for a in self.db.list_accounts() if a.parent_account_id == parent_account_id]
            order_num = max((a.order_num for a in siblings), default=-1) + 1

        account_id = self.db.create_account(
            name=name,
            account_type=account_type,
            currency_code=currency_code,
            parent_account_id=parent_account_id,
            order_num=order_num,
            icon=icon,
            description=description,
        )
        logger.info("account_created", account_id=account_id, account_type=account_type.value)
        self.audit_service.log(
            AuditEntityType.ACCOUNT,
            account_id,
            AuditAction.CREATE,
            {
                "name": name,
                "account_type": account_type,
                "currency_code": currency_code,
                "parent_account_id": parent_account_id,
            },
        )

        if initial_balance is not None and to_decimal(initial_balance) != 0:
            account = self.db.get_account(account_id)
            self._post_against_equity(
                account,
                to_decimal(initial_balance),
                OPENING_BALANCES_ACCOUNT,
                f"Opening balance: {name}",
            )
        return account_id

    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def require_account(self, account_id: int) -> Account:
        """Get an active account by ID.

        Raises:
            NotFoundError: If the account does not exist or was deleted
        """
        return self._require_active(account_id, NotFoundError)

    def _require_active(self, account_id: int, error: type[Exception]) -> Account:
        account = self.db.get_account(account_id)
        if account is None or account.is_deleted:
            raise error(account_not_found(account_id))
        return account

    def get_account_by_name(self, name: str) -> Optional[Account]:
        return self.db.get_account_by_name(name)

    def resolve(self, account: str | int) -> int:
        """Resolve an account reference (ID or name) to an active account ID.

        Raises:
            NotFoundError: If no active account matches
        """
        if isinstance(account, str) and not account.strip().isdigit():
            found = self.db.get_account_by_name(account.strip())
            if found is None or found.is_deleted:
                raise NotFoundError(f"Account '{account.strip()}' not found")
            return found.id
        return self.require_account(int(account)).id

    def list_accounts(self, include_deleted: bool = False) -> list[Account]:
        """List accounts ordered by sort key and name."""
        return self.db.list_accounts(include_deleted=include_deleted)

    def get_children(self, account_id: int) -> list[Account]:
        return [a for a in self.db.list_accounts() if a.parent_account_id == account_id]

    def get_account_tree(self) -> list[tuple[Account, int]]:
        """Return active accounts depth-first with their depth (roots are 0)."""
        accounts = self.db.list_accounts()
        active_ids = {a.id for a in accounts}
        children: dict[Optional[int], list[Account]] = {}
        for account in accounts:
            parent_id = account.parent_account_id if account.parent_account_id in active_ids else None
            children.setdefault(parent_id, []).append(account)

        tree: list[tuple[Account, int]] = []

        def walk(parent_id: Optional[int], depth: int) -> None:
            for account in children.get(parent_id, []):
                tree.append((account, depth))
                walk(account.id, depth + 1)

        walk(None, 0)
        return tree

    def is_descendant(self, ancestor_id: int, candidate_id: int) -> bool:
        """Return True if ``candidate_id`` sits somewhere below ``ancestor_id``."""
        parent_of = {
            a.id: a.parent_account_id for a in self.db.list_accounts(include_deleted=True)
        }
        seen: set[int] = set()
        current = parent_of.get(candidate_id)
        while current is not None and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            current = parent_of.get(current)
        return False

    def update_account(self, account_id: int, **changes: Any) -> Account:
        """Update account fields.

        Accepted fields: name, account_type, currency_code, parent_account_id,
        order_num, icon, description. Pass ``parent_account_id=None`` to make
        the account a root.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If a field value is invalid or the new parent
                would create a cycle or mix account types
            ConflictError: If the name is taken, or type/currency would change
                on an account that already has transactions
        """
        account = self.require_account(account_id)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update account fields: {', '.join(sorted(unknown))}")

        updates: dict[str, Any] = {}
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Account name is required")
            existing = self.db.get_account_by_name(name)
            if existing is not None and existing.id != account_id:
                raise ConflictError(duplicate_account_name(name))
            updates["name"] = name

        new_type = account.account_type
        if "account_type" in changes:
            new_type = _parse_account_type(changes["account_type"])
            if new_type != account.account_type:
                count = self.db.count_account_transactions(account_id)
                if count > 0:
                    raise ConflictError(account_type_locked(account_id, count))
                if self.get_children(account_id):
                    raise ValidationError(
                        f"Cannot change type of account {account_id}: it has child accounts"
                    )
                updates["account_type"] = new_type

        if "currency_code" in changes:
            currency_code = normalize_currency_code(changes["currency_code"])
            if currency_code != account.currency_code:
                count = self.db.count_account_transactions(account_id)
                if count > 0:
                    raise ConflictError(
                        f"Cannot change currency of account {account_id}: it has transactions"
                    )
                updates["currency_code"] = currency_code

        parent_id = account.parent_account_id
        if "parent_account_id" in changes:
            parent_id = changes["parent_account_id"]
            if parent_id is not None:
                if parent_id == account_id:
                    raise ValidationError("An account cannot be its own parent")
                if self.is_descendant(account_id, parent_id):
                    raise ValidationError(
                        f"Account {parent_id} is a descendant of account {account_id}; "
                        "moving would create a cycle"
                    )
            updates["parent_account_id"] = parent_id

        if parent_id is not None and ("parent_account_id" in changes or "account_type" in changes):
            parent = self._require_active(parent_id, ValidationError)
            if parent.account_type != new_type:
                raise ValidationError(
                    parent_type_mismatch(parent.name, parent.account_type.value, new_type.value)
                )

        for field_name in ("order_num", "icon", "description"):
            if field_name in changes:
                updates[field_name] = changes[field_name]

        if updates:
            self.db.update_account(account_id, updates)
            self.audit_service.log(
                AuditEntityType.ACCOUNT,
                account_id,
                AuditAction.UPDATE,
                {
                    field_name: {"from": getattr(account, field_name), "to": value}
                    for field_name, value in updates.items()
                },
            )
        return self.db.get_account(account_id)

    def delete_account(self, account_id: int) -> None:
        """Soft-delete an account.

        Transactions keep pointing at the account; it is only hidden.

        Raises:
            NotFoundError: If the account does not exist
            DependencyError: If the account has active child accounts
        """
        account = self.require_account(account_id)
        children = self.get_children(account_id)
        if children:
            raise DependencyError(account_delete_blocked(account_id, len(children)))

        self.db.soft_delete_account(account_id)
        logger.info("account_deleted", account_id=account_id)
        self.audit_service.log(
            AuditEntityType.ACCOUNT, account_id, AuditAction.DELETE, {"name": account.name}
        )

    def recover_account(self, account_id: int) -> Account:
        """Undo a soft delete.

        Raises:
            NotFoundError: If the account does not exist
            ConflictError: If an active account already uses its name
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if not account.is_deleted:
            return account
        if self.db.get_account_by_name(account.name) is not None:
            raise ConflictError(duplicate_account_name(account.name))
        self.db.restore_account(account_id)
        self.audit_service.log(
            AuditEntityType.ACCOUNT,
            account_id,
            AuditAction.UPDATE,
            {"deleted_at": {"from": account.deleted_at, "to": None}},
        )
        return self.db.get_account(account_id)

    def adjust_balance(
        self, account_id: int, target_balance: Decimal, journal_date: Optional[datetime] = None
    ) -> Optional[Journal]:
        """Post a correction so the account's own balance equals ``target_balance``.

        Returns:
            The correction journal, or None if no correction was needed
        """
        account = self.require_account(account_id)
        precision = self.currency_service.get_precision(account.currency_code)
        journal_date = journal_date or self.clock()
        current = BalanceService.compute_balance(
            account,
            self.db.list_account_transactions(account_id, end=journal_date),
            precision,
            as_of=journal_date,
            today=journal_date,
        ).balance
        target = round_to_precision(target_balance, precision)
        if amounts_are_equal(current, target, precision):
            return None
        return self._post_against_equity(
            account,
            target - current,
            BALANCE_CORRECTIONS_ACCOUNT,
            f"Balance correction: {account.name}",
            journal_date,
        )

    def _equity_account(self, template: str, currency_code: str) -> Account:
        name = template.format(currency=currency_code)
        existing = self.db.get_account_by_name(name)
        if existing is not None:
            return existing
        account_id = self.db.create_account(
            name=name, account_type=AccountType.EQUITY, currency_code=currency_code
        )
        self.audit_service.log(
            AuditEntityType.ACCOUNT,
            account_id,
            AuditAction.CREATE,
            {"name": name, "account_type": AccountType.EQUITY, "currency_code": currency_code},
        )
        return self.db.get_account(account_id)

    def _post_against_equity(
        self,
        account: Account,
        delta: Decimal,
        template: str,
        description: str,
        journal_date: Optional[datetime] = None,
    ) -> Journal:
        """Move ``account`` by ``delta`` with the opposite side on an equity account."""
        equity = self._equity_account(template, account.currency_code)
        increase_side = (
            TransactionType.DEBIT
            if is_balance_increase(account.account_type, TransactionType.DEBIT)
            else TransactionType.CREDIT
        )
        account_side = increase_side if delta > 0 else reverse_transaction_type(increase_side)
        equity_side = reverse_transaction_type(account_side)
        amount = abs(delta)
        return self.journal_service.create_journal(
            JournalInput(
                journal_date=journal_date or self.clock(),
                currency_code=account.currency_code,
                description=description,
                lines=[
                    JournalLineInput(account.id, amount, account_side),
                    JournalLineInput(equity.id, amount, equity_side),
                ],
            )
        )
