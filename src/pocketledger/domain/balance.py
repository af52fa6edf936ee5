"""Account balances and hierarchical roll-ups."""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.accounting import get_impact_multiplier
from pocketledger.domain.constants import DEFAULT_PRECISION, AccountType
from pocketledger.domain.currency import CurrencyService
from pocketledger.domain.entities import Account, AccountBalance, ChildBalance, Transaction
from pocketledger.domain.errors import NotFoundError, account_not_found
from pocketledger.domain.exchange_rate import ExchangeRateResolver
from pocketledger.utils.money import round_to_precision

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class NetWorth:
    assets: Decimal
    liabilities: Decimal
    net_worth: Decimal
    currency_code: str
    equity: Decimal = ZERO
    income: Decimal = ZERO
    expenses: Decimal = ZERO


class BalanceService:
    """Service for computing and aggregating account balances."""

    def __init__(
        self,
        db: Database,
        resolver: ExchangeRateResolver,
        currency_service: Optional[CurrencyService] = None,
        default_currency: str = "USD",
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize balance service.

        Args:
            db: Database instance
            resolver: Exchange rate resolver used for mixed-currency roll-ups
            currency_service: Precision lookup (created from ``db`` if omitted)
            default_currency: Currency of roll-ups that mix several currencies
            clock: Returns the current time
        """
        self.db = db
        self.resolver = resolver
        self.currency_service = currency_service or CurrencyService(db)
        self.default_currency = default_currency
        self.clock = clock

    @staticmethod
    def compute_balance(
        account: Account,
        transactions: Iterable[Transaction],
        precision: int = DEFAULT_PRECISION,
        as_of: Optional[datetime] = None,
        today: Optional[datetime] = None,
    ) -> AccountBalance:
        """Compute an account balance from its transactions.

        Transactions are applied in chronological order. Those dated in the
        calendar month of ``today`` also feed monthly income (balance
        increases) and monthly expenses (balance decreases), both tracked as
        non-negative amounts.

        Args:
            account: The account the transactions belong to
            transactions: The account's transactions, any order
            precision: Decimal places of the account currency
            as_of: Ignore transactions after this moment
            today: Reference date for the monthly figures (defaults to now)

        Returns:
            AccountBalance in the account's currency
        """
        today = today or datetime.now()
        as_of = as_of or today

        balance = ZERO
        monthly_income = ZERO
        monthly_expenses = ZERO
        count = 0
        ordered = sorted(transactions, key=lambda t: (t.transaction_date, t.id))
        for tx in ordered:
            if tx.transaction_date > as_of:
                continue
            multiplier = get_impact_multiplier(account.account_type, tx.transaction_type)
            balance = round_to_precision(balance + tx.amount * multiplier, precision)
            count += 1
            date = tx.transaction_date
            if date.year == today.year and date.month == today.month:
                if multiplier > 0:
                    monthly_income += tx.amount
                else:
                    monthly_expenses += tx.amount

        return AccountBalance(
            account_id=account.id,
            balance=balance,
            currency_code=account.currency_code,
            transaction_count=count,
            monthly_income=round_to_precision(monthly_income, precision),
            monthly_expenses=round_to_precision(monthly_expenses, precision),
            as_of_date=as_of,
        )

    def get_account_balance(self, account_id: int, as_of: Optional[datetime] = None) -> AccountBalance:
        """Compute one account's own balance (children not included).

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return self._compute(account, as_of)

    def get_cached_balance(self, account_id: int, as_of: Optional[datetime] = None) -> Decimal:
        """Read the stored running balance of the latest transaction at or before ``as_of``.

        This is only accurate once pending rebuilds for the account have been flushed.
        """
        as_of = as_of or self.clock()
        latest = self.db.find_latest_for_account_before_date(account_id, as_of, inclusive=True)
        if latest is None or latest.running_balance is None:
            return ZERO
        return latest.running_balance

    def _compute(self, account: Account, as_of: Optional[datetime]) -> AccountBalance:
        now = self.clock()
        as_of = as_of or now
        transactions = self.db.list_account_transactions(account.id, end=as_of)
        precision = self.currency_service.get_precision(account.currency_code)
        return self.compute_balance(account, transactions, precision, as_of=as_of, today=now)

    async def get_account_balances(
        self, as_of: Optional[datetime] = None, default_currency: Optional[str] = None
    ) -> list[AccountBalance]:
        """Compute balances of all active accounts, rolled up through the hierarchy."""
        accounts = self.db.list_accounts()
        balances = {account.id: self._compute(account, as_of) for account in accounts}
        await self.aggregate_balances(accounts, balances, default_currency)
        return [balances[account.id] for account in accounts]

    async def aggregate_balances(
        self,
        accounts: list[Account],
        balances: dict[int, AccountBalance],
        default_currency: Optional[str] = None,
    ) -> None:
        """Roll child balances into their parents, in place.

        Accounts are processed level by level from the deepest up, so that a
        parent only receives a child's total once that child has itself
        received all of its descendants. Within one level every conversion
        runs concurrently.

        A parent whose subtree holds a single currency adopts it. A subtree
        mixing currencies is reported in ``default_currency``; its
        ``child_balances`` keeps the unconverted per-currency subtotals,
        rounded to the parent's precision.
        """
        default_currency = default_currency or self.default_currency
        by_id = {account.id: account for account in accounts}
        parent_of = {
            account.id: account.parent_account_id
            for account in accounts
            if account.parent_account_id is not None and account.parent_account_id in by_id
        }

        depth_cache: dict[int, int] = {}

        def depth(account_id: int) -> int:
            if account_id not in depth_cache:
                parent_id = parent_of.get(account_id)
                depth_cache[account_id] = depth(parent_id) + 1 if parent_id is not None else 0
            return depth_cache[account_id]

        subtree_currencies: dict[int, set[str]] = {}
        for account in accounts:
            currencies = set()
            balance = balances.get(account.id)
            if balance is not None and balance.balance != 0:
                currencies.add(balance.currency_code)
            subtree_currencies[account.id] = currencies

        for account in sorted(accounts, key=lambda a: depth(a.id), reverse=True):
            parent_id = parent_of.get(account.id)
            if parent_id is not None:
                subtree_currencies[parent_id] |= subtree_currencies[account.id]

        levels: dict[int, list[int]] = defaultdict(list)
        for account in accounts:
            levels[depth(account.id)].append(account.id)
        max_depth = max(levels) if levels else 0

        for level in range(max_depth, 0, -1):
            children_by_parent: dict[int, list[int]] = defaultdict(list)
            for account_id in levels[level]:
                children_by_parent[parent_of[account_id]].append(account_id)

            await asyncio.gather(
                *(
                    self._roll_up(
                        balances[parent_id],
                        [balances[c] for c in child_ids if c in balances],
                        subtree_currencies[parent_id],
                        by_id[parent_id],
                        default_currency,
                    )
                    for parent_id, child_ids in children_by_parent.items()
                    if parent_id in balances
                )
            )

    async def _roll_up(
        self,
        parent: AccountBalance,
        children: list[AccountBalance],
        currencies: set[str],
        parent_account: Account,
        default_currency: str,
    ) -> None:
        if len(currencies) == 1:
            target = next(iter(currencies))
        elif len(currencies) > 1:
            target = default_currency
        else:
            target = parent.currency_code
        precision = self.currency_service.get_precision(target)
        multi_currency = len(currencies) > 1

        contributors = [parent] + [
            child for child in children if child.balance != 0 or child.transaction_count > 0
        ]
        converted = await asyncio.gather(
            *(self._convert_balance(balance, target) for balance in contributors)
        )

        subtotals: dict[str, ChildBalance] = {}
        if multi_currency:
            for contributor in contributors:
                for part in self._subtotals(contributor):
                    if part.balance == 0 and part.transaction_count == 0:
                        continue
                    existing = subtotals.get(part.currency_code)
                    if existing is None:
                        subtotals[part.currency_code] = ChildBalance(
                            currency_code=part.currency_code,
                            balance=round_to_precision(part.balance, precision),
                            transaction_count=part.transaction_count,
                        )
                    else:
                        existing.balance = round_to_precision(existing.balance + part.balance, precision)
                        existing.transaction_count += part.transaction_count

        total, income, expenses = ZERO, ZERO, ZERO
        for amount, monthly_income, monthly_expenses in converted:
            total += amount
            income += monthly_income
            expenses += monthly_expenses

        parent.currency_code = target
        parent.balance = round_to_precision(total, precision)
        parent.monthly_income = round_to_precision(income, precision)
        parent.monthly_expenses = round_to_precision(expenses, precision)
        if multi_currency:
            parent.child_balances = list(subtotals.values())
            logger.debug(
                "multi_currency_rollup",
                account_id=parent_account.id,
                currency=target,
                currencies=sorted(subtotals),
            )

    @staticmethod
    def _subtotals(balance: AccountBalance) -> list[ChildBalance]:
        if balance.child_balances:
            return balance.child_balances
        return [ChildBalance(balance.currency_code, balance.balance, balance.transaction_count)]

    async def _convert_balance(
        self, balance: AccountBalance, target: str
    ) -> tuple[Decimal, Decimal, Decimal]:
        amounts = (balance.balance, balance.monthly_income, balance.monthly_expenses)
        if balance.currency_code == target or not any(amounts):
            return amounts
        rate = await self.resolver.get_rate(balance.currency_code, target)
        return tuple(amount * rate for amount in amounts)

    async def get_net_worth(
        self, as_of: Optional[datetime] = None, default_currency: Optional[str] = None
    ) -> NetWorth:
        """Total the root accounts of each type in the default currency.

        Net worth is assets less liabilities; the equity, income and expense
        totals are reported alongside it.
        """
        default_currency = default_currency or self.default_currency
        accounts = self.db.list_accounts()
        balances = {b.account_id: b for b in await self.get_account_balances(as_of, default_currency)}
        active_ids = {a.id for a in accounts}
        roots = [a for a in accounts if a.parent_account_id not in active_ids]
        precision = self.currency_service.get_precision(default_currency)

        async def in_default(account: Account) -> Decimal:
            balance = balances[account.id]
            return (await self._convert_balance(balance, default_currency))[0]

        async def total(account_type: AccountType) -> Decimal:
            parts = await asyncio.gather(
                *(in_default(a) for a in roots if a.account_type == account_type)
            )
            return round_to_precision(sum(parts, ZERO), precision)

        assets, liabilities, equity, income, expenses = await asyncio.gather(
            total(AccountType.ASSET),
            total(AccountType.LIABILITY),
            total(AccountType.EQUITY),
            total(AccountType.INCOME),
            total(AccountType.EXPENSE),
        )
        return NetWorth(
            assets=assets,
            liabilities=liabilities,
            net_worth=assets - liabilities,
            currency_code=default_currency,
            equity=equity,
            income=income,
            expenses=expenses,
        )
