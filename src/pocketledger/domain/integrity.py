"""Balance integrity checks.

Compares the running balance stored on each account's latest transaction
with a full recomputation from its history, and repairs accounts that
disagree by rebuilding them from scratch.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import structlog

from pocketledger.database.base import Database
from pocketledger.domain.balance import BalanceService
from pocketledger.domain.constants import BALANCE_EPSILON
from pocketledger.domain.errors import DomainError, NotFoundError, account_not_found
from pocketledger.domain.rebuild import AccountingRebuildService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BalanceVerification:
    account_id: int
    account_name: str
    cached_balance: Optional[Decimal]
    computed_balance: Decimal
    matches: bool
    discrepancy: Optional[Decimal]


@dataclass
class IntegrityReport:
    total_accounts: int = 0
    accounts_checked: int = 0
    discrepancies_found: int = 0
    repairs_attempted: int = 0
    repairs_successful: int = 0
    results: list[BalanceVerification] = field(default_factory=list)


class IntegrityService:
    """Service for detecting and repairing stale running balances."""

    def __init__(
        self,
        db: Database,
        balance_service: BalanceService,
        rebuilder: Optional[AccountingRebuildService] = None,
    ):
        self.db = db
        self.balance_service = balance_service
        self.rebuilder = rebuilder or AccountingRebuildService(db, balance_service.currency_service)

    def verify_account_balance(self, account_id: int) -> BalanceVerification:
        """Compare the stored running balance with a full recomputation.

        A latest transaction without a running balance (rebuild pending)
        never matches.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        latest = self.db.find_latest_for_account(account_id)
        computed = self.balance_service.get_account_balance(account_id).balance
        if latest is None:
            cached: Optional[Decimal] = Decimal("0")
        else:
            cached = latest.running_balance

        if cached is None:
            return BalanceVerification(account_id, account.name, None, computed, False, None)

        discrepancy = abs(cached - computed)
        return BalanceVerification(
            account_id=account_id,
            account_name=account.name,
            cached_balance=cached,
            computed_balance=computed,
            matches=discrepancy < BALANCE_EPSILON,
            discrepancy=discrepancy,
        )

    def verify_all_account_balances(self) -> list[BalanceVerification]:
        """Verify every active account; accounts that fail to load are logged and skipped."""
        results = []
        for account in self.db.list_accounts():
            try:
                results.append(self.verify_account_balance(account.id))
            except DomainError as e:
                logger.error("integrity_verify_failed", account_id=account.id, error=str(e))
        return results

    def repair_account_balance(self, account_id: int) -> bool:
        """Rebuild an account's running balances from its first transaction."""
        try:
            updated = self.rebuilder.rebuild_account_balances(account_id, None)
        except Exception:
            logger.exception("integrity_repair_failed", account_id=account_id)
            return False
        logger.info("integrity_repaired", account_id=account_id, updated=updated)
        return True

    def run_startup_check(self) -> IntegrityReport:
        """Verify all accounts and repair the ones that disagree."""
        logger.info("integrity_check_started")
        report = IntegrityReport(total_accounts=len(self.db.list_accounts()))
        report.results = self.verify_all_account_balances()
        report.accounts_checked = len(report.results)

        for result in report.results:
            if result.matches:
                continue
            report.discrepancies_found += 1
            logger.warning(
                "integrity_discrepancy",
                account_id=result.account_id,
                account_name=result.account_name,
                cached=str(result.cached_balance),
                computed=str(result.computed_balance),
            )
            report.repairs_attempted += 1
            if self.repair_account_balance(result.account_id):
                report.repairs_successful += 1

        logger.info(
            "integrity_check_finished",
            checked=report.accounts_checked,
            discrepancies=report.discrepancies_found,
            repaired=report.repairs_successful,
        )
        return report
