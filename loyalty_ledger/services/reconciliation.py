"""Reconciliation engine - removes duplicates and resyncs the cached balance"""

import logging
from datetime import timedelta
from typing import Optional

from loyalty_ledger.domain.exceptions import AccountNotFoundError, StoreError
from loyalty_ledger.domain.models import ReconciliationResult, SweepResult
from loyalty_ledger.domain.ports import LedgerStore
from loyalty_ledger.infrastructure.observability.logging import log_reconciliation
from loyalty_ledger.infrastructure.observability.metrics import record_reconciliation
from loyalty_ledger.services.duplicate_detector import SCOPE_ALL, DuplicateDetector

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """The ledger is authoritative; the cached balance is repaired to match it"""

    def __init__(self, store: LedgerStore, window: Optional[timedelta] = None):
        self.store = store
        self.detector = DuplicateDetector(store, window)

    def reconcile(self, user_id: str) -> ReconciliationResult:
        """
        Repair one account.

        Flow:
        1. Find the user's duplicate groups
        2. Delete every transaction of a group except the earliest
        3. Re-read the ledger as it now stands and sum it
        4. Overwrite the cached balance if it differs from that sum

        A failed deletion does not stop the run: steps 3-4 always work from
        what the store actually holds. Running twice in a row changes
        nothing the second time.

        Raises:
            StoreError: if the ledger or balance cannot be read or written in steps 1, 3, 4
            AccountNotFoundError: if the user has no balance row
        """
        groups = self.detector.find_duplicates(user_id)

        duplicates_removed = 0
        errors = []
        for group in groups:
            try:
                duplicates_removed += self.store.delete_transactions(group.excess_ids)
            except StoreError as e:
                logger.error(
                    f"Failed to delete duplicates for group {group.group_key}: {e}",
                    extra={"user_id": user_id, "group_key": group.group_key},
                )
                errors.append(f"{group.group_key}: {e}")

        ledger_balance = sum(t.points for t in self.store.query_transactions(user_id=user_id))
        cached_balance = self.store.get_balance(user_id)

        balance_adjusted = 0
        if ledger_balance != cached_balance:
            self.store.set_balance(user_id, ledger_balance)
            balance_adjusted = ledger_balance - cached_balance

        record_reconciliation(duplicates_removed, balance_adjusted)
        log_reconciliation(user_id, duplicates_removed, balance_adjusted, len(errors))

        return ReconciliationResult(
            user_id=user_id,
            duplicates_removed=duplicates_removed,
            balance_adjusted=balance_adjusted,
            errors=errors,
        )

    def sweep(self, dry_run: bool = True) -> SweepResult:
        """
        Ledger-wide duplicate cleanup.

        In dry-run mode only the duplicate groups are reported. Otherwise
        every affected account is reconciled, so balances stay in step with
        the rows that were removed.
        """
        groups = self.detector.find_duplicates(SCOPE_ALL)
        result = SweepResult(dry_run=dry_run, groups=groups)
        if dry_run:
            return result

        for user_id in sorted({g.user_id for g in groups}):
            try:
                reconciled = self.reconcile(user_id)
            except (StoreError, AccountNotFoundError) as e:
                logger.error(f"Sweep could not reconcile {user_id}: {e}", extra={"user_id": user_id})
                result.errors.append(f"{user_id}: {e}")
                continue
            result.users_reconciled += 1
            result.duplicates_removed += reconciled.duplicates_removed

        logger.info(
            f"Duplicate sweep removed {result.duplicates_removed} transactions",
            extra={"users_reconciled": result.users_reconciled},
        )
        return result
