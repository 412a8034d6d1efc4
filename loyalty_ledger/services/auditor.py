"""Balance auditor - compares the cached balance with the ledger"""

import logging
from typing import Callable, Iterable, Optional
from datetime import datetime, timedelta

from loyalty_ledger.domain.duplicates import excess_count
from loyalty_ledger.domain.exceptions import AccountNotFoundError, StoreError
from loyalty_ledger.domain.models import (
    AUDIT_DISCREPANCY,
    AUDIT_ERROR,
    AUDIT_OK,
    AuditDetails,
    AuditResult,
    Transaction,
    TransactionSummary,
)
from loyalty_ledger.domain.ports import LedgerStore
from loyalty_ledger.infrastructure.observability.logging import log_audit
from loyalty_ledger.infrastructure.observability.metrics import audit_counter
from loyalty_ledger.services.duplicate_detector import DuplicateDetector
from loyalty_ledger.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def summarize(transactions: Iterable[Transaction]) -> TransactionSummary:
    """Earned (positive), redeemed (absolute negative) and net totals"""
    total_earned = 0
    total_redeemed = 0
    for t in transactions:
        if t.points > 0:
            total_earned += t.points
        else:
            total_redeemed += -t.points
    return TransactionSummary(
        total_earned=total_earned,
        total_redeemed=total_redeemed,
        net_balance=total_earned - total_redeemed,
    )


class BalanceAuditor:
    """Read-only check of the balance invariant for one account"""

    def __init__(
        self,
        store: LedgerStore,
        window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.detector = DuplicateDetector(store, window)
        self.clock = clock

    def audit(self, user_id: str) -> AuditResult:
        """
        Recompute the ledger balance and compare it with the cached one.

        Status is "ok" only when the difference and the duplicate excess are
        both zero. Read failures produce status "error" with zeroed numbers.
        """
        try:
            cached_balance = self.store.get_balance(user_id)
            transactions = self.store.query_transactions(user_id=user_id)
            groups = self.detector.find_duplicates(user_id)
        except (StoreError, AccountNotFoundError) as e:
            logger.error(f"Audit failed for {user_id}: {e}", extra={"user_id": user_id})
            audit_counter.labels(status=AUDIT_ERROR).inc()
            return self._error_result(user_id, str(e))

        summary = summarize(transactions)
        duplicates = excess_count(groups)
        difference = cached_balance - summary.net_balance
        status = AUDIT_OK if difference == 0 and duplicates == 0 else AUDIT_DISCREPANCY

        audit_counter.labels(status=status).inc()
        log_audit(user_id, status, difference, duplicates)

        return AuditResult(
            user_id=user_id,
            cached_balance=cached_balance,
            ledger_balance=summary.net_balance,
            difference=difference,
            duplicate_excess_count=duplicates,
            status=status,
            details=AuditDetails(
                total_earned=summary.total_earned,
                total_redeemed=summary.total_redeemed,
                audited_at=self.clock(),
            ),
        )

    def _error_result(self, user_id: str, message: str) -> AuditResult:
        return AuditResult(
            user_id=user_id,
            cached_balance=0,
            ledger_balance=0,
            difference=0,
            duplicate_excess_count=0,
            status=AUDIT_ERROR,
            details=AuditDetails(total_earned=0, total_redeemed=0, audited_at=self.clock()),
            error=message,
        )
