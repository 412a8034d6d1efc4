"""Adjustment service - the only writer of new point transactions"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from loyalty_ledger.config import settings
from loyalty_ledger.domain.exceptions import DuplicateRejected, StoreError, ValidationError
from loyalty_ledger.domain.idempotency import RecentOperationTracker, format_description, operation_key
from loyalty_ledger.domain.models import AdjustmentResult, Transaction
from loyalty_ledger.domain.ports import LedgerStore
from loyalty_ledger.infrastructure.observability.logging import (
    log_adjustment,
    log_adjustment_rejected,
    log_partial_write,
)
from loyalty_ledger.infrastructure.observability.metrics import partial_write_counter, record_adjustment
from loyalty_ledger.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

CREDIT = "credit"
DEBIT = "debit"
ADJUSTMENT_KINDS = (CREDIT, DEBIT)

DEFAULT_TRANSACTION_TYPE = "adjustment"


def signed_points(kind: str, amount: int) -> int:
    """Stored value of an adjustment: +amount for credit, -amount for debit"""
    return amount if kind == CREDIT else -amount


class AdjustmentService:
    """
    Validates, de-duplicates and writes point adjustments.

    The write is two store round trips: insert the transaction, then apply
    the signed delta to the cached balance at the store. A failure between
    them is reported, not rolled back; audit + reconcile repairs it.
    """

    def __init__(
        self,
        store: LedgerStore,
        tracker: RecentOperationTracker,
        clock: Callable[[], datetime] = utcnow,
        near_duplicate_window: Optional[timedelta] = None,
        idempotency_window_seconds: Optional[int] = None,
        debit_check_uses_ledger: Optional[bool] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.clock = clock
        self.near_duplicate_window = near_duplicate_window or timedelta(
            seconds=settings.near_duplicate_window_seconds
        )
        self.idempotency_window_seconds = idempotency_window_seconds or settings.idempotency_window_seconds
        self.debit_check_uses_ledger = (
            settings.debit_check_uses_ledger if debit_check_uses_ledger is None else debit_check_uses_ledger
        )

    def submit_adjustment(
        self,
        user_id: str,
        kind: str,
        amount: int,
        reason: str,
        idempotency_token: Optional[str] = None,
        transaction_type: str = DEFAULT_TRANSACTION_TYPE,
        reference_id: Optional[str] = None,
    ) -> AdjustmentResult:
        """
        Credit or debit an account.

        Raises:
            ValidationError: bad input or a debit above the cached balance
            DuplicateRejected: token already seen/persisted, or the same
                adjustment was written within the near-duplicate window
            StoreError: insert or balance delta failed
            AccountNotFoundError: the user has no balance row
        """
        try:
            self._validate(user_id, kind, amount, reason)
        except ValidationError as e:
            self._reject(user_id, kind, "invalid", e)
            raise

        claimed_key = None
        if idempotency_token:
            key = operation_key(user_id, idempotency_token)
            if not self.tracker.claim(key, self.idempotency_window_seconds):
                error = DuplicateRejected(f"Adjustment with token {idempotency_token} is already being processed")
                self._reject(user_id, kind, "duplicate", error)
                raise error
            claimed_key = key

        try:
            result = self._write(user_id, kind, amount, reason, idempotency_token, transaction_type, reference_id)
        except Exception:
            # Let a legitimate retry with the same token through
            if claimed_key is not None:
                self._release(claimed_key, user_id)
            raise

        return result

    def _release(self, key: str, user_id: str) -> None:
        """Release a claim without masking the error that triggered it; the claim then expires on its own"""
        try:
            self.tracker.release(key)
        except StoreError as e:
            logger.error(f"Failed to release claim {key}: {e}", extra={"user_id": user_id, "step": "release_claim"})

    def _validate(self, user_id: str, kind: str, amount: int, reason: str) -> None:
        if not user_id or not str(user_id).strip():
            raise ValidationError("user_id is required")
        if kind not in ADJUSTMENT_KINDS:
            raise ValidationError(f"kind must be one of {ADJUSTMENT_KINDS}, got {kind!r}")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"amount must be a positive integer, got {amount!r}")
        if not reason or not reason.strip():
            raise ValidationError("reason is required")

    def _write(
        self,
        user_id: str,
        kind: str,
        amount: int,
        reason: str,
        idempotency_token: Optional[str],
        transaction_type: str,
        reference_id: Optional[str],
    ) -> AdjustmentResult:
        points = signed_points(kind, amount)
        now = self.clock()

        try:
            self._check_duplicates(user_id, transaction_type, points, idempotency_token, now)
            # Also confirms the account exists before anything is written
            cached_balance = self.store.get_balance(user_id)
            if kind == DEBIT:
                self._check_balance(user_id, amount, cached_balance)
        except DuplicateRejected as e:
            self._reject(user_id, kind, "duplicate", e)
            raise
        except ValidationError as e:
            self._reject(user_id, kind, "invalid", e)
            raise

        transaction = Transaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            points=points,
            type=transaction_type,
            description=format_description(reason, idempotency_token),
            reference_id=reference_id,
            idempotency_key=idempotency_token,
            created_at=now,
        )

        try:
            self.store.insert_transaction(transaction)
        except DuplicateRejected as e:
            # Unique idempotency_key lost a race with a concurrent writer
            self._reject(user_id, kind, "duplicate", e)
            raise
        except StoreError:
            record_adjustment(kind, "store_error")
            raise

        try:
            new_balance = self.store.apply_balance_delta(user_id, points)
        except StoreError as e:
            partial_write_counter.inc()
            record_adjustment(kind, "store_error")
            log_partial_write(user_id, transaction.id, points, str(e))
            raise

        record_adjustment(kind, "written")
        log_adjustment(user_id, transaction.id, points, new_balance)
        return AdjustmentResult(transaction=transaction, new_balance=new_balance)

    def _check_duplicates(
        self,
        user_id: str,
        transaction_type: str,
        points: int,
        idempotency_token: Optional[str],
        now: datetime,
    ) -> None:
        if idempotency_token and self.store.find_by_idempotency_key(user_id, idempotency_token) is not None:
            raise DuplicateRejected(f"Adjustment with token {idempotency_token} was already processed")

        recent = self.store.query_transactions(
            user_id=user_id,
            type=transaction_type,
            since=now - self.near_duplicate_window,
        )
        if any(t.points == points for t in recent):
            raise DuplicateRejected(
                f"Identical {transaction_type} of {points} points was recorded in the last "
                f"{int(self.near_duplicate_window.total_seconds())}s"
            )

    def _check_balance(self, user_id: str, amount: int, cached_balance: int) -> None:
        balance = cached_balance
        if self.debit_check_uses_ledger:
            balance = sum(t.points for t in self.store.query_transactions(user_id=user_id))
        if amount > balance:
            raise ValidationError(f"Insufficient balance: {balance} points available, {amount} requested")

    def _reject(self, user_id: str, kind: str, outcome: str, error: Exception) -> None:
        label = kind if kind in ADJUSTMENT_KINDS else "unknown"
        record_adjustment(label, outcome)
        log_adjustment_rejected(user_id, outcome, str(error))
