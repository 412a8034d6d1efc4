"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from loyalty_ledger.config import settings
from loyalty_ledger.domain.idempotency import RecentOperationTracker
from loyalty_ledger.infrastructure.cache.recent_operations import (
    InMemoryRecentOperationTracker,
    SqlRecentOperationTracker,
)
from loyalty_ledger.infrastructure.database.repositories import SqlLedgerStore
from loyalty_ledger.infrastructure.database.session import get_db
from loyalty_ledger.services.adjustments import AdjustmentService
from loyalty_ledger.services.auditor import BalanceAuditor
from loyalty_ledger.services.duplicate_detector import DuplicateDetector
from loyalty_ledger.services.reconciliation import ReconciliationEngine
from loyalty_ledger.services.stats import LoyaltyStatsService

# Shared by every request of this process
memory_tracker = InMemoryRecentOperationTracker()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_ledger_store(db: Session = Depends(get_db)) -> SqlLedgerStore:
    return SqlLedgerStore(db)


def get_recent_operation_tracker(db: Session = Depends(get_db)) -> RecentOperationTracker:
    """In-process tracker for a single instance, database-backed when several instances share the ledger"""
    if settings.recent_operations_backend == "database":
        return SqlRecentOperationTracker(db)
    return memory_tracker


def get_adjustment_service(
    store: SqlLedgerStore = Depends(get_ledger_store),
    tracker: RecentOperationTracker = Depends(get_recent_operation_tracker),
) -> AdjustmentService:
    return AdjustmentService(store, tracker)


def get_auditor(store: SqlLedgerStore = Depends(get_ledger_store)) -> BalanceAuditor:
    return BalanceAuditor(store)


def get_reconciliation_engine(store: SqlLedgerStore = Depends(get_ledger_store)) -> ReconciliationEngine:
    return ReconciliationEngine(store)


def get_duplicate_detector(store: SqlLedgerStore = Depends(get_ledger_store)) -> DuplicateDetector:
    return DuplicateDetector(store)


def get_stats_service(store: SqlLedgerStore = Depends(get_ledger_store)) -> LoyaltyStatsService:
    return LoyaltyStatsService(store)
