"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from loyalty_ledger.domain.exceptions import AuditError


AUDIT_OK = "ok"
AUDIT_DISCREPANCY = "discrepancy"
AUDIT_ERROR = "error"


@dataclass(frozen=True)
class Transaction:
    """Single row of the points ledger"""

    id: str
    user_id: str
    points: int  # positive = credit, negative = debit
    type: str
    description: str
    created_at: datetime
    reference_id: Optional[str] = None
    idempotency_key: Optional[str] = None


@dataclass
class AccountBalance:
    """Cached per-user balance"""

    user_id: str
    balance: int = 0
    updated_at: Optional[datetime] = None


@dataclass
class DuplicateGroup:
    """Transactions sharing user, type, points and description inside one time window"""

    group_key: str
    user_id: str
    type: str
    points: int
    description: str
    transaction_ids: List[str]
    first_created_at: datetime
    last_created_at: datetime

    @property
    def transaction_count(self) -> int:
        return len(self.transaction_ids)

    @property
    def excess_count(self) -> int:
        return max(self.transaction_count - 1, 0)

    @property
    def excess_ids(self) -> List[str]:
        """Every id except the kept original"""
        return self.transaction_ids[1:]


@dataclass
class AdjustmentResult:
    transaction: Transaction
    new_balance: int


@dataclass
class AuditDetails:
    total_earned: int
    total_redeemed: int
    audited_at: datetime


@dataclass
class AuditResult:
    """Outcome of comparing the cached balance with the ledger"""

    user_id: str
    cached_balance: int
    ledger_balance: int
    difference: int
    duplicate_excess_count: int
    status: str  # "ok" | "discrepancy" | "error"
    details: AuditDetails
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status == AUDIT_OK

    def raise_for_status(self) -> None:
        if self.status == AUDIT_ERROR:
            raise AuditError(f"Audit for {self.user_id} failed: {self.error}")


@dataclass
class ReconciliationResult:
    user_id: str
    duplicates_removed: int
    balance_adjusted: int
    errors: List[str] = field(default_factory=list)


@dataclass
class SweepResult:
    dry_run: bool
    groups: List[DuplicateGroup]
    users_reconciled: int = 0
    duplicates_removed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class TransactionSummary:
    total_earned: int
    total_redeemed: int
    net_balance: int


@dataclass
class LevelInfo:
    """Monthly gamification tier and progress inside it"""

    current_level: str
    next_level: Optional[str]
    current_progress: int
    max_progress: int
    points_to_next_level: Optional[int]
    level_name: str
    level_color: str


@dataclass
class LoyaltyStats:
    total_users: int
    active_users: int
    total_points_in_circulation: int
    average_points_per_user: int
    top_user_points: int
    total_transactions: int


@dataclass
class UserRanking:
    user_id: str
    balance: int
    transaction_count: int
