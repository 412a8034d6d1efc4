"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionSchema(BaseModel):
    """Single ledger row"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    points: int
    type: str
    description: str
    reference_id: Optional[str] = None
    created_at: datetime


class TransactionSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_earned: int
    total_redeemed: int
    net_balance: int


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    user_id: str = Field(..., min_length=1, description="Account identifier")


class AccountResponse(BaseModel):
    user_id: str
    balance: int


class PointsResponse(BaseModel):
    """Response for GET /v1/accounts/{user_id}/points"""

    user_id: str
    balance: int
    summary: TransactionSummarySchema
    transactions: List[TransactionSchema]


class LevelResponse(BaseModel):
    """Response for GET /v1/accounts/{user_id}/level"""

    user_id: str
    monthly_points: int
    current_level: str
    next_level: Optional[str] = None
    current_progress: int
    max_progress: int
    points_to_next_level: Optional[int] = None
    level_name: str
    level_color: str


class AdjustmentRequest(BaseModel):
    """Request body for POST /v1/accounts/{user_id}/adjustments"""

    kind: Literal["credit", "debit"]
    amount: int = Field(..., gt=0, description="Points to credit or debit")
    reason: str = Field(..., min_length=1)
    idempotency_token: Optional[str] = Field(None, min_length=1, max_length=128)
    type: str = Field("adjustment", min_length=1, description="Transaction category")
    reference_id: Optional[str] = None


class AdjustmentResponse(BaseModel):
    transaction: TransactionSchema
    new_balance: int


class AuditDetailsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_earned: int
    total_redeemed: int
    audited_at: datetime


class AuditResponse(BaseModel):
    """Response for GET /v1/accounts/{user_id}/audit"""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    cached_balance: int
    ledger_balance: int
    difference: int
    duplicate_excess_count: int
    status: Literal["ok", "discrepancy", "error"]
    details: AuditDetailsSchema
    error: Optional[str] = None


class ReconcileResponse(BaseModel):
    """Response for POST /v1/accounts/{user_id}/reconcile"""

    user_id: str
    duplicates_removed: int
    balance_adjusted: int
    errors: List[str] = []
    audit: AuditResponse


class DuplicateGroupSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_key: str
    user_id: str
    type: str
    points: int
    description: str
    transaction_count: int
    transaction_ids: List[str]
    first_created_at: datetime
    last_created_at: datetime


class DuplicatesResponse(BaseModel):
    """Response for GET /v1/duplicates"""

    scope: str
    group_count: int
    excess_count: int
    groups: List[DuplicateGroupSchema]


class SweepRequest(BaseModel):
    dry_run: bool = True


class SweepResponse(BaseModel):
    dry_run: bool
    group_count: int
    users_reconciled: int
    duplicates_removed: int
    errors: List[str] = []
    groups: List[DuplicateGroupSchema]


class UserRankingSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    balance: int
    transaction_count: int


class StatsResponse(BaseModel):
    """Response for GET /v1/stats"""

    total_users: int
    active_users: int
    total_points_in_circulation: int
    average_points_per_user: int
    top_user_points: int
    total_transactions: int
    ranking: List[UserRankingSchema]
