"""GET /v1/stats - loyalty program totals and top accounts"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from loyalty_ledger.api.dependencies import get_stats_service
from loyalty_ledger.api.v1.schemas import StatsResponse, UserRankingSchema
from loyalty_ledger.domain.exceptions import StoreError
from loyalty_ledger.services.stats import LoyaltyStatsService

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    limit: Optional[int] = Query(None, gt=0, le=100, description="Ranking size"),
    service: LoyaltyStatsService = Depends(get_stats_service),
):
    try:
        stats = service.get_stats()
        ranking = service.ranking(limit)
    except StoreError:
        raise HTTPException(status_code=503, detail="Ledger store unavailable, try again")

    return StatsResponse(
        total_users=stats.total_users,
        active_users=stats.active_users,
        total_points_in_circulation=stats.total_points_in_circulation,
        average_points_per_user=stats.average_points_per_user,
        top_user_points=stats.top_user_points,
        total_transactions=stats.total_transactions,
        ranking=[UserRankingSchema.model_validate(r) for r in ranking],
    )
