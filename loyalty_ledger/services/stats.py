"""Loyalty program statistics for the admin dashboard"""

from typing import List, Optional

from loyalty_ledger.config import settings
from loyalty_ledger.domain.models import LoyaltyStats, UserRanking
from loyalty_ledger.domain.ports import LedgerStore


class LoyaltyStatsService:
    def __init__(self, store: LedgerStore):
        self.store = store

    def get_stats(self) -> LoyaltyStats:
        """Program-wide totals computed from cached balances"""
        balances = [b.balance for b in self.store.list_balances()]
        total_users = len(balances)
        total_points = sum(balances)
        return LoyaltyStats(
            total_users=total_users,
            active_users=sum(1 for b in balances if b > 0),
            total_points_in_circulation=total_points,
            average_points_per_user=round(total_points / total_users) if total_users else 0,
            top_user_points=max(balances, default=0),
            total_transactions=self.store.count_transactions(),
        )

    def ranking(self, limit: Optional[int] = None) -> List[UserRanking]:
        """Accounts ordered by cached balance, highest first"""
        limit = limit or settings.ranking_limit
        counts = self.store.count_transactions_by_user()
        return [
            UserRanking(user_id=b.user_id, balance=b.balance, transaction_count=counts.get(b.user_id, 0))
            for b in self.store.list_balances()[:limit]
        ]
