"""Monthly level calculator - pure tier logic, no I/O"""

from datetime import datetime
from typing import Iterable, Optional

from loyalty_ledger.domain.models import LevelInfo, Transaction
from loyalty_ledger.utils.date_utils import ensure_utc, start_of_month, utcnow

# Monthly points thresholds (lower bound of each tier)
SILVER_THRESHOLD = 2000
GOLD_THRESHOLD = 5000

LEVEL_MAP = {
    "bronze": {"name": "Bronze", "color": "#CD7F32"},
    "silver": {"name": "Silver", "color": "#C0C0C0"},
    "gold": {"name": "Gold", "color": "#FFD700"},
}


def monthly_points(transactions: Iterable[Transaction], now: Optional[datetime] = None) -> int:
    """
    Sum points earned in the current calendar month.

    Only positive transactions count, so redemptions never lower the tier.
    The window is [first instant of the month, now]; anything before the
    month or after `now` is ignored.
    """
    now = ensure_utc(now or utcnow())
    month_start = start_of_month(now)
    return sum(
        t.points for t in transactions
        if t.points > 0 and month_start <= ensure_utc(t.created_at) <= now
    )


def level_info(points: int) -> LevelInfo:
    """
    Derive tier and progress from monthly points.

    - gold:   points >= 5000, progress pinned at 5000/5000, no next tier
    - silver: 2000 <= points < 5000, progress measured from 2000 over a 3000 band
    - bronze: below 2000, progress over a 2000 band
    """
    if points >= GOLD_THRESHOLD:
        current_level, next_level = "gold", None
        current_progress = max_progress = GOLD_THRESHOLD
    elif points >= SILVER_THRESHOLD:
        current_level, next_level = "silver", "gold"
        current_progress = points - SILVER_THRESHOLD
        max_progress = GOLD_THRESHOLD - SILVER_THRESHOLD
    else:
        current_level, next_level = "bronze", "silver"
        current_progress = points
        max_progress = SILVER_THRESHOLD

    return LevelInfo(
        current_level=current_level,
        next_level=next_level,
        current_progress=current_progress,
        max_progress=max_progress,
        points_to_next_level=max_progress - current_progress if next_level else None,
        level_name=LEVEL_MAP[current_level]["name"],
        level_color=LEVEL_MAP[current_level]["color"],
    )
