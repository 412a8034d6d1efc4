"""Duplicate grouping - core logic for spotting accidental repeat transactions"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Tuple

from loyalty_ledger.domain.models import DuplicateGroup, Transaction
from loyalty_ledger.utils.date_utils import ensure_utc

DEFAULT_WINDOW = timedelta(hours=24)

GroupIdentity = Tuple[str, str, int, str]


def _identity(txn: Transaction) -> GroupIdentity:
    return (txn.user_id, txn.type, txn.points, txn.description)


def _cluster(transactions: List[Transaction], window: timedelta) -> List[List[Transaction]]:
    """
    Split same-identity transactions into time clusters.

    A transaction joins the open cluster while it is within `window` of that
    cluster's first transaction; otherwise it opens a new one.
    """
    clusters: List[List[Transaction]] = []
    for txn in transactions:
        if clusters and ensure_utc(txn.created_at) - ensure_utc(clusters[-1][0].created_at) <= window:
            clusters[-1].append(txn)
        else:
            clusters.append([txn])
    return clusters


def group_duplicates(
    transactions: Iterable[Transaction],
    window: timedelta = DEFAULT_WINDOW,
) -> List[DuplicateGroup]:
    """
    Group transactions sharing (user, type, points, description) within a time window.

    Only groups with 2+ members are returned. Ids inside a group are in
    creation order, so the first id is always the original to keep.
    Groups are sorted by descending size, then by first timestamp.
    """
    by_identity: Dict[GroupIdentity, List[Transaction]] = defaultdict(list)
    for txn in transactions:
        by_identity[_identity(txn)].append(txn)

    groups: List[DuplicateGroup] = []
    for (user_id, txn_type, points, description), members in by_identity.items():
        members.sort(key=lambda t: (ensure_utc(t.created_at), t.id))
        for cluster in _cluster(members, window):
            if len(cluster) < 2:
                continue
            first_created_at = ensure_utc(cluster[0].created_at)
            groups.append(
                DuplicateGroup(
                    group_key=f"{user_id}|{txn_type}|{points}|{description}|{first_created_at.isoformat()}",
                    user_id=user_id,
                    type=txn_type,
                    points=points,
                    description=description,
                    transaction_ids=[t.id for t in cluster],
                    first_created_at=first_created_at,
                    last_created_at=ensure_utc(cluster[-1].created_at),
                )
            )

    groups.sort(key=lambda g: (-g.transaction_count, g.first_created_at))
    return groups


def excess_count(groups: Iterable[DuplicateGroup]) -> int:
    """Number of rows that would be removed to leave one original per group"""
    return sum(g.excess_count for g in groups)
