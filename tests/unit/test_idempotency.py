"""Unit tests for idempotency tokens and recent-operation trackers"""

from sqlalchemy import func

from loyalty_ledger.domain.idempotency import format_description, operation_key
from loyalty_ledger.infrastructure.database.models import RecentOperation
from loyalty_ledger.infrastructure.cache.recent_operations import (
    InMemoryRecentOperationTracker,
    SqlRecentOperationTracker,
)


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_format_description_appends_token():
    assert format_description("Birthday bonus", "tok-1") == "Birthday bonus [tok-1]"
    assert format_description("  Birthday bonus ", None) == "Birthday bonus"


def test_operation_key_is_scoped_to_user():
    assert operation_key("u1", "tok") != operation_key("u2", "tok")


def test_memory_tracker_rejects_second_claim_within_ttl():
    clock = ManualClock()
    tracker = InMemoryRecentOperationTracker(clock=clock)

    assert tracker.claim("k", ttl_seconds=300) is True
    assert tracker.claim("k", ttl_seconds=300) is False

    clock.now += 301
    assert tracker.claim("k", ttl_seconds=300) is True


def test_memory_tracker_evicts_expired_entries():
    clock = ManualClock()
    tracker = InMemoryRecentOperationTracker(clock=clock)
    tracker.claim("a", ttl_seconds=10)
    tracker.claim("b", ttl_seconds=100)

    clock.now += 50

    assert tracker.claim("a", ttl_seconds=10) is True
    assert tracker.claim("b", ttl_seconds=100) is False


def test_memory_tracker_release():
    tracker = InMemoryRecentOperationTracker()
    tracker.claim("k", ttl_seconds=300)
    tracker.release("k")

    assert tracker.claim("k", ttl_seconds=300) is True


def test_sql_tracker_claim_and_release(db):
    tracker = SqlRecentOperationTracker(db)

    assert tracker.claim("k", ttl_seconds=300) is True
    assert tracker.claim("k", ttl_seconds=300) is False

    tracker.release("k")
    assert tracker.claim("k", ttl_seconds=300) is True


def test_sql_tracker_shared_between_sessions(db):
    """Two tracker instances over the same database see each other's claims"""
    first = SqlRecentOperationTracker(db)
    second = SqlRecentOperationTracker(db)

    assert first.claim("shared", ttl_seconds=300) is True
    assert second.claim("shared", ttl_seconds=300) is False


def test_sql_tracker_expired_claim_can_be_retaken(db):
    tracker = SqlRecentOperationTracker(db)

    assert tracker.claim("k", ttl_seconds=0) is True
    assert tracker.claim("k", ttl_seconds=300) is True


def test_sql_tracker_drops_expired_claims_of_other_keys(db):
    """Old tokens do not pile up in recent_operations"""
    tracker = SqlRecentOperationTracker(db)
    for i in range(50):
        tracker.claim(f"old-{i}", ttl_seconds=0)

    assert tracker.claim("other", ttl_seconds=300) is True

    remaining = db.query(RecentOperation.key).all()
    assert [key for (key,) in remaining] == ["other"]
    assert db.query(func.count(RecentOperation.key)).scalar() == 1
