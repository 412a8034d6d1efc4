"""Unit tests for monthly level calculation"""

from datetime import datetime, timedelta, timezone

from loyalty_ledger.domain.levels import level_info, monthly_points


NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


def test_level_info_bronze_upper_boundary():
    """1999 points is still bronze, one point short of silver"""
    info = level_info(1999)

    assert info.current_level == "bronze"
    assert info.next_level == "silver"
    assert info.current_progress == 1999
    assert info.max_progress == 2000
    assert info.points_to_next_level == 1


def test_level_info_silver_lower_boundary():
    info = level_info(2000)

    assert info.current_level == "silver"
    assert info.next_level == "gold"
    assert info.current_progress == 0
    assert info.max_progress == 3000
    assert info.points_to_next_level == 3000


def test_level_info_silver_mid_band():
    info = level_info(3500)

    assert info.current_progress == 1500
    assert info.points_to_next_level == 1500


def test_level_info_gold_has_no_next_tier():
    info = level_info(5000)

    assert info.current_level == "gold"
    assert info.next_level is None
    assert info.current_progress == 5000
    assert info.max_progress == 5000
    assert info.points_to_next_level is None
    assert info.level_name == "Gold"
    assert info.level_color == "#FFD700"


def test_level_info_gold_is_pinned_above_threshold():
    """Progress does not grow past the gold ceiling"""
    assert level_info(12000).current_progress == 5000


def test_level_info_zero_points():
    info = level_info(0)

    assert info.current_level == "bronze"
    assert info.current_progress == 0
    assert info.points_to_next_level == 2000


def test_monthly_points_only_counts_current_month(make_txn):
    """Transactions of last month, from the future and redemptions are excluded"""
    transactions = [
        make_txn(points=500, created_at=datetime(2026, 10, 1, 0, 0, tzinfo=timezone.utc)),
        make_txn(points=300, created_at=NOW - timedelta(hours=1)),
        make_txn(points=-200, created_at=NOW - timedelta(days=2)),
        make_txn(points=9000, created_at=datetime(2026, 9, 30, 23, 59, 59, tzinfo=timezone.utc)),
        make_txn(points=700, created_at=NOW + timedelta(minutes=5)),
    ]

    assert monthly_points(transactions, NOW) == 800


def test_monthly_points_empty():
    assert monthly_points([], NOW) == 0


def test_monthly_points_accepts_naive_utc_timestamps(make_txn):
    transactions = [make_txn(points=250, created_at=datetime(2026, 10, 5, 9, 0))]

    assert monthly_points(transactions, NOW) == 250


def test_redemptions_do_not_lower_the_tier(make_txn):
    """3000 earned and 1500 redeemed this month is still silver on 3000"""
    transactions = [
        make_txn(points=3000, created_at=NOW - timedelta(days=3)),
        make_txn(points=-1500, type="redemption", created_at=NOW - timedelta(days=1)),
    ]

    points = monthly_points(transactions, NOW)
    info = level_info(points)

    assert points == 3000
    assert info.current_level == "silver"
    assert info.current_progress == 1000


def test_monthly_level_is_deterministic(make_txn):
    """Same transactions and same now always give the same level"""
    transactions = [
        make_txn(points=1500, created_at=NOW - timedelta(days=3)),
        make_txn(points=1000, created_at=NOW - timedelta(days=1)),
    ]

    first = level_info(monthly_points(transactions, NOW))
    second = level_info(monthly_points(transactions, NOW))

    assert first == second
    assert first.current_level == "silver"
    assert first.current_progress == 500
