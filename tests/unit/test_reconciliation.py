"""Unit tests for the reconciliation engine and duplicate detector"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from loyalty_ledger.domain.duplicates import excess_count
from loyalty_ledger.domain.exceptions import AccountNotFoundError, StoreError
from loyalty_ledger.infrastructure.database.repositories import SqlLedgerStore
from loyalty_ledger.services.auditor import BalanceAuditor
from loyalty_ledger.services.duplicate_detector import DuplicateDetector
from loyalty_ledger.services.reconciliation import ReconciliationEngine


@pytest.fixture
def duplicated_ledger(seed, make_txn, base_time):
    """u1: one purchase written three times, one legit order, cache far off"""
    seed(
        "u1",
        [
            make_txn(id="dup-1", points=200, description="Order 77", created_at=base_time),
            make_txn(id="dup-2", points=200, description="Order 77", created_at=base_time + timedelta(seconds=1)),
            make_txn(id="dup-3", points=200, description="Order 77", created_at=base_time + timedelta(seconds=3)),
            make_txn(id="order-78", points=50, description="Order 78", created_at=base_time + timedelta(days=2)),
        ],
        cached_balance=1000,
    )


def test_detector_scopes(store, seed, make_txn, base_time, duplicated_ledger):
    seed(
        "u2",
        [make_txn(user_id="u2", points=5), make_txn(user_id="u2", points=5, created_at=base_time + timedelta(minutes=1))],
        cached_balance=10,
    )
    detector = DuplicateDetector(store)

    assert len(detector.find_duplicates("all")) == 2
    assert [g.user_id for g in detector.find_duplicates("u2")] == ["u2"]
    assert excess_count(detector.find_duplicates("u1")) == 2


def test_detector_never_mutates(store, duplicated_ledger):
    DuplicateDetector(store).find_duplicates("all")

    assert store.count_transactions("u1") == 4


def test_reconcile_keeps_earliest_and_fixes_balance(store, duplicated_ledger):
    result = ReconciliationEngine(store).reconcile("u1")

    remaining = [t.id for t in store.query_transactions(user_id="u1")]
    assert remaining == ["dup-1", "order-78"]
    assert result.duplicates_removed == 2
    assert result.balance_adjusted == 250 - 1000
    assert store.get_balance("u1") == 250
    assert result.errors == []


def test_reconcile_is_idempotent(store, duplicated_ledger):
    engine = ReconciliationEngine(store)
    engine.reconcile("u1")

    second = engine.reconcile("u1")

    assert second.duplicates_removed == 0
    assert second.balance_adjusted == 0


def test_audit_is_ok_after_reconcile(store, duplicated_ledger):
    ReconciliationEngine(store).reconcile("u1")

    assert BalanceAuditor(store).audit("u1").status == "ok"


@pytest.mark.parametrize("cached_balance", [-500, 0, 249, 250, 251, 10_000])
def test_ledger_is_truth_for_any_cached_balance(store, seed, make_txn, base_time, cached_balance):
    seed(
        "u1",
        [make_txn(points=300), make_txn(points=-50, type="redemption", created_at=base_time + timedelta(hours=1))],
        cached_balance=cached_balance,
    )

    result = ReconciliationEngine(store).reconcile("u1")

    assert result.balance_adjusted == 250 - cached_balance
    assert BalanceAuditor(store).audit("u1").status == "ok"


def test_failed_deletion_still_resyncs_from_actual_ledger(store, seed, make_txn, base_time):
    """One group's delete fails; the balance is computed from what is really left"""
    seed(
        "u1",
        [
            make_txn(id="a1", points=100, description="A", created_at=base_time),
            make_txn(id="a2", points=100, description="A", created_at=base_time + timedelta(seconds=1)),
            make_txn(id="b1", points=30, description="B", created_at=base_time + timedelta(days=5)),
            make_txn(id="b2", points=30, description="B", created_at=base_time + timedelta(days=5, seconds=1)),
        ],
        cached_balance=0,
    )
    real_delete = SqlLedgerStore.delete_transactions

    def flaky_delete(self, ids):
        ids = list(ids)
        if ids == ["a2"]:
            raise StoreError("timeout")
        return real_delete(self, ids)

    with patch.object(SqlLedgerStore, "delete_transactions", flaky_delete):
        result = ReconciliationEngine(store).reconcile("u1")

    assert result.duplicates_removed == 1
    assert len(result.errors) == 1
    # a2 survived, so the ledger is 100 + 100 + 30
    assert store.get_balance("u1") == 230
    assert result.balance_adjusted == 230

    followup = ReconciliationEngine(store).reconcile("u1")
    assert followup.duplicates_removed == 1
    assert store.get_balance("u1") == 130


def test_reconcile_unknown_account(store):
    with pytest.raises(AccountNotFoundError):
        ReconciliationEngine(store).reconcile("ghost")


def test_sweep_dry_run_changes_nothing(store, duplicated_ledger):
    result = ReconciliationEngine(store).sweep(dry_run=True)

    assert result.dry_run is True
    assert len(result.groups) == 1
    assert result.duplicates_removed == 0
    assert store.count_transactions("u1") == 4
    assert store.get_balance("u1") == 1000


def test_sweep_reconciles_affected_users(store, seed, make_txn, base_time, duplicated_ledger):
    seed("u2", [make_txn(user_id="u2", points=5)], cached_balance=99)

    result = ReconciliationEngine(store).sweep(dry_run=False)

    assert result.users_reconciled == 1
    assert result.duplicates_removed == 2
    assert store.get_balance("u1") == 250
    # u2 had no duplicates and is left for its own audit
    assert store.get_balance("u2") == 99
