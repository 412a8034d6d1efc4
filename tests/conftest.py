"""Pytest fixtures for testing"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from loyalty_ledger.api.dependencies import memory_tracker
from loyalty_ledger.api.main import create_app
from loyalty_ledger.domain.models import Transaction
from loyalty_ledger.infrastructure.cache.recent_operations import InMemoryRecentOperationTracker
from loyalty_ledger.infrastructure.database.models import Base
from loyalty_ledger.infrastructure.database.repositories import SqlLedgerStore
from loyalty_ledger.infrastructure.database.session import build_engine, get_db, init_db


# Test database
TEST_DATABASE_URL = "sqlite://"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE_TIME = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that moves only when told to"""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def _make_transaction(
    user_id: str = "u1",
    points: int = 100,
    type: str = "purchase",
    description: str = "x",
    created_at: datetime = BASE_TIME,
    **kwargs,
) -> Transaction:
    return Transaction(
        id=kwargs.pop("id", str(uuid.uuid4())),
        user_id=user_id,
        points=points,
        type=type,
        description=description,
        created_at=created_at,
        **kwargs,
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    init_db(engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_txn():
    """Factory for ledger rows; defaults to a 100 point purchase by u1 at BASE_TIME"""
    return _make_transaction


@pytest.fixture
def store(db: Session) -> SqlLedgerStore:
    return SqlLedgerStore(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker() -> InMemoryRecentOperationTracker:
    return InMemoryRecentOperationTracker()


@pytest.fixture
def seed(store: SqlLedgerStore):
    """Write raw ledger rows and a cached balance, bypassing the adjustment service"""

    def _seed(user_id: str, transactions: List[Transaction], cached_balance: int) -> None:
        store.create_account(user_id)
        for txn in transactions:
            store.insert_transaction(txn)
        store.set_balance(user_id, cached_balance)

    return _seed


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    memory_tracker.clear()
    return TestClient(app)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME
