"""RecentOperationTracker implementations"""

import threading
import time
from datetime import timedelta
from typing import Callable, Dict

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from loyalty_ledger.domain.exceptions import StoreError
from loyalty_ledger.infrastructure.database.models import RecentOperation
from loyalty_ledger.utils.date_utils import utcnow


class InMemoryRecentOperationTracker:
    """
    Process-local tracker with timed eviction.

    Only sound for a single service instance; use SqlRecentOperationTracker
    when several instances serve the same ledger.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expiry: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            del self._expiry[key]

    def claim(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            now = self._clock()
            self._evict(now)
            if key in self._expiry:
                return False
            self._expiry[key] = now + ttl_seconds
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._expiry.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._expiry.clear()


class SqlRecentOperationTracker:
    """Tracker stored in the recent_operations table, shared by every instance"""

    def __init__(self, db: Session):
        self.db = db

    def claim(self, key: str, ttl_seconds: int) -> bool:
        now = utcnow()
        try:
            # Expired claims are dropped on every claim, freeing this key too
            self.db.query(RecentOperation).filter(
                RecentOperation.expires_at <= now,
            ).delete(synchronize_session=False)
            self.db.execute(
                insert(RecentOperation).values(key=key, expires_at=now + timedelta(seconds=ttl_seconds))
            )
            self.db.commit()
            return True
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to claim operation {key}: {e}") from e

    def release(self, key: str) -> None:
        try:
            self.db.query(RecentOperation).filter(RecentOperation.key == key).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to release operation {key}: {e}") from e
