"""Duplicate detector - advisory scan of the ledger, never mutates"""

from datetime import timedelta
from typing import List, Optional

from loyalty_ledger.config import settings
from loyalty_ledger.domain.duplicates import group_duplicates
from loyalty_ledger.domain.models import DuplicateGroup
from loyalty_ledger.domain.ports import LedgerStore

SCOPE_ALL = "all"


class DuplicateDetector:
    def __init__(self, store: LedgerStore, window: Optional[timedelta] = None):
        self.store = store
        self.window = window or timedelta(hours=settings.duplicate_window_hours)

    def find_duplicates(self, scope: str = SCOPE_ALL) -> List[DuplicateGroup]:
        """
        Find duplicate groups for one user or for the whole ledger.

        Args:
            scope: "all" or a user id

        Raises:
            StoreError: if the ledger cannot be read
        """
        user_id = None if scope == SCOPE_ALL else scope
        transactions = self.store.query_transactions(user_id=user_id)
        return group_duplicates(transactions, self.window)
