"""Storage contract the ledger services depend on"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from loyalty_ledger.domain.models import AccountBalance, Transaction


class LedgerStore(Protocol):
    """
    Row store holding point transactions and cached balances.

    Every method is a single round trip to the backing store and raises
    StoreError when that round trip fails.
    """

    def create_account(self, user_id: str) -> int:
        ...

    def insert_transaction(self, transaction: Transaction) -> Transaction:
        ...

    def query_transactions(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Transaction]:
        ...

    def find_by_idempotency_key(self, user_id: str, key: str) -> Optional[Transaction]:
        ...

    def delete_transactions(self, ids: Iterable[str]) -> int:
        ...

    def get_balance(self, user_id: str) -> int:
        ...

    def apply_balance_delta(self, user_id: str, delta: int) -> int:
        ...

    def set_balance(self, user_id: str, balance: int) -> int:
        ...

    def list_balances(self) -> List[AccountBalance]:
        ...

    def count_transactions(self, user_id: Optional[str] = None) -> int:
        ...

    def count_transactions_by_user(self) -> Dict[str, int]:
        ...
