"""Data access layer for the points ledger"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from loyalty_ledger.domain.exceptions import AccountNotFoundError, DomainException, DuplicateRejected, StoreError
from loyalty_ledger.domain.models import AccountBalance, Transaction
from loyalty_ledger.infrastructure.database.models import AccountBalanceRow, PointsTransaction
from loyalty_ledger.utils.date_utils import ensure_utc


def _to_transaction(row: PointsTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        points=row.points,
        type=row.type,
        description=row.description,
        reference_id=row.reference_id,
        idempotency_key=row.idempotency_key,
        created_at=ensure_utc(row.created_at),
    )


class SqlLedgerStore:
    """LedgerStore backed by a SQLAlchemy session; each call commits on its own"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to {action}: {e}") from e

    @contextmanager
    def _read(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to {action}: {e}") from e

    # Accounts

    def create_account(self, user_id: str) -> int:
        """Create the balance row with 0 points; returns the existing balance if present"""
        try:
            with self._write("create account"):
                row = self.db.get(AccountBalanceRow, user_id)
                if row is None:
                    row = AccountBalanceRow(user_id=user_id, balance=0)
                    self.db.add(row)
                balance = row.balance or 0
        except StoreError as e:
            # Lost a creation race: the row exists now
            if not isinstance(e.__cause__, IntegrityError):
                raise
            return self.get_balance(user_id)
        return balance

    def get_balance(self, user_id: str) -> int:
        with self._read("read balance"):
            balance = (
                self.db.query(AccountBalanceRow.balance)
                .filter(AccountBalanceRow.user_id == user_id)
                .scalar()
            )
        if balance is None:
            raise AccountNotFoundError(user_id)
        return balance

    def apply_balance_delta(self, user_id: str, delta: int) -> int:
        """Atomic `balance = balance + delta` executed by the database"""
        with self._write("apply balance delta"):
            updated = (
                self.db.query(AccountBalanceRow)
                .filter(AccountBalanceRow.user_id == user_id)
                .update({AccountBalanceRow.balance: AccountBalanceRow.balance + delta}, synchronize_session=False)
            )
            if updated == 0:
                raise AccountNotFoundError(user_id)
            balance = (
                self.db.query(AccountBalanceRow.balance)
                .filter(AccountBalanceRow.user_id == user_id)
                .scalar()
            )
        return balance

    def set_balance(self, user_id: str, balance: int) -> int:
        with self._write("overwrite balance"):
            updated = (
                self.db.query(AccountBalanceRow)
                .filter(AccountBalanceRow.user_id == user_id)
                .update({AccountBalanceRow.balance: balance}, synchronize_session=False)
            )
            if updated == 0:
                raise AccountNotFoundError(user_id)
        return balance

    def list_balances(self) -> List[AccountBalance]:
        with self._read("list balances"):
            rows = self.db.query(AccountBalanceRow).order_by(AccountBalanceRow.balance.desc()).all()
        return [
            AccountBalance(
                user_id=row.user_id,
                balance=row.balance,
                updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
            )
            for row in rows
        ]

    # Transactions

    def insert_transaction(self, transaction: Transaction) -> Transaction:
        try:
            with self._write("insert transaction"):
                self.db.add(
                    PointsTransaction(
                        id=transaction.id,
                        user_id=transaction.user_id,
                        points=transaction.points,
                        type=transaction.type,
                        description=transaction.description,
                        reference_id=transaction.reference_id,
                        idempotency_key=transaction.idempotency_key,
                        created_at=transaction.created_at,
                    )
                )
        except StoreError as e:
            if (
                transaction.idempotency_key
                and isinstance(e.__cause__, IntegrityError)
                and self.find_by_idempotency_key(transaction.user_id, transaction.idempotency_key) is not None
            ):
                raise DuplicateRejected(
                    f"Idempotency token {transaction.idempotency_key} was already used"
                ) from e
            raise
        return transaction

    def query_transactions(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Transactions matching the filters, oldest first"""
        with self._read("query transactions"):
            query = self.db.query(PointsTransaction)
            if user_id is not None:
                query = query.filter(PointsTransaction.user_id == user_id)
            if type is not None:
                query = query.filter(PointsTransaction.type == type)
            if since is not None:
                query = query.filter(PointsTransaction.created_at >= since)
            if until is not None:
                query = query.filter(PointsTransaction.created_at <= until)
            rows = query.order_by(PointsTransaction.created_at.asc(), PointsTransaction.id.asc()).all()
        return [_to_transaction(row) for row in rows]

    def find_by_idempotency_key(self, user_id: str, key: str) -> Optional[Transaction]:
        """The user's transaction carrying this idempotency key, if any"""
        with self._read("look up idempotency key"):
            row = (
                self.db.query(PointsTransaction)
                .filter(PointsTransaction.user_id == user_id, PointsTransaction.idempotency_key == key)
                .first()
            )
        return _to_transaction(row) if row else None

    def delete_transactions(self, ids: Iterable[str]) -> int:
        """Delete rows by id; returns how many rows the database actually removed"""
        ids = list(ids)
        if not ids:
            return 0
        with self._write("delete transactions"):
            deleted = (
                self.db.query(PointsTransaction)
                .filter(PointsTransaction.id.in_(ids))
                .delete(synchronize_session=False)
            )
        return deleted

    def count_transactions(self, user_id: Optional[str] = None) -> int:
        with self._read("count transactions"):
            query = self.db.query(func.count(PointsTransaction.id))
            if user_id is not None:
                query = query.filter(PointsTransaction.user_id == user_id)
            count = query.scalar()
        return count or 0

    def count_transactions_by_user(self) -> Dict[str, int]:
        with self._read("count transactions per user"):
            rows = (
                self.db.query(PointsTransaction.user_id, func.count(PointsTransaction.id))
                .group_by(PointsTransaction.user_id)
                .all()
            )
        return {user_id: count for user_id, count in rows}
