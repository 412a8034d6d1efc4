"""SQLAlchemy ORM models for the points ledger"""

from sqlalchemy import Column, BigInteger, DateTime, Index, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class PointsTransaction(Base):
    """Append-only ledger row; deleted only by reconciliation"""

    __tablename__ = "points_transactions"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    points = Column(BigInteger, nullable=False)
    type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    reference_id = Column(Text, nullable=True)
    idempotency_key = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_points_transactions_user_created", "user_id", "created_at"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_points_transactions_user_idempotency_key"),
    )


class AccountBalanceRow(Base):
    """Cached balance per account"""

    __tablename__ = "account_balances"

    user_id = Column(Text, primary_key=True)
    balance = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class RecentOperation(Base):
    """Claimed operation keys shared across service instances"""

    __tablename__ = "recent_operations"

    key = Column(Text, primary_key=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
