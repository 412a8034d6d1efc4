"""Idempotency token helpers and the recent-operation tracker contract"""

from typing import Optional, Protocol


def format_description(reason: str, token: Optional[str] = None) -> str:
    """Embed the token in the human-readable description as "<reason> [<token>]" """
    reason = reason.strip()
    if not token:
        return reason
    return f"{reason} [{token}]"


def operation_key(user_id: str, token: str) -> str:
    """Tracker key for a caller token, scoped to the account"""
    return f"adjustment:{user_id}:{token}"


class RecentOperationTracker(Protocol):
    """
    Short-lived memory of operations already being processed.

    Implementations must make `claim` an atomic check-and-set: it returns
    False when the key was claimed and has not expired yet.
    """

    def claim(self, key: str, ttl_seconds: int) -> bool:
        ...

    def release(self, key: str) -> None:
        ...
