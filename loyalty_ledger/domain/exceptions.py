"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class AdjustmentError(DomainException):
    """Point adjustment was rejected before anything was written"""

    pass


class ValidationError(AdjustmentError):
    """Adjustment input is malformed or the debit exceeds the balance"""

    pass


class DuplicateRejected(AdjustmentError):
    """Idempotency token or near-duplicate match; the request was already processed"""

    pass


class StoreError(DomainException):
    """Ledger store read or write failed"""

    pass


class AccountNotFoundError(DomainException):
    """No cached balance row exists for the user"""

    def __init__(self, user_id: str):
        super().__init__(f"Account {user_id} not found")
        self.user_id = user_id


class AuditError(DomainException):
    """Audit could not complete"""

    pass
