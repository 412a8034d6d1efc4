"""Structured JSON logging for ledger events"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from loyalty_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


ledger_logger = logging.getLogger("loyalty_ledger")


def log_adjustment(user_id: str, transaction_id: str, points: int, new_balance: int) -> None:
    ledger_logger.info(
        "Adjustment written",
        extra={
            "user_id": user_id,
            "step": "adjustment_written",
            "transaction_id": transaction_id,
            "points": points,
            "new_balance": new_balance,
        },
    )


def log_adjustment_rejected(user_id: str, reason: str, detail: str) -> None:
    ledger_logger.warning(
        "Adjustment rejected",
        extra={"user_id": user_id, "step": "adjustment_rejected", "reason": reason, "detail": detail},
    )


def log_partial_write(user_id: str, transaction_id: str, points: int, error: str) -> None:
    """Transaction row exists but the cached balance was not moved; the next audit will flag it"""
    ledger_logger.error(
        "Balance delta failed after transaction insert",
        extra={
            "user_id": user_id,
            "step": "partial_write",
            "transaction_id": transaction_id,
            "points": points,
            "error": error,
        },
    )


def log_audit(user_id: str, status: str, difference: int, duplicate_excess_count: int) -> None:
    level = logging.INFO if status == "ok" else logging.WARNING
    ledger_logger.log(
        level,
        "Audit completed",
        extra={
            "user_id": user_id,
            "step": "audit_complete",
            "audit_status": status,
            "difference": difference,
            "duplicate_excess_count": duplicate_excess_count,
        },
    )


def log_reconciliation(user_id: str, duplicates_removed: int, balance_adjusted: int, errors: int) -> None:
    ledger_logger.info(
        "Reconciliation completed",
        extra={
            "user_id": user_id,
            "step": "reconcile_complete",
            "duplicates_removed": duplicates_removed,
            "balance_adjusted": balance_adjusted,
            "deletion_errors": errors,
        },
    )
