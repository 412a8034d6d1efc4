"""Prometheus metrics for adjustments, audits and reconciliation"""

from prometheus_client import Counter, Histogram

# Adjustment metrics
adjustment_counter = Counter(
    "loyalty_adjustments_total",
    "Point adjustments processed",
    ["kind", "outcome"],  # credit | debit ; written | invalid | duplicate | store_error
)

partial_write_counter = Counter(
    "loyalty_partial_writes_total",
    "Transactions inserted whose balance delta failed",
)

# Audit / reconciliation metrics
audit_counter = Counter(
    "loyalty_audits_total",
    "Balance audits by outcome",
    ["status"],  # ok | discrepancy | error
)

duplicates_removed_counter = Counter(
    "loyalty_duplicates_removed_total",
    "Duplicate transactions deleted by reconciliation",
)

balance_correction_counter = Counter(
    "loyalty_balance_corrections_total",
    "Cached balances overwritten from the ledger",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_adjustment(kind: str, outcome: str) -> None:
    adjustment_counter.labels(kind=kind, outcome=outcome).inc()


def record_reconciliation(duplicates_removed: int, balance_adjusted: int) -> None:
    """Record what a reconciliation actually changed"""
    if duplicates_removed:
        duplicates_removed_counter.inc(duplicates_removed)
    if balance_adjusted:
        balance_correction_counter.inc()
