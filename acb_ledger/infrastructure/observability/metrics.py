"""Prometheus metrics for ledger operations, lending activity, and contention"""

from prometheus_client import Counter, Histogram, Gauge

# Ledger operation metrics
operation_counter = Counter(
    "acb_ledger_operation_total",
    "Ledger operations by outcome",
    ["operation", "outcome"],  # outcome: ok | error kind
)

contention_retry_counter = Counter(
    "acb_ledger_contention_retries_total",
    "Unit-of-work retries after a concurrent write conflict",
    ["operation"],
)

# Lending metrics
loans_issued_counter = Counter(
    "acb_loans_issued_total",
    "Loans issued by borrower tier",
    ["tier"],
)

loan_settlement_counter = Counter(
    "acb_loan_settlements_total",
    "Loans reaching a terminal state",
    ["status"],  # repaid | defaulted
)

pool_utilization_gauge = Gauge(
    "acb_pool_utilization_bps",
    "Pool utilization in basis points after the last committed operation",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, outcome: str = "ok") -> None:
    """Record a ledger operation outcome"""
    operation_counter.labels(operation=operation, outcome=outcome).inc()
