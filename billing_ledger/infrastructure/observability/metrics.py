"""Prometheus metrics for account lifecycle, payments and derived-state freshness"""

from prometheus_client import Counter, Histogram

# Account lifecycle metrics
account_mutation_counter = Counter(
    "billing_account_mutations_total",
    "Account create/update/delete operations",
    ["operation", "account_type"],
)

installments_generated_counter = Counter(
    "billing_installments_generated_total",
    "Installments created by schedule generation",
    ["strategy"],  # even_split | fixed_amount
)

# Payment metrics
payment_counter = Counter(
    "billing_payments_total",
    "Payments recorded",
    ["kind"],  # installment | account | expense | income
)

transaction_reversal_counter = Counter(
    "billing_transaction_reversals_total",
    "Deleted transactions whose paid state was reverted",
)

# Derived state
summary_recalculation_counter = Counter(
    "billing_summary_recalculations_total",
    "Monthly summary recalculations by resulting status",
    ["status"],
)

side_effect_failure_counter = Counter(
    "billing_side_effect_failures_total",
    "Best-effort steps that failed after their primary operation committed",
    ["step"],
)

# Aggregation service metrics
aggregator_failures_counter = Counter(
    "aggregator_failures_total",
    "Failed account-aggregation API calls",
    ["method"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_account_mutation(operation: str, account_type: str) -> None:
    """Count an account lifecycle operation"""
    account_mutation_counter.labels(operation=operation, account_type=account_type).inc()
