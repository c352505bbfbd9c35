"""Prometheus metrics for loan activity, penalties, storage and notification delivery"""

from prometheus_client import Counter, Histogram

# Loan lifecycle metrics
loans_created_counter = Counter(
    "biblioteca_loans_created_total",
    "Loans checked out",
)

return_commands_counter = Counter(
    "biblioteca_return_commands_total",
    "Return commands processed",
)

penalties_applied_counter = Counter(
    "biblioteca_penalties_applied_total",
    "Penalties applied to loans",
)

penalty_days_histogram = Histogram(
    "biblioteca_penalty_days",
    "Restriction days per applied penalty",
    buckets=[1, 3, 7, 14, 30, 60, 90],
)

policy_updates_counter = Counter(
    "biblioteca_policy_updates_total",
    "Loan policy reconfigurations",
)

domain_error_counter = Counter(
    "biblioteca_domain_errors_total",
    "Rejected loan operations",
    ["kind"],  # validation | not_found | forbidden
)

# Storage metrics
blob_delete_failure_counter = Counter(
    "biblioteca_blob_delete_failures_total",
    "Old attachment files that could not be removed",
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_penalty(dias: int) -> None:
    """Record penalty count and size"""
    penalties_applied_counter.inc()
    penalty_days_histogram.observe(dias)
