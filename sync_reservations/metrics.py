"""
Prometheus metrics for reservation reconciliation.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., records reconciled)
    - Histogram: Observations bucketed by value (e.g., batch duration)

Example:
    >>> from sync_reservations.metrics import batch_duration, records_reconciled
    >>> with batch_duration.labels(channel="Agoda").time():
    ...     records_reconciled.labels(channel="Agoda", outcome="processed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Batch Metrics
# =============================================================================

batches_total = Counter(
    "reservations_batches_total",
    "Total number of reconciliation batches (success and failure)",
    ["channel", "status"],
)
"""
Counter for reconciliation batches.

Labels:
    channel: Channel the batch was scraped from
    status: success, cancelled or failure
"""

batch_duration = Histogram(
    "reservations_batch_duration_seconds",
    "Duration of reconciliation batches in seconds",
    ["channel"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
)

records_reconciled = Counter(
    "reservations_records_total",
    "Total number of records seen by the reconciler",
    ["channel", "outcome"],
)
"""
Counter for records by outcome.

Labels:
    channel: Channel the record came from
    outcome: processed or the skip reason (invalid_dates, store_failure, ...)
"""

transitions_total = Counter(
    "reservations_transitions_total",
    "Partition transitions applied to the store",
    ["transition"],
)
"""
Counter for applied transitions.

Labels:
    transition: create_active, create_canceled, update_active, update_canceled,
                move_to_canceled, move_to_active
"""

# =============================================================================
# Notification Metrics
# =============================================================================

notifications_total = Counter(
    "reservations_notifications_total",
    "Guest notification delivery attempts",
    ["status"],
)
