"""Prometheus metrics for recurring-transaction scheduling and document loading"""

from prometheus_client import Counter, Histogram

# Scheduler metrics
recurring_materialized_counter = Counter(
    "peanuts_recurring_materialized_total",
    "Transactions created from recurring templates",
)

recurring_skipped_counter = Counter(
    "peanuts_recurring_skipped_total",
    "Recurring templates skipped during a scheduler pass",
    ["reason"],  # already_materialized | ended | not_due | failed
)

scheduler_pass_histogram = Histogram(
    "peanuts_scheduler_pass_seconds",
    "Duration of a recurring scheduler pass",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# Recurrence rule metrics
recurrence_fallback_counter = Counter(
    "peanuts_recurrence_fallback_total",
    "Recurrence rules recovered with a fallback value",
    ["reason"],  # malformed | exhausted
)

# Serialization metrics
document_load_counter = Counter(
    "peanuts_document_loads_total",
    "Ledger documents loaded",
    ["outcome"],  # ok | invalid | migrated
)


def record_scheduler_pass(
    created: int,
    already_materialized: int,
    ended: int,
    not_due: int,
    failed: int,
    duration_seconds: float,
) -> None:
    """Record the outcome of one scheduler pass"""
    recurring_materialized_counter.inc(created)
    for reason, count in (
        ("already_materialized", already_materialized),
        ("ended", ended),
        ("not_due", not_due),
        ("failed", failed),
    ):
        if count:
            recurring_skipped_counter.labels(reason=reason).inc(count)
    scheduler_pass_histogram.observe(duration_seconds)
