"""Prometheus metrics for the sync backend."""
from prometheus_client import Counter, Histogram, start_http_server

# Sync metrics
sync_batches = Counter(
    "vocabsync_batches_total",
    "Total number of sync batches processed",
    ["kind", "outcome"],
)

progress_synced = Counter(
    "vocabsync_progress_records_synced_total",
    "Total number of progress records processed by sync",
)

sync_conflicts = Counter(
    "vocabsync_conflicts_total",
    "Total number of progress conflicts resolved",
    ["resolution"],
)

exclusions_synced = Counter(
    "vocabsync_exclusions_synced_total",
    "Total number of exclusion markers created by sync",
)

batch_duration = Histogram(
    "vocabsync_batch_duration_seconds",
    "Duration of sync batches in seconds",
    ["kind"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Learning metrics
review_outcomes = Counter(
    "vocabsync_review_outcomes_total",
    "Total number of review outcomes applied",
    ["outcome"],
)

streak_resets = Counter(
    "vocabsync_streak_resets_total",
    "Total number of continuous-day streaks reset",
    ["trigger"],
)

# Database metrics
db_errors = Counter(
    "vocabsync_db_errors_total",
    "Total number of database errors",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
