"""Prometheus metric inventory.

All metrics live here so there is one place to see what the service
measures.  Modules import the metric they own and update it where the
action happens.  Scraped via GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "progress_cache_operations_total",
    "Result cache operations by cache and outcome",
    ["cache", "operation"],  # hit|miss|expired|evicted|store
)

CACHE_ENTRIES = Gauge(
    "progress_cache_entries",
    "Entries currently held by a result cache (including not-yet-swept stale ones)",
    ["cache"],
)

AGGREGATION_DURATION = Histogram(
    "progress_aggregation_seconds",
    "Time to build a report on a cache miss (store reads + aggregation)",
    ["report"],  # course|learner
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

ORPHANED_RECORDS = Counter(
    "orphaned_records_total",
    "Fact records skipped because their lesson/quiz/course linkage is broken",
    ["kind"],  # lesson_progress|quiz_attempt|enrollment
)

UPSTREAM_FAILURES = Counter(
    "upstream_failures_total",
    "Data store failures surfaced to callers as 503",
    ["operation"],
)
