"""
Metrics definitions for weathersync.

This module defines Prometheus metrics for the zone and alert
reconciliation pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# counters
alerts_written = Counter(
    "alerts_written_total",
    "Number of new alerts persisted"
)

alerts_skipped = Counter(
    "alerts_skipped_total",
    "Number of active alerts already present in the store"
)

alerts_failed = Counter(
    "alerts_failed_total",
    "Number of alerts that failed to sync",
    ["op"]
)

alerts_deleted = Counter(
    "alerts_deleted_total",
    "Number of alerts removed by the retention sweep",
    ["reason"]
)

zone_operations = Counter(
    "zone_operations_total",
    "Zone rows written by onboarding and region sync",
    ["op"]
)

zone_fetch_failures = Counter(
    "zone_fetch_failures_total",
    "Zone detail fetches that failed or were cancelled"
)

pool_task_errors = Counter(
    "pool_task_errors_total",
    "Tasks that raised inside a worker"
)

scheduler_cycles = Counter(
    "scheduler_cycles_total",
    "Scheduled sync cycles",
    ["outcome"]
)

# histograms
cycle_seconds = Histogram(
    "sync_cycle_duration_seconds",
    "Time spent in one alert sync + cleanup cycle",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

region_sync_seconds = Histogram(
    "region_sync_duration_seconds",
    "Time spent onboarding or syncing a region",
    ["op"],
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# gauges
pool_queue_depth = Gauge(
    "pool_queue_depth",
    "Tasks waiting in the worker pool queue"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
