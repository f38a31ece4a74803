#!/usr/bin/env python3
"""
Prometheus metrics describing the watchdog itself
"""

import logging
from prometheus_client import Counter, Histogram, Gauge

logger = logging.getLogger(__name__)

SYNC_TOTAL = Counter(
    'watchdog_sync_total',
    'Total poll cycles',
    ['trigger', 'status']
)

SYNC_DURATION = Histogram(
    'watchdog_sync_duration_seconds',
    'Time taken to list and publish load balancers',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

PUBLISHED_RECORDS = Gauge(
    'watchdog_published_records',
    'Number of load balancer records currently exported'
)

WATCH_EVENTS_TOTAL = Counter(
    'watchdog_watch_events_total',
    'Service change events applied from the watch stream',
    ['change_type']
)

WATCH_RESTARTS_TOTAL = Counter(
    'watchdog_watch_restarts_total',
    'Watch sessions restarted after termination'
)

ERRORS_TOTAL = Counter(
    'watchdog_errors_total',
    'Total errors',
    ['type']
)


class WatchdogMetrics:
    """Thin recorder around the module level metrics"""

    def record_sync(self, trigger: str, success: bool, duration: float):
        status = 'success' if success else 'failed'
        SYNC_TOTAL.labels(trigger=trigger, status=status).inc()
        SYNC_DURATION.observe(duration)

    def record_published(self, count: int):
        PUBLISHED_RECORDS.set(count)

    def record_watch_event(self, change_type: str):
        WATCH_EVENTS_TOTAL.labels(change_type=change_type).inc()

    def record_watch_restart(self):
        WATCH_RESTARTS_TOTAL.inc()

    def record_error(self, error_type: str):
        ERRORS_TOTAL.labels(type=error_type).inc()


# Global metrics recorder instance
watchdog_metrics = WatchdogMetrics()
