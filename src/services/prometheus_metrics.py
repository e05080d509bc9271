"""
Prometheus metrics for the refresh and notification cycles.

Exposed on ``GET /metrics``:
- Refresh runs by status, refresh duration, applications over their limit
- Notification runs by status, emails sent, applications skipped by reason
"""

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# ==================== Refresh Metrics ====================
usage_refresh_runs = Counter(
    "usage_refresh_runs_total",
    "Total usage refresh runs",
    ["status"],  # success, failed
)

usage_refresh_failures = Counter(
    "usage_refresh_failures_total",
    "Failed usage refresh runs by stage",
    ["stage"],  # limits, relays, persist
)

usage_refresh_duration = Histogram(
    "usage_refresh_duration_seconds",
    "Duration of usage refresh runs in seconds",
    buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

apps_passed_limit = Gauge(
    "usage_apps_passed_limit",
    "Applications over their daily limit past the grace period",
)

# ==================== Notification Metrics ====================
notifier_runs = Counter(
    "usage_notifier_runs_total",
    "Total notification runs",
    ["status"],  # success, failed
)

notifications_sent = Counter(
    "usage_notifications_sent_total",
    "Threshold notification emails sent",
    ["threshold"],
)

notifications_skipped = Counter(
    "usage_notifications_skipped_total",
    "Applications skipped by the notifier",
    ["reason"],
)
