"""Prometheus metrics for session tracking and offline sync.

The module bundles all counters in one place so importing side-effects
(metric registration) happen exactly once per process.  Routers and
services can simply ``from workspace_manager.metrics import …`` and increment.
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Histogram

# ---------------------------------------------------------------------------
# Server side
# ---------------------------------------------------------------------------

sync_operations_applied_total = Counter(
    "sync_operations_applied_total",
    "Sync operations applied by the server",
    labelnames=("op_type", "entity_type"),
)

sync_operations_duplicate_total = Counter(
    "sync_operations_duplicate_total",
    "Sync operations acknowledged without effect because the op_id was already applied",
)

sessions_auto_paused_total = Counter(
    "sessions_auto_paused_total",
    "Work sessions paused by the activity tracker after the inactivity timeout",
)

activity_tracking_errors_total = Counter(
    "activity_tracking_errors_total",
    "Errors swallowed while tracking request activity",
)

session_events_total = Counter(
    "session_events_total",
    "Work session lifecycle events seen on the server event bus",
    labelnames=("event_type",),
)

# ---------------------------------------------------------------------------
# Client side
# ---------------------------------------------------------------------------

external_api_retry_total = Counter(
    "external_api_retry_total",
    "Total retries executed against the remote API",
    labelnames=("provider", "function"),
)

client_sync_delivered_total = Counter(
    "client_sync_delivered_total",
    "Queued operations delivered to the remote API",
)

client_sync_failed_total = Counter(
    "client_sync_failed_total",
    "Drain cycles stopped by a failing head operation",
)

recovery_points_created_total = Counter(
    "recovery_points_created_total",
    "Recovery points captured",
    labelnames=("kind",),
)

client_sync_delivery_seconds = Histogram(
    "client_sync_delivery_seconds",
    "Latency of a single queued operation delivery including retries (seconds)",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


__all__ = [
    "sync_operations_applied_total",
    "sync_operations_duplicate_total",
    "sessions_auto_paused_total",
    "activity_tracking_errors_total",
    "session_events_total",
    "external_api_retry_total",
    "client_sync_delivered_total",
    "client_sync_failed_total",
    "recovery_points_created_total",
    "client_sync_delivery_seconds",
]
