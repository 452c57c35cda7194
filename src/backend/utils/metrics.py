"""
Prometheus metrics configuration for EchoFlow.

Defines custom metrics exposed at /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "echoflow"

# ============================================================================
# WebSocket / Subscription Metrics
# ============================================================================

ws_connections_active = Gauge(
    f"{NAMESPACE}_websocket_connections_active",
    "Number of currently active WebSocket connections",
    ["stream"],  # "threads" or "messages"
)

subscriptions_active = Gauge(
    f"{NAMESPACE}_subscriptions_active",
    "Number of registered real-time subscriptions",
    ["kind"],  # "threads" or "messages"
)

snapshot_errors_total = Counter(
    f"{NAMESPACE}_snapshot_errors_total",
    "Snapshot reads that failed and degraded to an empty list",
    ["kind"],
)


# ============================================================================
# Database Metrics
# ============================================================================

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)


# ============================================================================
# Chat Metrics
# ============================================================================

messages_sent_total = Counter(
    f"{NAMESPACE}_messages_sent_total",
    "Send/retry attempts by outcome",
    ["status", "kind"],  # status: "succeeded" | "failed"; kind: "send" | "retry"
)

completion_duration_seconds = Histogram(
    f"{NAMESPACE}_completion_duration_seconds",
    "Language-model request duration in seconds",
    ["operation"],  # "chat" or "title"
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

title_generation_total = Counter(
    f"{NAMESPACE}_title_generation_total",
    "Background thread title generations by outcome",
    ["status"],  # "success" or "error"
)
