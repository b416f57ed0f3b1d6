"""
Prometheus metrics collection for Gear Share.

Provides observability into event storage, command processing, inventory
contention and notification delivery.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Core Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "gearshare_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

events_loaded_total = Counter(
    "gearshare_events_loaded_total",
    "Total number of events loaded from the event store",
    ["stream_type"],
)

stream_version_conflicts_total = Counter(
    "gearshare_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Command Processing Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "gearshare_command_duration_seconds",
    "Duration of command processing in seconds",
    ["command_type"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

commands_processed_total = Counter(
    "gearshare_commands_processed_total",
    "Total number of commands processed",
    ["command_type", "status"],  # status: success, failure
)

# ============================================================================
# Inventory & Lifecycle Metrics
# ============================================================================

reservations_total = Counter(
    "gearshare_reservations_total",
    "Inventory reservations by outcome",
    ["outcome"],  # reserved, released, insufficient, stranded
)

requests_by_status = Gauge(
    "gearshare_requests_by_status",
    "Number of equipment requests by status",
    ["status"],
)

transactions_by_status = Gauge(
    "gearshare_transactions_by_status",
    "Number of equipment transactions by status",
    ["status"],
)

notification_failures_total = Counter(
    "gearshare_notification_failures_total",
    "Notification subscriber failures (logged and ignored)",
    ["event_type"],
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track command processing duration and outcome.

    Args:
        command_type: Type of command being processed
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                command_duration_seconds.labels(command_type=command_type).observe(duration)
                commands_processed_total.labels(
                    command_type=command_type, status=status
                ).inc()

        return wrapper

    return decorator


_published_statuses: dict[str, set[str]] = {"requests": set(), "transactions": set()}


def update_status_gauges(
    request_counts: dict[str, int], transaction_counts: dict[str, int]
) -> None:
    """Publish current request and transaction counts per status."""
    for kind, gauge, counts in (
        ("requests", requests_by_status, request_counts),
        ("transactions", transactions_by_status, transaction_counts),
    ):
        seen = _published_statuses[kind]
        # Statuses that emptied out drop to zero
        for status in seen - counts.keys():
            gauge.labels(status=status).set(0)
        for status, count in counts.items():
            gauge.labels(status=status).set(count)
        seen.update(counts)


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
