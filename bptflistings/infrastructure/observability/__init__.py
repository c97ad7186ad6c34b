"""Observability and logging facades."""

from .logging import (
    configure_logging,
    get_logger,
    log_context,
    log_exception,
)
from .metrics import (
    Timer,
    format_prometheus,
    get_metrics_summary,
    get_registry,
    increment_counter,
    observe_histogram,
    record_api_request,
    record_flush,
    record_listing_action,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    "log_exception",
    # Metrics
    "Timer",
    "format_prometheus",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_api_request",
    "record_flush",
    "record_listing_action",
]
