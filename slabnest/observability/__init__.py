"""Observability module for SlabNest.

Provides structured logging and Prometheus metrics.
"""

from slabnest.observability.logging import (
    setup_logging,
    LogContext,
    get_context,
)
from slabnest.observability.metrics import (
    get_metrics,
    get_metrics_content_type,
    MetricsMiddleware,
    # Counters
    http_requests_total,
    nesting_runs_total,
    nesting_parts_total,
    placement_edits_total,
    # Histograms
    http_request_duration,
    nesting_run_duration,
)

__all__ = [
    # Logging
    "setup_logging",
    "LogContext",
    "get_context",
    # Metrics
    "get_metrics",
    "get_metrics_content_type",
    "MetricsMiddleware",
    "http_requests_total",
    "nesting_runs_total",
    "nesting_parts_total",
    "placement_edits_total",
    "http_request_duration",
    "nesting_run_duration",
]
