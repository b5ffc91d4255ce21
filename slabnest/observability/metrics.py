"""Prometheus metrics for SlabNest.

Provides engine and HTTP metrics for monitoring and alerting.
"""

import re
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from slabnest.utils import get_logger

logger = get_logger("observability.metrics")


# ============================================================================
# HTTP Metrics
# ============================================================================

http_requests_total = Counter(
    "slabnest_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration = Histogram(
    "slabnest_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

http_requests_in_progress = Gauge(
    "slabnest_http_requests_in_progress",
    "HTTP requests currently being processed",
    ["method", "endpoint"]
)


# ============================================================================
# Nesting Metrics
# ============================================================================

nesting_runs_total = Counter(
    "slabnest_nesting_runs_total",
    "Batch optimization runs",
    ["status"]  # ok, invalid, fault
)

nesting_run_duration = Histogram(
    "slabnest_nesting_run_duration_seconds",
    "Batch optimization duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

nesting_parts_total = Counter(
    "slabnest_nesting_parts_total",
    "Parts processed by batch optimization",
    ["outcome"]  # placed, unplaced
)

placement_edits_total = Counter(
    "slabnest_placement_edits_total",
    "Interactive placement edits",
    ["operation"]  # move, drag, rotate, lock, unlock
)


# ============================================================================
# Utility Functions
# ============================================================================

def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST


class MetricsMiddleware:
    """ASGI middleware for HTTP metrics."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope["path"]

        # Skip metrics endpoint
        if path == "/metrics":
            await self.app(scope, receive, send)
            return

        endpoint = self._normalize_path(path)

        start_time = time.time()
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

        status_code = 500
        try:
            async def send_wrapper(message):
                nonlocal status_code
                if message["type"] == "http.response.start":
                    status_code = message["status"]
                await send(message)

            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.time() - start_time
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status_code
            ).inc()
            http_request_duration.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    def _normalize_path(self, path: str) -> str:
        """Normalize path by replacing IDs with placeholders."""
        path = re.sub(
            r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
            "{id}",
            path
        )
        path = re.sub(r"/\d+(/|$)", "/{id}\\1", path)
        return path
