"""Prometheus metrics for monitoring and observability."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from functools import lru_cache

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ==============================================================================
# APPLICATION INFO
# ==============================================================================

app_info = Info("ride_estimates", "Ride estimates API information")
app_info.info({"version": "0.1.0", "service": "ride-estimates-api"})

# ==============================================================================
# HTTP METRICS
# ==============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# ==============================================================================
# ROUTING METRICS
# ==============================================================================

routing_queries_total = Counter(
    "routing_queries_total",
    "Routing provider queries by outcome",
    ["provider", "result"],
)

routing_query_duration_seconds = Histogram(
    "routing_query_duration_seconds",
    "Routing provider query latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

routing_retries_total = Counter(
    "routing_retries_total",
    "Routing queries retried after a transport failure",
    ["provider"],
)

# ==============================================================================
# ESTIMATION METRICS
# ==============================================================================

estimates_total = Counter(
    "estimates_total",
    "Estimate batches by mode and outcome",
    ["mode", "result"],
)

estimate_drivers = Histogram(
    "estimate_drivers",
    "Number of drivers per estimate batch",
    buckets=(0, 1, 2, 5, 10, 20, 50, 100),
)

estimate_duration_seconds = Histogram(
    "estimate_duration_seconds",
    "Wall-clock time to estimate a batch",
    ["mode"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ==============================================================================
# CIRCUIT BREAKER METRICS
# ==============================================================================

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["circuit_name"],
)

circuit_breaker_failures_total = Counter(
    "circuit_breaker_failures_total",
    "Total circuit breaker failures",
    ["circuit_name"],
)

circuit_breaker_successes_total = Counter(
    "circuit_breaker_successes_total",
    "Total circuit breaker successes",
    ["circuit_name"],
)

circuit_breaker_rejected_total = Counter(
    "circuit_breaker_rejected_total",
    "Total circuit breaker rejected calls",
    ["circuit_name"],
)

circuit_breaker_opened_total = Counter(
    "circuit_breaker_opened_total",
    "Total times circuit breaker opened",
    ["circuit_name"],
)

_STATE_VALUES = {"closed": 0, "open": 1, "half_open": 2}


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def track_circuit_breaker_metrics(breaker_name: str, state: str, stats: dict) -> None:
    """Update circuit breaker metrics from a state name and stats dict."""
    circuit_breaker_state.labels(circuit_name=breaker_name).set(_STATE_VALUES.get(state, 0))
    previous = track_circuit_breaker_metrics._previous.setdefault(
        breaker_name,
        {
            "failed_calls": 0,
            "successful_calls": 0,
            "rejected_calls": 0,
            "circuit_opened_count": 0,
        },
    )
    fields = {
        "failed_calls": circuit_breaker_failures_total,
        "successful_calls": circuit_breaker_successes_total,
        "rejected_calls": circuit_breaker_rejected_total,
        "circuit_opened_count": circuit_breaker_opened_total,
    }
    for key, counter in fields.items():
        current = int(stats.get(key, 0) or 0)
        delta = max(0, current - previous[key])
        if delta:
            counter.labels(circuit_name=breaker_name).inc(delta)
        previous[key] = current


track_circuit_breaker_metrics._previous = {}  # type: ignore[attr-defined]


@lru_cache(maxsize=2048)
def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path to reduce cardinality.

    Examples:
        /v1/drivers/123 -> /v1/drivers/{id}
    """
    path = re.sub(
        r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
        "/{id}",
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r"/\d+", "/{id}", path)
    path = re.sub(r"/[a-zA-Z0-9_-]{20,}", "/{id}", path)
    return path


# ==============================================================================
# PROMETHEUS MIDDLEWARE
# ==============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = normalize_endpoint(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            duration = time.perf_counter() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()


# ==============================================================================
# METRICS ENDPOINT
# ==============================================================================


def get_metrics() -> Response:
    """Generate Prometheus metrics response."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "estimate_drivers",
    "estimate_duration_seconds",
    "estimates_total",
    "get_metrics",
    "normalize_endpoint",
    "routing_queries_total",
    "routing_query_duration_seconds",
    "routing_retries_total",
    "track_circuit_breaker_metrics",
]
