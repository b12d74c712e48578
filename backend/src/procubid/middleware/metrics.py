"""Prometheus metrics middleware and auction engine metrics."""
import time
from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Bid-specific metrics
BID_COUNTER = Counter(
    "bids_total",
    "Total bid attempts by decision",
    ["decision"],  # accepted, a rejection reason code, not_found, error
)

BID_LATENCY = Histogram(
    "bid_latency_seconds",
    "Bid processing latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

# Scheduler metrics
STATUS_TRANSITIONS = Counter(
    "auction_status_transitions_total",
    "Auction status transitions persisted by the scheduler",
    ["from_status", "to_status"],
)

STATUS_CONFLICTS = Counter(
    "auction_status_conflicts_total",
    "Scheduler status updates skipped because the status changed concurrently",
)

SWEEP_ERRORS = Counter(
    "auction_sweep_errors_total",
    "Per-auction failures during scheduler ticks",
    ["task"],  # status, ranking
)

SWEEP_DURATION = Histogram(
    "auction_sweep_duration_seconds",
    "Duration of one scheduler tick in seconds",
    ["task"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/bids": "/api/v1/bids",
        "/api/v1/rankings": "/api/v1/rankings",
        "/api/v1/auctions": "/api/v1/auctions",
        "/api/v1/results": "/api/v1/results",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time
            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

            if endpoint == "/api/v1/bids" and request.method == "POST":
                BID_LATENCY.observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        if path in ("/health", "/metrics"):
            return path
        if path.startswith("/ws"):
            return "/ws"

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_bid_decision(decision: str) -> None:
    BID_COUNTER.labels(decision=decision).inc()


def record_status_transition(from_status: str, to_status: str) -> None:
    STATUS_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()


def record_status_conflict() -> None:
    STATUS_CONFLICTS.inc()


def record_sweep_error(task: str) -> None:
    SWEEP_ERRORS.labels(task=task).inc()


def record_sweep_duration(task: str, duration: float) -> None:
    SWEEP_DURATION.labels(task=task).observe(duration)
