"""
Prometheus Metrics Middleware

Provides request/response metrics for monitoring:
- HTTP request latency (p50, p95, p99)
- Request count by endpoint and status
- Active request gauge
- Engagement counters (invitations, sourcing, ledger, notifications)

Usage:
    from talentpool.middleware.metrics import PrometheusMiddleware, setup_metrics

    # In main.py
    app = FastAPI()
    setup_metrics(app)

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics
"""

import time
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
    ["method", "endpoint"]
)

# Engagement metrics
INVITATION_TRANSITIONS = Counter(
    "invitation_transitions_total",
    "Invitation lifecycle transitions",
    ["to_status"]  # sent, viewed, declined, applied, expired
)

CANDIDATES_SOURCED = Counter(
    "candidates_sourced_total",
    "Candidates placed directly into a job pipeline"
)

LEDGER_APPENDS = Counter(
    "ledger_appends_total",
    "Interaction ledger rows written",
    ["interaction_type"]
)

LEDGER_APPEND_FAILURES = Counter(
    "ledger_append_failures_total",
    "Interaction ledger appends that failed",
    ["interaction_type"]
)

NOTIFICATIONS_SENT = Counter(
    "notifications_sent_total",
    "Outbound notifications delivered",
    ["kind"]
)

NOTIFICATION_FAILURES = Counter(
    "notification_failures_total",
    "Outbound notification dispatch or delivery failures",
    ["kind"]
)

MATCH_SCORE_LATENCY = Histogram(
    "match_score_calculation_seconds",
    "Time to rank all active jobs for one candidate",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25]
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for Prometheus metrics collection.

    Records:
    - Request latency
    - Request count by status code
    - Active request count
    """

    def __init__(self, app: FastAPI, app_name: str = "talentpool"):
        super().__init__(app)
        self.app_name = app_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        endpoint = self._get_endpoint(request)
        method = request.method

        if endpoint == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()

        active_endpoint = endpoint
        try:
            response = await call_next(request)
            status = str(response.status_code)
            endpoint = self._matched_route(request) or endpoint
        except Exception as e:
            status = "500"
            logger.error(f"Request error: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time

            REQUEST_LATENCY.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).observe(duration)

            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            ACTIVE_REQUESTS.labels(
                method=method,
                endpoint=active_endpoint
            ).dec()

        return response

    def _get_endpoint(self, request: Request) -> str:
        """
        Get normalized endpoint path from request.

        Uses the route pattern (e.g., /invitations/{token}) instead of the
        actual path so invitation tokens and candidate ids never become
        label values.
        """
        for route in request.app.routes:
            path = getattr(route, "path", None)
            if path is None:
                # Included routers carry no path of their own
                continue
            match, _ = route.matches(request.scope)
            if match == Match.FULL:
                return path

        return request.url.path

    def _matched_route(self, request: Request):
        """Route pattern the router resolved for this request, if any."""
        route = request.scope.get("route")
        return getattr(route, "path", None)


def metrics_endpoint(request: Request) -> Response:
    """Prometheus scrape endpoint."""
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """
    Configure Prometheus metrics for FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(PrometheusMiddleware, app_name="talentpool")
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_invitation_transition(to_status: str) -> None:
    INVITATION_TRANSITIONS.labels(to_status=to_status).inc()


def record_notification_failure(kind: str) -> None:
    NOTIFICATION_FAILURES.labels(kind=kind).inc()


def record_match_score_latency(duration: float) -> None:
    MATCH_SCORE_LATENCY.observe(duration)
