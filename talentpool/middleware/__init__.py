"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
- Engagement counters shared by the services
"""

from talentpool.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    INVITATION_TRANSITIONS,
    CANDIDATES_SOURCED,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "INVITATION_TRANSITIONS",
    "CANDIDATES_SOURCED",
]
