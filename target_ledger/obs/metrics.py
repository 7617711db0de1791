"""Prometheus metrics for the ledger API and reconciliation worker."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
TARGET_RECOMPUTE_COUNTER = Counter(
    "ledger_target_recomputes_total",
    "Number of per-target metric recomputations.",
)
ROLLUP_RECOMPUTE_COUNTER = Counter(
    "ledger_rollup_recomputes_total",
    "Number of roll-up target recomputations.",
)
SIDE_EFFECT_FAILURE_COUNTER = Counter(
    "ledger_side_effect_failures_total",
    "Post-commit hooks that failed and were swallowed.",
    labelnames=("hook",),
)
RECONCILIATION_RUN_COUNTER = Counter(
    "ledger_reconciliation_runs_total",
    "Completed reconciliation passes.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "RECONCILIATION_RUN_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "ROLLUP_RECOMPUTE_COUNTER",
    "SIDE_EFFECT_FAILURE_COUNTER",
    "TARGET_RECOMPUTE_COUNTER",
    "metrics_endpoint",
    "metrics_router",
]
