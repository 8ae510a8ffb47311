"""Prometheus metrics for the scheduling API and meeting sync.

Request metrics are labelled by route template, not raw path, so meeting
ids never become label values. Provider calls and saves are counted through
the ``track_provider_call`` and ``track_save`` context managers.
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Generator
from contextlib import asynccontextmanager, contextmanager

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP ─────────────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests served",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# ── Meeting sync ─────────────────────────────────────────────────────────────

meeting_provider_calls_total = Counter(
    "meeting_provider_calls_total",
    "Calls made to the meeting-link provider",
    ["operation", "status"],
)

meeting_provider_call_duration_seconds = Histogram(
    "meeting_provider_call_duration_seconds",
    "Meeting-link provider latency",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

meeting_saves_total = Counter(
    "meeting_saves_total",
    "Meeting saves by planned sync action and outcome",
    ["action", "status"],
)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Request count and latency per method and route template."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        endpoint = _route_label(request)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
            time.perf_counter() - started
        )
        return response


@asynccontextmanager
async def track_provider_call(operation: str) -> AsyncGenerator[None, None]:
    """Count and time one provider create/update/cancel call."""
    started = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        meeting_provider_calls_total.labels(operation=operation, status=status).inc()
        meeting_provider_call_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - started
        )


@contextmanager
def track_save(action: str) -> Generator[None, None, None]:
    """Count a save under its sync action as ``success`` or ``error``."""
    try:
        yield
    except Exception:
        meeting_saves_total.labels(action=action, status="error").inc()
        raise
    meeting_saves_total.labels(action=action, status="success").inc()


def get_metrics_response() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
