"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: request count/latency per route template
- track_store_call(): timing and outcome of one digest store call
- digest_store_fallback_total / transcripts_ingested_total counters
- init_sentry(): Sentry init, events tagged with the current request id
- get_metrics_response(): Prometheus exposition for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Digest Metrics ───────────────────────────────────────────────────────────

digest_store_operations_total = Counter(
    "digest_store_operations_total",
    "Digest store calls by operation, backing store and outcome",
    ["operation", "source", "status"],
)

digest_store_operation_duration_seconds = Histogram(
    "digest_store_operation_duration_seconds",
    "Digest store call duration in seconds",
    ["operation", "source"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
)

digest_store_fallback_total = Counter(
    "digest_store_fallback_total",
    "Times the primary digest store failed and the fallback store was tried",
    ["operation"],
)

transcripts_ingested_total = Counter(
    "transcripts_ingested_total",
    "Transcripts run through the extractor pipeline, by persist outcome",
    ["status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request count and latency for every route except /metrics.

    Labels use the route template (``/internal/digest-state/{team_id}/...``)
    rather than the raw path so per-team URLs share one series.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        return response


# ── Digest Store Call Tracking ───────────────────────────────────────────────


@asynccontextmanager
async def track_store_call(operation: str, source: str) -> AsyncGenerator[None, None]:
    """Time one digest store call and count it as ok or error.

    Usage:
        async with track_store_call("persist", "primary"):
            await store.append(team_id, date_iso, partial)

    Exceptions are re-raised after being counted.
    """
    start_time = time.perf_counter()
    status = "ok"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        digest_store_operations_total.labels(
            operation=operation,
            source=source,
            status=status,
        ).inc()
        digest_store_operation_duration_seconds.labels(
            operation=operation,
            source=source,
        ).observe(time.perf_counter() - start_time)


# ── Sentry Integration ───────────────────────────────────────────────────────


def _tag_request_id(event: dict, hint: dict) -> dict:
    """Attach the request id bound by LoggingMiddleware, if any."""
    request_id = structlog.contextvars.get_contextvars().get("request_id")
    if request_id:
        event.setdefault("tags", {})["request_id"] = request_id
    return event


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1 if environment == "production" else 1.0,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=_tag_request_id,
    )


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
