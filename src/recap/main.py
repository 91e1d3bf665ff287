"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
JSON error handlers, lifespan wiring of the digest stores, and the routers.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.recap.api.errors import install_error_handlers
from src.recap.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.recap.api.v1 import digest_state
from src.recap.api.v1.router import router as v1_router
from src.recap.config import get_settings
from src.recap.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.recap.core.redis import close_redis, get_redis_pool
from src.recap.digests.service import (
    DigestStoreConfig,
    build_digest_service,
    build_state_store,
)
from src.recap.transcripts.pipeline import TranscriptPipeline
from src.recap.transcripts.scheduler import start_finalize_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: resolve digest stores once, close them on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Digest storage ──────────────────────────────────────────────────
    # Which stores are active is decided here and nowhere else.
    config = DigestStoreConfig.from_settings(settings)
    redis_client = get_redis_pool() if config.uses_redis else None
    state_store = build_state_store(config, redis_client)
    digest_service = build_digest_service(config, state_store, redis_client)

    app.state.redis_client = redis_client
    app.state.digest_state_store = state_store
    app.state.digest_service = digest_service
    app.state.transcript_pipeline = TranscriptPipeline(
        digest_service,
        default_team_id=settings.DEFAULT_TEAM_ID,
        chunk_max_tokens=settings.CHUNK_MAX_TOKENS,
    )

    if not digest_service.has_storage:
        log.warning("digest.no_storage_bound")

    # ── Daily finalize job ──────────────────────────────────────────────
    finalize_task: asyncio.Task | None = None
    if settings.FINALIZE_ENABLED:
        finalize_task = start_finalize_scheduler(
            digest_service,
            settings.get_digest_teams(),
            hour=settings.FINALIZE_AT_HOUR,
        )

    log.info("app.started", environment=settings.ENVIRONMENT.value)

    yield

    if finalize_task is not None:
        finalize_task.cancel()
        with suppress(asyncio.CancelledError):
            await finalize_task
    if redis_client is not None:
        await close_redis()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Recap API",
        version="0.1.0",
        description="Meeting transcript digests with human approval",
        lifespan=lifespan,
    )

    install_error_handlers(app)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)
    app.include_router(digest_state.router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
