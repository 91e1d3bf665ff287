"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. The
readiness check pings Redis only when a Redis-backed digest store is
configured, and reports which digest stores this process has bound.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.recap.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check digest storage and Redis connectivity. Returns check results dict."""
    checks: dict = {"digest_storage": "ok", "redis": "unused"}

    service = getattr(request.app.state, "digest_service", None)
    if service is None or not service.has_storage:
        checks["digest_storage"] = "error"
        checks["digest_storage_error"] = "no storage bound"

    redis = getattr(request.app.state, "redis_client", None)
    if redis is not None:
        try:
            pong = await redis.ping()
            checks["redis"] = "ok" if pong else "error"
            if not pong:
                checks["redis_error"] = "PING did not return PONG"
        except Exception as e:
            checks["redis"] = "error"
            checks["redis_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: verifies a digest store is bound and Redis answers.

    Returns 200 if all pass, 503 if any dependency fails.
    """
    checks = await _check_dependencies(request)
    all_healthy = checks["digest_storage"] == "ok" and checks["redis"] in ("ok", "unused")

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
