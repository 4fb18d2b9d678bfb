"""Health check endpoints.

Provides liveness (/health), readiness (/health/ready), and startup
(/health/startup) checks for container orchestration.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.app.config import get_settings
from src.app.core.database import get_engine
from src.app.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies() -> dict:
    """Check database and Redis connectivity. Returns check results dict."""
    checks: dict = {"database": "ok", "redis": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    try:
        redis = get_redis_pool()
        pong = await redis.ping()
        if not pong:
            checks["redis"] = "error"
            checks["redis_error"] = "PING did not return PONG"
    except Exception as e:
        checks["redis"] = "error"
        checks["redis_error"] = str(e)

    return checks


def _all_healthy(checks: dict) -> bool:
    return checks.get("database") == "ok" and checks.get("redis") == "ok"


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: 200 when the database and Redis respond, else 503."""
    checks = await _check_dependencies()
    healthy = _all_healthy(checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )


@router.get("/health/startup")
async def startup_check():
    """Startup check: same checks as readiness, reported as started/starting."""
    checks = await _check_dependencies()
    healthy = _all_healthy(checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "started" if healthy else "starting", "checks": checks},
    )
