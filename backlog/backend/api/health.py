"""
Health Check Endpoints.

Provides liveness, readiness, and detailed health checks. These routes are
public; everything else under the API prefix requires the API key.

Endpoints:
- /health: Liveness check (process running)
- /health/ready: Readiness check (database reachable)
- /health/detailed: Component-by-component status (for debugging)
"""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import text

from backlog.backend.core.logging import get_logger
from backlog.backend.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)


async def check_database() -> dict[str, Any]:
    """
    Check database connectivity.

    Returns:
        Dict with status, latency, and optional error message
    """
    from backlog.backend.core.database import get_session_factory, session_scope

    try:
        start = utc_now()
        async with session_scope(get_session_factory()) as session:
            await session.execute(text("SELECT 1"))
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}


def check_storage(request: Request) -> dict[str, Any]:
    storage = getattr(request.app.state, "blob_storage", None)
    if storage is None or not storage.enabled:
        return {"status": "disabled"}
    return {"status": "healthy", "upload_dir": str(storage.upload_dir)}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Liveness check.

    Returns 200 if the process is running. No dependency checks.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check.

    Returns 503 if the database is unreachable within the configured timeout.
    """
    from backlog.backend.core.config import get_app_config
    timeout = get_app_config().application.timeouts.database

    try:
        async with asyncio.timeout(timeout):
            db_result = await check_database()
    except TimeoutError:
        db_result = {"status": "unhealthy", "error": f"timed out after {timeout}s"}

    checks = {"database": db_result}

    if db_result.get("status") == "unhealthy":
        logger.warning("Readiness check failed", extra={"checks": checks})
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "checks": checks,
                "timestamp": utc_now().isoformat(),
            },
        )

    return {
        "status": "healthy",
        "checks": checks,
        "timestamp": utc_now().isoformat(),
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request) -> dict[str, Any]:
    """Detailed health check with application info and storage status."""
    from backlog.backend.core.config import get_app_config

    checks = {
        "database": await check_database(),
        "storage": check_storage(request),
    }
    app_settings = get_app_config().application

    return {
        "status": "unhealthy" if checks["database"]["status"] == "unhealthy" else "healthy",
        "application": {
            "name": app_settings.name,
            "env": app_settings.environment,
            "debug": app_settings.debug,
            "version": app_settings.version,
        },
        "checks": checks,
        "timestamp": utc_now().isoformat(),
    }
