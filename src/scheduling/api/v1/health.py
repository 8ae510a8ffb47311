"""Liveness (/health) and readiness (/health/ready) probes."""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.scheduling.config import get_settings
from src.scheduling.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Process is up; nothing downstream is touched."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "default_timezone": settings.DEFAULT_TIMEZONE,
    }


async def _database_check() -> dict:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        return {"database": "error", "database_error": str(exc)}
    return {"database": "ok"}


@router.get("/health/ready")
async def readiness_check():
    """Ready once the meeting store answers.

    A missing provider URL is reported as ``not_configured`` but does not
    fail readiness: slot, reconcile and conflict calls still work without it.
    """
    checks = await _database_check()
    checks["meeting_provider"] = "ok" if get_settings().provider_configured else "not_configured"
    ready = checks["database"] == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
