"""
Health Check Endpoints
"""

import logging
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.database import check_database_connection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check() -> dict[str, str]:
    """
    Basic health check endpoint.

    Returns:
        Basic application information and status
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint.

    Verifies database connectivity and reports the activity recorder's
    backlog. Answers 503 while the database is unreachable.

    Returns:
        Detailed readiness status
    """
    db_healthy = await check_database_connection(request.app.state.engine)

    checks: dict[str, Any] = {"database": "ok" if db_healthy else "unavailable"}
    recorder = getattr(request.app.state, "recorder", None)
    if recorder is not None:
        checks["activity_pending"] = recorder.pending
        checks["activity_lost"] = recorder.lost_events

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if db_healthy else "not_ready",
            "app": settings.app_name,
            "version": settings.version,
            "checks": checks,
        },
    )
