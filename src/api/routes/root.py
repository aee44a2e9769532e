"""
Root Endpoints
"""

import logging

from fastapi import APIRouter

from src.api.dependencies import SettingsServiceDep
from src.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Root"])


@router.get("/")
async def root(settings_service: SettingsServiceDep) -> dict[str, str]:
    """
    Root endpoint.

    Application name and version come from the app_name and app_version
    system settings, so operators can relabel a running deployment.

    Returns:
        Welcome message with API information
    """
    app_name, app_version = await settings_service.app_identity()
    return {
        "message": f"Welcome to {app_name} API",
        "version": app_version,
        "docs": "/docs" if settings.debug else "disabled in production",
        "health": "/health",
    }
