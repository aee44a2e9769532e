"""
Activity log API routes.

This module provides:
- GET /api/v1/activity-logs/me - The caller's own activity
- GET /api/v1/activity-logs - All activity, optionally filtered (activity_view)
"""

import logging

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import ActivityServiceDep, CurrentPrincipal, require_permission
from src.models.enums import SystemPermission
from src.schemas.common import ApiResponse, PaginatedResponse, PaginationParams
from src.schemas.system import ActivityLogResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity-logs", tags=["Activity Logs"])


@router.get(
    "/me",
    response_model=ApiResponse[PaginatedResponse[ActivityLogResponse]],
    summary="Get my activity",
    description="Activity recorded for the current user, newest first.",
)
async def get_my_activity(
    principal: CurrentPrincipal,
    activity_service: ActivityServiceDep,
    pagination: PaginationParams = Depends(),
    action: str | None = Query(default=None, max_length=50, description="Filter by action code"),
) -> ApiResponse[PaginatedResponse[ActivityLogResponse]]:
    result = await activity_service.list_activity(
        pagination, user_id=principal.user_id, action=action
    )
    return ApiResponse(data=result)


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[ActivityLogResponse]],
    summary="List activity",
    dependencies=[Depends(require_permission(SystemPermission.ACTIVITY_VIEW.value))],
)
async def list_activity(
    activity_service: ActivityServiceDep,
    pagination: PaginationParams = Depends(),
    user_id: int | None = Query(default=None, description="Filter by user id"),
    action: str | None = Query(default=None, max_length=50, description="Filter by action code"),
) -> ApiResponse[PaginatedResponse[ActivityLogResponse]]:
    """
    List recorded activity newest first.

    Query parameters:
        - page, page_size: Pagination
        - user_id: Only this user's activity
        - action: Only this action code (e.g. LOGIN_FAILED)
    """
    result = await activity_service.list_activity(pagination, user_id=user_id, action=action)
    return ApiResponse(data=result)
