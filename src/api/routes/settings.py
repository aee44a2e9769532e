"""
System settings API routes.

This module provides:
- GET /api/v1/settings/public - Public settings (no authentication)
- GET /api/v1/settings - All active settings
- GET /api/v1/settings/{key} - Get one setting
- POST /api/v1/settings - Create setting (value validated against its type)
- PUT /api/v1/settings/{key} - Update setting

This router is not gated by maintenance mode, so an operator can always
turn maintenance_mode back off.
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from src.api.dependencies import (
    CurrentPrincipal,
    SettingsServiceDep,
    record_activity,
    require_permission,
)
from src.models.enums import ActivityAction, SystemPermission
from src.schemas.common import ApiResponse
from src.schemas.system import SettingCreate, SettingResponse, SettingUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["System Settings"])

can_manage = Depends(require_permission(SystemPermission.SETTINGS_MANAGE.value))


@router.get(
    "/public",
    response_model=ApiResponse[list[SettingResponse]],
    summary="Public settings",
    description="Settings flagged public (application name, version, maintenance flag).",
)
async def list_public_settings(
    settings_service: SettingsServiceDep,
) -> ApiResponse[list[SettingResponse]]:
    settings = await settings_service.list_settings(public_only=True)
    return ApiResponse(data=[SettingResponse.model_validate(s) for s in settings])


@router.get(
    "",
    response_model=ApiResponse[list[SettingResponse]],
    summary="List settings",
    dependencies=[can_manage],
)
async def list_settings(settings_service: SettingsServiceDep) -> ApiResponse[list[SettingResponse]]:
    settings = await settings_service.list_settings()
    return ApiResponse(data=[SettingResponse.model_validate(s) for s in settings])


@router.get(
    "/{key}",
    response_model=ApiResponse[SettingResponse],
    summary="Get setting",
    dependencies=[can_manage],
)
async def get_setting(key: str, settings_service: SettingsServiceDep) -> ApiResponse[SettingResponse]:
    return ApiResponse(data=SettingResponse.model_validate(await settings_service.get_setting(key)))


@router.post(
    "",
    response_model=ApiResponse[SettingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create setting",
    dependencies=[can_manage],
)
async def create_setting(
    request: Request,
    data: SettingCreate,
    principal: CurrentPrincipal,
    settings_service: SettingsServiceDep,
) -> ApiResponse[SettingResponse]:
    """
    Create a setting.

    Raises:
        400: Value does not parse as setting_type
        409: Key already exists
    """
    setting = await settings_service.create_setting(data, created_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.CREATE, "setting", setting.setting_key, "Setting created"
    )
    return ApiResponse(message="Setting created", data=SettingResponse.model_validate(setting))


@router.put(
    "/{key}",
    response_model=ApiResponse[SettingResponse],
    summary="Update setting",
    dependencies=[can_manage],
)
async def update_setting(
    request: Request,
    key: str,
    data: SettingUpdate,
    principal: CurrentPrincipal,
    settings_service: SettingsServiceDep,
) -> ApiResponse[SettingResponse]:
    setting = await settings_service.update_setting(key, data, updated_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.UPDATE, "setting", key, "Setting updated")
    return ApiResponse(message="Setting updated", data=SettingResponse.model_validate(setting))
