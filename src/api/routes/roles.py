"""
Role and permission administration API routes.

This module provides:
- POST /api/v1/roles - Create role
- GET /api/v1/roles - List roles
- GET /api/v1/roles/{role_id} - Get role with permissions and menu ACL
- PUT /api/v1/roles/{role_id} - Update role (not system roles)
- DELETE /api/v1/roles/{role_id} - Soft delete role (not system roles, not in use)
- POST /api/v1/roles/{role_id}/permissions - Grant permissions
- DELETE /api/v1/roles/{role_id}/permissions - Revoke permissions
- PUT /api/v1/roles/{role_id}/menus - Set menu access flags
- GET /api/v1/permissions - List the permission catalogue
- POST /api/v1/permissions - Create a permission
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status

from src.api.dependencies import (
    CurrentPrincipal,
    PermissionServiceDep,
    RoleServiceDep,
    record_activity,
    require_permission,
)
from src.models.enums import ActivityAction, SystemPermission
from src.schemas.common import ApiResponse
from src.schemas.role import (
    MenuAccessRequest,
    PermissionCreate,
    PermissionIdsRequest,
    PermissionResponse,
    RoleCreate,
    RoleDetailResponse,
    RoleResponse,
    RoleUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/roles", tags=["Roles"])
permissions_router = APIRouter(prefix="/permissions", tags=["Permissions"])

can_view = Depends(require_permission(SystemPermission.ROLES_VIEW.value))
can_manage = Depends(require_permission(SystemPermission.ROLES_MANAGE.value))


@router.post(
    "",
    response_model=ApiResponse[RoleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create role",
    dependencies=[can_manage],
)
async def create_role(
    request: Request,
    data: RoleCreate,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[RoleResponse]:
    """
    Create a role.

    Raises:
        409: Role name (ignoring case) or code already exists
    """
    role = await role_service.create_role(data, created_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.CREATE, "role", role.id, "Role created")
    return ApiResponse(message="Role created", data=RoleResponse.model_validate(role))


@router.get(
    "",
    response_model=ApiResponse[list[RoleResponse]],
    summary="List roles",
    dependencies=[can_view],
)
async def list_roles(role_service: RoleServiceDep) -> ApiResponse[list[RoleResponse]]:
    roles = await role_service.list_roles()
    return ApiResponse(data=[RoleResponse.model_validate(role) for role in roles])


@router.get(
    "/{role_id}",
    response_model=ApiResponse[RoleDetailResponse],
    summary="Get role",
    dependencies=[can_view],
)
async def get_role(role_id: int, role_service: RoleServiceDep) -> ApiResponse[RoleDetailResponse]:
    return ApiResponse(data=await role_service.get_role_detail(role_id))


@router.put(
    "/{role_id}",
    response_model=ApiResponse[RoleResponse],
    summary="Update role",
    dependencies=[can_manage],
)
async def update_role(
    request: Request,
    role_id: int,
    data: RoleUpdate,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[RoleResponse]:
    """
    Update a role.

    Raises:
        404: Role not found
        409: System role, or new name/code already exists
    """
    role = await role_service.update_role(role_id, data, updated_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.UPDATE, "role", role_id, "Role updated")
    return ApiResponse(message="Role updated", data=RoleResponse.model_validate(role))


@router.delete(
    "/{role_id}",
    response_model=ApiResponse[None],
    summary="Delete role",
    dependencies=[can_manage],
)
async def delete_role(
    request: Request,
    role_id: int,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[None]:
    """
    Soft delete a role.

    Raises:
        404: Role not found
        409: System role, or still assigned to active users
    """
    await role_service.delete_role(role_id, deleted_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.DELETE, "role", role_id, "Role deleted")
    return ApiResponse(message="Role deleted")


@router.post(
    "/{role_id}/permissions",
    response_model=ApiResponse[RoleDetailResponse],
    summary="Grant permissions",
    dependencies=[can_manage],
)
async def grant_permissions(
    request: Request,
    role_id: int,
    data: PermissionIdsRequest,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[RoleDetailResponse]:
    role = await role_service.grant_permissions(
        role_id, data.permission_ids, granted_by=principal.user_id
    )
    await record_activity(
        request, principal, ActivityAction.UPDATE, "role", role_id, f"Permissions {data.permission_ids} granted"
    )
    return ApiResponse(message="Permissions granted", data=role)


@router.delete(
    "/{role_id}/permissions",
    response_model=ApiResponse[RoleDetailResponse],
    summary="Revoke permissions",
    dependencies=[can_manage],
)
async def revoke_permissions(
    request: Request,
    role_id: int,
    data: PermissionIdsRequest,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[RoleDetailResponse]:
    role = await role_service.revoke_permissions(
        role_id, data.permission_ids, revoked_by=principal.user_id
    )
    await record_activity(
        request, principal, ActivityAction.UPDATE, "role", role_id, f"Permissions {data.permission_ids} revoked"
    )
    return ApiResponse(message="Permissions revoked", data=role)


@router.put(
    "/{role_id}/menus",
    response_model=ApiResponse[RoleDetailResponse],
    summary="Set menu access",
    dependencies=[can_manage],
)
async def set_menu_access(
    request: Request,
    role_id: int,
    data: MenuAccessRequest,
    principal: CurrentPrincipal,
    role_service: RoleServiceDep,
) -> ApiResponse[RoleDetailResponse]:
    """
    Set the role's flags on each listed menu.

    A menu sent with can_view false has all its other flags stored as false.
    """
    role = await role_service.set_menu_access(role_id, data.menus, updated_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.UPDATE, "role", role_id, "Menu access updated"
    )
    return ApiResponse(message="Menu access updated", data=role)


# ============================================================================
# Permission catalogue
# ============================================================================


@permissions_router.get(
    "",
    response_model=ApiResponse[list[PermissionResponse]],
    summary="List permissions",
    dependencies=[can_view],
)
async def list_permissions(
    permission_service: PermissionServiceDep,
    module: str | None = Query(default=None, max_length=50),
) -> ApiResponse[list[PermissionResponse]]:
    permissions = await permission_service.list_permissions(module)
    return ApiResponse(data=[PermissionResponse.model_validate(p) for p in permissions])


@permissions_router.post(
    "",
    response_model=ApiResponse[PermissionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create permission",
    dependencies=[can_manage],
)
async def create_permission(
    request: Request,
    data: PermissionCreate,
    principal: CurrentPrincipal,
    permission_service: PermissionServiceDep,
) -> ApiResponse[PermissionResponse]:
    permission = await permission_service.create_permission(data, created_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.CREATE, "permission", permission.id, "Permission created"
    )
    return ApiResponse(message="Permission created", data=PermissionResponse.model_validate(permission))
