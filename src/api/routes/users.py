"""
User administration API routes.

This module provides:
- POST /api/v1/users - Create user with initial roles
- GET /api/v1/users - List users (search, status filter, paginated)
- GET /api/v1/users/{user_id} - Get user with roles
- PUT /api/v1/users/{user_id} - Update user (role set replaced atomically)
- DELETE /api/v1/users/{user_id} - Soft delete user
- POST /api/v1/users/{user_id}/reset-password - Set a user's password
- POST /api/v1/users/{user_id}/unlock - Clear a lockout
- POST /api/v1/users/{user_id}/roles - Assign roles
- DELETE /api/v1/users/{user_id}/roles - Remove roles
- GET /api/v1/users/{user_id}/sessions - List live sessions
- DELETE /api/v1/users/{user_id}/sessions - Revoke all sessions

Reads require users_view, writes users_manage.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status

from src.api.dependencies import (
    CurrentPrincipal,
    UserServiceDep,
    record_activity,
    require_permission,
)
from src.models.enums import ActivityAction, SystemPermission
from src.schemas.common import ApiResponse, PaginatedResponse, PaginationParams
from src.schemas.user import (
    AdminPasswordReset,
    RoleIdsRequest,
    SessionResponse,
    UserCreate,
    UserDetailResponse,
    UserResponse,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

can_view = Depends(require_permission(SystemPermission.USERS_VIEW.value))
can_manage = Depends(require_permission(SystemPermission.USERS_MANAGE.value))


@router.post(
    "",
    response_model=ApiResponse[UserDetailResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    dependencies=[can_manage],
)
async def create_user(
    request: Request,
    data: UserCreate,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[UserDetailResponse]:
    """
    Create a new user.

    Raises:
        400: Weak password or unknown status code
        404: Unknown role id
        409: Username or email already exists
    """
    user = await user_service.create_user(data, created_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.CREATE, "user", user.id, "User created")
    return ApiResponse(message="User created", data=user)


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[UserResponse]],
    summary="List users",
    dependencies=[can_view],
)
async def list_users(
    user_service: UserServiceDep,
    pagination: PaginationParams = Depends(),
    search: str | None = Query(default=None, max_length=100),
    status_code: str | None = Query(default=None, max_length=20),
) -> ApiResponse[PaginatedResponse[UserResponse]]:
    """
    List active users.

    Query parameters:
        - page, page_size: Pagination
        - search: Matches username, email, first or last name
        - status_code: active, inactive, suspended
    """
    result = await user_service.list_users(pagination, search=search, status_code=status_code)
    return ApiResponse(data=result)


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserDetailResponse],
    summary="Get user",
    dependencies=[can_view],
)
async def get_user(user_id: int, user_service: UserServiceDep) -> ApiResponse[UserDetailResponse]:
    return ApiResponse(data=await user_service.get_user(user_id))


@router.put(
    "/{user_id}",
    response_model=ApiResponse[UserDetailResponse],
    summary="Update user",
    dependencies=[can_manage],
)
async def update_user(
    request: Request,
    user_id: int,
    data: UserUpdate,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[UserDetailResponse]:
    """
    Update a user.

    When role_ids is sent the user's role set is replaced with exactly those
    roles in one transaction. Setting is_active to false revokes every
    session of the user.
    """
    user = await user_service.update_user(user_id, data, updated_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.UPDATE, "user", user_id, "User updated")
    return ApiResponse(message="User updated", data=user)


@router.delete(
    "/{user_id}",
    response_model=ApiResponse[None],
    summary="Delete user",
    dependencies=[can_manage],
)
async def delete_user(
    request: Request,
    user_id: int,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[None]:
    await user_service.delete_user(user_id, deleted_by=principal.user_id)
    await record_activity(request, principal, ActivityAction.DELETE, "user", user_id, "User deleted")
    return ApiResponse(message="User deleted")


@router.post(
    "/{user_id}/reset-password",
    response_model=ApiResponse[dict],
    summary="Set a user's password",
    dependencies=[can_manage],
)
async def admin_reset_password(
    request: Request,
    user_id: int,
    data: AdminPasswordReset,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[dict]:
    """
    Set a user's password. Policy and history apply; every session of the
    user is revoked.
    """
    revoked = await user_service.admin_reset_password(
        user_id, data.new_password, updated_by=principal.user_id
    )
    await record_activity(
        request, principal, ActivityAction.PASSWORD_RESET, "user", user_id, "Password set by administrator"
    )
    return ApiResponse(message="Password reset", data={"sessions_revoked": revoked})


@router.post(
    "/{user_id}/unlock",
    response_model=ApiResponse[UserResponse],
    summary="Unlock user",
    dependencies=[can_manage],
)
async def unlock_user(
    request: Request,
    user_id: int,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[UserResponse]:
    user = await user_service.unlock_user(user_id, updated_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.ACCOUNT_UNLOCK, "user", user_id, "Account unlocked"
    )
    return ApiResponse(message="User unlocked", data=UserResponse.model_validate(user))


@router.post(
    "/{user_id}/roles",
    response_model=ApiResponse[UserDetailResponse],
    summary="Assign roles",
    dependencies=[can_manage],
)
async def assign_roles(
    request: Request,
    user_id: int,
    data: RoleIdsRequest,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[UserDetailResponse]:
    user = await user_service.assign_roles(user_id, data.role_ids, assigned_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.ROLES_ASSIGNED, "user", user_id, f"Roles {data.role_ids} assigned"
    )
    return ApiResponse(message="Roles assigned", data=user)


@router.delete(
    "/{user_id}/roles",
    response_model=ApiResponse[UserDetailResponse],
    summary="Remove roles",
    dependencies=[can_manage],
)
async def remove_roles(
    request: Request,
    user_id: int,
    data: RoleIdsRequest,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[UserDetailResponse]:
    user = await user_service.remove_roles(user_id, data.role_ids, removed_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.UPDATE, "user", user_id, f"Roles {data.role_ids} removed"
    )
    return ApiResponse(message="Roles removed", data=user)


@router.get(
    "/{user_id}/sessions",
    response_model=ApiResponse[list[SessionResponse]],
    summary="List live sessions",
    dependencies=[can_view],
)
async def list_sessions(
    user_id: int, user_service: UserServiceDep
) -> ApiResponse[list[SessionResponse]]:
    sessions = await user_service.list_sessions(user_id)
    return ApiResponse(data=[SessionResponse.model_validate(s) for s in sessions])


@router.delete(
    "/{user_id}/sessions",
    response_model=ApiResponse[dict],
    summary="Revoke all sessions",
    dependencies=[can_manage],
)
async def revoke_sessions(
    request: Request,
    user_id: int,
    principal: CurrentPrincipal,
    user_service: UserServiceDep,
) -> ApiResponse[dict]:
    revoked = await user_service.revoke_sessions(user_id, revoked_by=principal.user_id)
    await record_activity(
        request, principal, ActivityAction.SESSIONS_REVOKED, "user", user_id, f"{revoked} sessions revoked"
    )
    return ApiResponse(message="Sessions revoked", data={"sessions_revoked": revoked})
