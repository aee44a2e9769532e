"""
FastAPI dependencies for authentication and authorization.

This module provides:
- Principal extraction from the bearer token (through the Guard)
- Permission and menu-flag checks built on the RBAC resolver
- The maintenance-mode gate for non-auth routers
- Service instances bound to the request's database session
- Client address and user-agent extraction
- Recording administrative actions to the activity trail
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.exceptions import MaintenanceModeError
from src.models.enums import ActivityAction
from src.services import (
    ActivityEvent,
    ActivityRecorder,
    ActivityService,
    AuthService,
    Guard,
    MenuService,
    PermissionCache,
    PermissionService,
    Principal,
    RbacService,
    RoleService,
    SystemSettingService,
    UserService,
)
from src.services.menu_tree import AccessFlags

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI - this adds the padlock icon
security = HTTPBearer(
    scheme_name="Bearer",
    description="Enter your JWT access token",
    auto_error=False,
)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def client_info(request: Request) -> tuple[str | None, str | None]:
    """Return (client ip, user agent) of a request."""
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


def _permission_cache(request: Request) -> PermissionCache | None:
    return getattr(request.app.state, "permission_cache", None)


def _recorder(request: Request) -> ActivityRecorder | None:
    return getattr(request.app.state, "recorder", None)


async def record_activity(
    request: Request,
    principal: Principal,
    action: ActivityAction,
    target_type: str | None = None,
    target_id: object = None,
    description: str | None = None,
) -> None:
    """
    Record an administrative action on behalf of the caller.

    A no-op when the application runs without an activity recorder.
    """
    recorder = _recorder(request)
    if recorder is None:
        return
    ip_address, user_agent = client_info(request)
    await recorder.record(
        ActivityEvent(
            action=action.value,
            user_id=principal.user_id,
            session_id=principal.session_id,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            description=description,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )


async def get_current_principal(
    request: Request,
    db: DbSession,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """
    Dependency resolving the bearer token to a Principal.

    The session row is re-read on every request, so logout and revocation
    take effect immediately. The principal is also stored on request.state
    for the activity middleware.

    Raises:
        AuthenticationError: Missing, malformed, forged or expired token, or
            a revoked/expired session

    Usage:
        @router.get("/api/v1/profile")
        async def get_profile(principal: CurrentPrincipal):
            return {"user_id": principal.user_id}
    """
    token = credentials.credentials if credentials else None
    principal = await Guard(db).authenticate(token)
    request.state.principal = principal
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_permission(permission_code: str) -> Callable[..., Awaitable[Principal]]:
    """
    Build a dependency that requires a permission code.

    Args:
        permission_code: Code one of the caller's active roles must grant

    Returns:
        Dependency returning the Principal

    Usage:
        @router.get("", dependencies=[Depends(require_permission("users_view"))])
    """

    async def dependency(request: Request, principal: CurrentPrincipal, db: DbSession) -> Principal:
        await RbacService(db, _permission_cache(request)).require_permission(
            principal.user_id, permission_code
        )
        return principal

    return dependency


def require_menu_access(
    menu_code: str | None = None, flag: str = "view"
) -> Callable[..., Awaitable[AccessFlags]]:
    """
    Build a dependency that requires a flag on a menu.

    Args:
        menu_code: Menu to check; when None it is read from the path
            parameter of the same name
        flag: view, create, modify, delete, upload or download

    Returns:
        Dependency returning the caller's merged flags on that menu
    """

    async def dependency(request: Request, principal: CurrentPrincipal, db: DbSession) -> AccessFlags:
        code = menu_code or request.path_params["menu_code"]
        return await RbacService(db, _permission_cache(request)).require_menu_access(
            principal.user_id, code, flag
        )

    return dependency


async def check_maintenance(db: DbSession) -> None:
    """
    Reject the request while maintenance mode is on.

    Attached to every router except authentication, health and settings.

    Raises:
        MaintenanceModeError: maintenance_mode setting is true
    """
    if await SystemSettingService(db).maintenance_mode():
        logger.info("Request rejected: maintenance mode")
        raise MaintenanceModeError()


# ============================================================================
# Service Dependencies
# ============================================================================


def get_auth_service(request: Request, db: DbSession) -> AuthService:
    """
    Dependency to get AuthService instance.

    The service records activity through the application's recorder and
    warms the shared permission cache on login.
    """
    return AuthService(db, recorder=_recorder(request), permission_cache=_permission_cache(request))


def get_user_service(request: Request, db: DbSession) -> UserService:
    """Dependency to get UserService instance."""
    return UserService(db, permission_cache=_permission_cache(request))


def get_role_service(request: Request, db: DbSession) -> RoleService:
    """Dependency to get RoleService instance."""
    return RoleService(db, permission_cache=_permission_cache(request))


def get_permission_service(db: DbSession) -> PermissionService:
    return PermissionService(db)


def get_menu_service(request: Request, db: DbSession) -> MenuService:
    """Dependency to get MenuService instance."""
    return MenuService(db, permission_cache=_permission_cache(request))


def get_rbac_service(request: Request, db: DbSession) -> RbacService:
    return RbacService(db, _permission_cache(request))


def get_settings_service(db: DbSession) -> SystemSettingService:
    return SystemSettingService(db)


def get_activity_service(db: DbSession) -> ActivityService:
    return ActivityService(db)


# Convenience type aliases for common dependencies
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
RoleServiceDep = Annotated[RoleService, Depends(get_role_service)]
PermissionServiceDep = Annotated[PermissionService, Depends(get_permission_service)]
MenuServiceDep = Annotated[MenuService, Depends(get_menu_service)]
RbacServiceDep = Annotated[RbacService, Depends(get_rbac_service)]
SettingsServiceDep = Annotated[SystemSettingService, Depends(get_settings_service)]
ActivityServiceDep = Annotated[ActivityService, Depends(get_activity_service)]
