"""
Pydantic schemas for API request/response validation.

This package provides all Pydantic models used for:
- Request validation
- Response serialization
- API documentation
"""

from src.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    LoginUser,
    MeResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    ResetPasswordRequest,
)
from src.schemas.common import (
    ApiResponse,
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
)
from src.schemas.menu import (
    AccessFlagsResponse,
    MenuCreate,
    MenuNodeResponse,
    MenuReorderItem,
    MenuReorderRequest,
    MenuResponse,
    MenuUpdate,
)
from src.schemas.role import (
    MenuAccessItem,
    MenuAccessRequest,
    PermissionCreate,
    PermissionIdsRequest,
    PermissionResponse,
    RoleCreate,
    RoleDetailResponse,
    RoleMenuResponse,
    RoleResponse,
    RoleUpdate,
)
from src.schemas.system import (
    ActivityLogResponse,
    SettingCreate,
    SettingResponse,
    SettingUpdate,
)
from src.schemas.user import (
    AdminPasswordReset,
    ProfileUpdate,
    RoleIdsRequest,
    RoleSummary,
    SessionResponse,
    UserCreate,
    UserDetailResponse,
    UserResponse,
    UserUpdate,
)

__all__ = [
    # Common schemas
    "ApiResponse",
    "PaginationParams",
    "PaginationMeta",
    "PaginatedResponse",
    # Auth schemas
    "LoginRequest",
    "LoginUser",
    "LoginResponse",
    "RefreshTokenRequest",
    "RefreshTokenResponse",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "MeResponse",
    # User schemas
    "UserCreate",
    "UserUpdate",
    "ProfileUpdate",
    "AdminPasswordReset",
    "RoleIdsRequest",
    "RoleSummary",
    "UserResponse",
    "UserDetailResponse",
    "SessionResponse",
    # Role / permission schemas
    "RoleCreate",
    "RoleUpdate",
    "RoleResponse",
    "RoleDetailResponse",
    "RoleMenuResponse",
    "PermissionCreate",
    "PermissionResponse",
    "PermissionIdsRequest",
    "MenuAccessItem",
    "MenuAccessRequest",
    # Menu schemas
    "MenuCreate",
    "MenuUpdate",
    "MenuReorderItem",
    "MenuReorderRequest",
    "MenuResponse",
    "MenuNodeResponse",
    "AccessFlagsResponse",
    # System schemas
    "SettingCreate",
    "SettingUpdate",
    "SettingResponse",
    "ActivityLogResponse",
]
