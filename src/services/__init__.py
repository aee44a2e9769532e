"""
Service layer for business logic.

This package provides service classes that implement business logic,
coordinate between repositories, and handle transaction management.
"""

from src.services.activity_recorder import ActivityEvent, ActivityRecorder
from src.services.activity_service import ActivityService
from src.services.auth_service import AuthService
from src.services.guard import Guard, Principal
from src.services.menu_service import MenuService
from src.services.password_service import PasswordService
from src.services.rbac_service import PermissionCache, RbacService
from src.services.role_service import PermissionService, RoleService
from src.services.session_store import SessionStore
from src.services.system_service import SystemSettingService
from src.services.user_service import UserService

__all__ = [
    "ActivityEvent",
    "ActivityRecorder",
    "ActivityService",
    "AuthService",
    "Guard",
    "MenuService",
    "PasswordService",
    "PermissionCache",
    "PermissionService",
    "Principal",
    "RbacService",
    "RoleService",
    "SessionStore",
    "SystemSettingService",
    "UserService",
]
