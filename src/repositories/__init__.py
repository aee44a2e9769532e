"""
Database repositories for the back-office access core.

This module exports all repository classes for database operations.
"""

from src.repositories.activity_repository import ActivityRepository
from src.repositories.base import BaseRepository
from src.repositories.menu_repository import MenuRepository
from src.repositories.rbac_repository import RbacRepository
from src.repositories.role_repository import PermissionRepository, RoleRepository
from src.repositories.session_repository import (
    PasswordResetTokenRepository,
    SessionRepository,
)
from src.repositories.system_setting_repository import SystemSettingRepository
from src.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "RoleRepository",
    "PermissionRepository",
    "RbacRepository",
    "MenuRepository",
    "SessionRepository",
    "PasswordResetTokenRepository",
    "ActivityRepository",
    "SystemSettingRepository",
]
