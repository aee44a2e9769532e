"""
Database models for the back-office access core.

This module exports all SQLAlchemy models and the declarative base.
Import models from this module to ensure proper initialization.
"""

from src.models.activity_log import ActivityLog
from src.models.base import Base, UTCDateTime
from src.models.enums import AccessFlag, ActivityAction, SettingType, SystemPermission
from src.models.menu import Menu, RoleMenu
from src.models.mixins import ActiveFlagMixin, AuditFieldsMixin, TimestampMixin
from src.models.role import Permission, Role, RolePermission, UserRole
from src.models.session import PasswordResetToken, UserSession
from src.models.system_setting import SystemSetting
from src.models.user import Department, PasswordHistory, User, UserStatus

__all__ = [
    # Base
    "Base",
    "UTCDateTime",
    # Mixins
    "TimestampMixin",
    "ActiveFlagMixin",
    "AuditFieldsMixin",
    # User models
    "User",
    "UserStatus",
    "Department",
    "PasswordHistory",
    # Role graph
    "Role",
    "Permission",
    "RolePermission",
    "UserRole",
    "Menu",
    "RoleMenu",
    # Sessions
    "UserSession",
    "PasswordResetToken",
    # Activity and settings
    "ActivityLog",
    "SystemSetting",
    # Enums
    "AccessFlag",
    "ActivityAction",
    "SettingType",
    "SystemPermission",
]
