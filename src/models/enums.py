"""
Enums shared by models, services and schemas.

This module defines:
- SettingType: Declared type of a system_settings value
- ActivityAction: Action codes written to users_activity_logs
- SystemPermission: Permission codes the administrative API checks
- AccessFlag: The six per-(role, menu) operation flags
"""

import enum


class SettingType(str, enum.Enum):
    """
    Declared type of a system setting.

    The stored value is always a string; it is validated against this type
    on every write and parsed by the typed getters on read.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class ActivityAction(str, enum.Enum):
    """
    Action codes for the activity trail.

    Authentication actions are never dropped by the activity recorder;
    callers recording them wait for buffer space instead.
    """

    # Authentication actions
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET = "PASSWORD_RESET"

    # Session actions
    TOKEN_REFRESH = "TOKEN_REFRESH"
    SESSIONS_REVOKED = "SESSIONS_REVOKED"

    # Request trail
    API_REQUEST = "API_REQUEST"

    # Administrative actions
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ACCOUNT_UNLOCK = "ACCOUNT_UNLOCK"
    ROLES_ASSIGNED = "ROLES_ASSIGNED"

    @property
    def is_auth_event(self) -> bool:
        """Whether this action belongs to the never-dropped auth category."""
        return self in AUTH_ACTIONS


AUTH_ACTIONS = frozenset(
    {
        ActivityAction.LOGIN_SUCCESS,
        ActivityAction.LOGIN_FAILED,
        ActivityAction.ACCOUNT_LOCKED,
        ActivityAction.LOGOUT,
        ActivityAction.PASSWORD_CHANGE,
        ActivityAction.PASSWORD_RESET,
    }
)


class SystemPermission(str, enum.Enum):
    """
    Permission codes checked by the administrative API.

    Seeded into the permissions table and granted to the ADMIN system role.
    """

    USERS_VIEW = "users_view"
    USERS_MANAGE = "users_manage"
    ROLES_VIEW = "roles_view"
    ROLES_MANAGE = "roles_manage"
    MENUS_VIEW = "menus_view"
    MENUS_MANAGE = "menus_manage"
    SETTINGS_MANAGE = "settings_manage"
    ACTIVITY_VIEW = "activity_view"


class AccessFlag(str, enum.Enum):
    """Per-menu operation flags granted through role_menus."""

    VIEW = "view"
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    UPLOAD = "upload"
    DOWNLOAD = "download"
