"""
Reference data required for the access core to operate.

This module seeds, idempotently:
- Account statuses (active, inactive, suspended)
- Runtime policy settings with their defaults
- The permission codes the administrative API checks
- The ADMIN system role holding every one of those permissions

Seeding runs on startup when DATABASE_CREATE_SCHEMA is set, and from the
test fixtures. Existing rows are never overwritten, so operator changes to
settings survive restarts.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.models.enums import SettingType, SystemPermission
from src.models.role import Permission, Role, RolePermission
from src.models.system_setting import SystemSetting
from src.models.user import UserStatus

logger = logging.getLogger(__name__)

ADMIN_ROLE_CODE = "ADMIN"

DEFAULT_STATUSES: list[tuple[str, str]] = [
    ("active", "Active"),
    ("inactive", "Inactive"),
    ("suspended", "Suspended"),
]

# (key, value, type, public, description)
DEFAULT_SETTINGS: list[tuple[str, str, SettingType, bool, str]] = [
    ("app_name", settings.app_name, SettingType.STRING, True, "Application name"),
    ("app_version", settings.version, SettingType.STRING, True, "Application version"),
    ("max_login_attempts", "5", SettingType.NUMBER, False,
     "Failed logins before the account is locked"),
    ("account_lock_duration_minutes", "30", SettingType.NUMBER, False,
     "Lockout window in minutes"),
    ("password_min_length", "8", SettingType.NUMBER, False,
     "Minimum password length (never below 8)"),
    ("session_timeout_hours", "24", SettingType.NUMBER, False,
     "Lifetime of newly created sessions in hours"),
    ("maintenance_mode", "false", SettingType.BOOLEAN, True,
     "Reject all non-auth routes while true"),
]

PERMISSION_MODULES: dict[SystemPermission, str] = {
    SystemPermission.USERS_VIEW: "users",
    SystemPermission.USERS_MANAGE: "users",
    SystemPermission.ROLES_VIEW: "roles",
    SystemPermission.ROLES_MANAGE: "roles",
    SystemPermission.MENUS_VIEW: "menus",
    SystemPermission.MENUS_MANAGE: "menus",
    SystemPermission.SETTINGS_MANAGE: "system",
    SystemPermission.ACTIVITY_VIEW: "system",
}


async def seed_reference_data(session: AsyncSession) -> None:
    """
    Insert missing reference rows and commit.

    Args:
        session: Async database session
    """
    existing_statuses = set(
        (await session.execute(select(UserStatus.status_code))).scalars().all()
    )
    for code, name in DEFAULT_STATUSES:
        if code not in existing_statuses:
            session.add(UserStatus(status_code=code, status_name=name))

    existing_keys = set(
        (await session.execute(select(SystemSetting.setting_key))).scalars().all()
    )
    for key, value, setting_type, is_public, description in DEFAULT_SETTINGS:
        if key not in existing_keys:
            session.add(
                SystemSetting(
                    setting_key=key,
                    setting_value=value,
                    setting_type=setting_type.value,
                    is_public=is_public,
                    description=description,
                )
            )

    permissions: dict[str, Permission] = {
        p.permission_code: p
        for p in (await session.execute(select(Permission))).scalars().all()
    }
    for code, module in PERMISSION_MODULES.items():
        if code.value not in permissions:
            permission = Permission(
                permission_code=code.value,
                permission_name=code.value.replace("_", " ").title(),
                module=module,
            )
            session.add(permission)
            permissions[code.value] = permission
    await session.flush()

    admin = (
        await session.execute(select(Role).where(Role.role_code == ADMIN_ROLE_CODE))
    ).scalar_one_or_none()
    if admin is None:
        admin = Role(
            role_name="Administrator",
            role_code=ADMIN_ROLE_CODE,
            description="Full administrative access",
            is_system_role=True,
        )
        session.add(admin)
        await session.flush()

    granted = set(
        (
            await session.execute(
                select(RolePermission.permission_id).where(
                    RolePermission.role_id == admin.id
                )
            )
        ).scalars().all()
    )
    for code in PERMISSION_MODULES:
        permission = permissions[code.value]
        if permission.id not in granted:
            session.add(RolePermission(role_id=admin.id, permission_id=permission.id))

    await session.commit()
    logger.info("Reference data seeded")
