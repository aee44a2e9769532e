"""
Role and permission administration service.

This module provides:
- Role CRUD; system roles cannot be updated or deleted
- Role deletion refused while active users hold the role
- Permission grants and revocations
- Per-menu access flags
- The permission catalogue

Every write that changes the role graph invalidates the shared permission
cache after commit.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.core import clock
from src.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    RoleInUseError,
    SystemRoleImmutableError,
)
from src.models.role import Permission, Role
from src.repositories.menu_repository import MenuRepository
from src.repositories.role_repository import PermissionRepository, RoleRepository
from src.schemas.role import (
    MenuAccessItem,
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleDetailResponse,
    RoleMenuResponse,
    RoleUpdate,
)
from src.services.rbac_service import PermissionCache

logger = logging.getLogger(__name__)

_FLAG_COLUMNS = ("can_create", "can_modify", "can_delete", "can_upload", "can_download")


class RoleService:
    """
    Service class for role administration.

    Args:
        session: Async database session
        permission_cache: Invalidated after role graph writes
    """

    def __init__(self, session: AsyncSession, permission_cache: PermissionCache | None = None):
        self.session = session
        self.permission_cache = permission_cache
        self.role_repo = RoleRepository(session)
        self.permission_repo = PermissionRepository(session)
        self.menu_repo = MenuRepository(session)

    def _invalidate(self) -> None:
        if self.permission_cache is not None:
            self.permission_cache.invalidate()

    async def get_role(self, role_id: int) -> Role:
        """
        Raises:
            NotFoundError: If no active role has that id
        """
        role = await self.role_repo.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role")
        return role

    async def _mutable_role(self, role_id: int) -> Role:
        role = await self.get_role(role_id)
        if role.is_system_role:
            logger.warning(f"Rejected change to system role {role.role_code}")
            raise SystemRoleImmutableError(details={"role_code": role.role_code})
        return role

    async def get_role_detail(self, role_id: int) -> RoleDetailResponse:
        """Role with its granted permissions and menu ACL."""
        role = await self.get_role(role_id)
        permissions = await self.role_repo.get_role_permissions(role.id)
        menus = await self.role_repo.get_role_menus(role.id)

        response = RoleDetailResponse.model_validate(role)
        response.permissions = [PermissionResponse.model_validate(p) for p in permissions]
        response.menus = [
            RoleMenuResponse(
                menu_id=menu.id,
                menu_name=menu.menu_name,
                menu_code=menu.menu_code,
                can_view=access.can_view,
                **{column: getattr(access, column) for column in _FLAG_COLUMNS},
            )
            for access, menu in menus
        ]
        return response

    async def list_roles(self) -> list[Role]:
        """Active roles ordered by id."""
        return await self.role_repo.get_all(limit=1000)

    async def create_role(self, data: RoleCreate, created_by: int) -> Role:
        """
        Create a (non-system) role.

        Raises:
            AlreadyExistsError: Name (ignoring case) or code taken
        """
        if await self.role_repo.name_exists(data.role_name):
            raise AlreadyExistsError("Role with this name")
        if await self.role_repo.code_exists(data.role_code):
            raise AlreadyExistsError("Role with this code")

        role = await self.role_repo.add(
            Role(
                role_name=data.role_name,
                role_code=data.role_code,
                description=data.description,
                is_system_role=False,
                created_by=created_by,
                updated_by=created_by,
            )
        )
        await self.session.commit()

        logger.info(f"Role {role.role_code} created by user {created_by}")
        return role

    async def update_role(self, role_id: int, data: RoleUpdate, updated_by: int) -> Role:
        """
        Update a role.

        Raises:
            NotFoundError: Role not found
            SystemRoleImmutableError: Role is a system role
            AlreadyExistsError: New name or code taken
        """
        role = await self._mutable_role(role_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("role_name") and await self.role_repo.name_exists(
            changes["role_name"], exclude_role_id=role.id
        ):
            raise AlreadyExistsError("Role with this name")
        if changes.get("role_code") and await self.role_repo.code_exists(
            changes["role_code"], exclude_role_id=role.id
        ):
            raise AlreadyExistsError("Role with this code")

        for field_name, value in changes.items():
            if value is None and field_name != "description":
                continue
            setattr(role, field_name, value)
        role.updated_by = updated_by

        role = await self.role_repo.update(role)
        await self.session.commit()
        self._invalidate()

        logger.info(f"Role {role.role_code} updated by user {updated_by}")
        return role

    async def delete_role(self, role_id: int, deleted_by: int) -> None:
        """
        Soft delete a role.

        Raises:
            NotFoundError: Role not found
            SystemRoleImmutableError: Role is a system role
            RoleInUseError: Active users still hold the role
        """
        role = await self._mutable_role(role_id)

        holders = await self.role_repo.count_active_users(role.id)
        if holders:
            raise RoleInUseError(details={"role_code": role.role_code, "active_users": holders})

        await self.role_repo.soft_delete(role, deleted_by=deleted_by)
        await self.session.commit()
        self._invalidate()

        logger.info(f"Role {role.role_code} deleted by user {deleted_by}")

    # -------------------------------------------------------------------------
    # Grants
    # -------------------------------------------------------------------------

    async def grant_permissions(
        self, role_id: int, permission_ids: list[int], granted_by: int
    ) -> RoleDetailResponse:
        """
        Grant permissions to a role.

        Raises:
            NotFoundError: Role or a permission not found
            SystemRoleImmutableError: Role is a system role
        """
        role = await self._mutable_role(role_id)
        wanted = set(permission_ids)
        found = {p.id for p in await self.permission_repo.get_by_ids(wanted)}
        missing = sorted(wanted - found)
        if missing:
            raise NotFoundError("Permission", details={"permission_ids": missing})

        await self.role_repo.grant_permissions(role.id, wanted, granted_by, clock.utc_now())
        await self.session.commit()
        self._invalidate()

        logger.info(f"Permissions {sorted(wanted)} granted to {role.role_code}")
        return await self.get_role_detail(role.id)

    async def revoke_permissions(
        self, role_id: int, permission_ids: list[int], revoked_by: int
    ) -> RoleDetailResponse:
        """Revoke permissions from a (non-system) role."""
        role = await self._mutable_role(role_id)
        revoked = await self.role_repo.revoke_permissions(role.id, permission_ids)
        await self.session.commit()
        self._invalidate()

        logger.info(f"{revoked} permissions revoked from {role.role_code} by user {revoked_by}")
        return await self.get_role_detail(role.id)

    async def set_menu_access(
        self, role_id: int, items: list[MenuAccessItem], updated_by: int
    ) -> RoleDetailResponse:
        """
        Set the role's flags on each listed menu, in one transaction.

        A row with can_view False has every other flag stored as False.

        Raises:
            NotFoundError: Role or a menu not found
            SystemRoleImmutableError: Role is a system role
        """
        role = await self._mutable_role(role_id)

        for item in items:
            if await self.menu_repo.get_by_id(item.menu_id) is None:
                raise NotFoundError("Menu", details={"menu_id": item.menu_id})

        for item in items:
            flags = {"can_view": item.can_view}
            flags.update(
                {column: item.can_view and getattr(item, column) for column in _FLAG_COLUMNS}
            )
            await self.role_repo.set_menu_access(role.id, item.menu_id, flags, updated_by)

        await self.session.commit()
        self._invalidate()

        logger.info(f"Menu access of {role.role_code} set on {len(items)} menus")
        return await self.get_role_detail(role.id)


class PermissionService:
    """Service for the permission catalogue."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.permission_repo = PermissionRepository(session)

    async def list_permissions(self, module: str | None = None) -> list[Permission]:
        return await self.permission_repo.list_permissions(module)

    async def create_permission(self, data: PermissionCreate, created_by: int) -> Permission:
        """
        Raises:
            AlreadyExistsError: Code taken
        """
        if await self.permission_repo.code_exists(data.permission_code):
            raise AlreadyExistsError("Permission with this code")

        permission = await self.permission_repo.add(
            Permission(**data.model_dump(), created_by=created_by, updated_by=created_by)
        )
        await self.session.commit()

        logger.info(f"Permission {permission.permission_code} created by user {created_by}")
        return permission
