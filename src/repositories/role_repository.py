"""
Role repository for the role catalogue and the edges hanging off it.

This module provides database operations for:
- Roles (users_roles) and their uniqueness checks
- Role assignments (user_roles), including transactional replacement
- Permission grants (role_permissions)
- Menu access flags (role_menus)
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.menu import Menu, RoleMenu
from src.models.role import Permission, Role, RolePermission, UserRole
from src.models.user import User
from src.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """
    Repository for Role model operations.

    None of these methods commit; the calling service owns the unit of work
    so that multi-step edge updates become visible to readers all at once.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize RoleRepository.

        Args:
            session: Async database session
        """
        super().__init__(Role, session)

    # -------------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------------

    async def get_by_code(self, role_code: str) -> Role | None:
        """Get an active role by its uppercase code."""
        query = select(Role).where(Role.role_code == role_code.upper())
        query = self._apply_active_filter(query)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def name_exists(self, role_name: str, exclude_role_id: int | None = None) -> bool:
        """Check if a role name is taken, ignoring case."""
        query = select(Role.id).where(func.lower(Role.role_name) == role_name.lower())
        if exclude_role_id:
            query = query.where(Role.id != exclude_role_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def code_exists(self, role_code: str, exclude_role_id: int | None = None) -> bool:
        """Check if a role code is taken."""
        query = select(Role.id).where(Role.role_code == role_code.upper())
        if exclude_role_id:
            query = query.where(Role.id != exclude_role_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def get_by_ids(self, role_ids: Iterable[int]) -> list[Role]:
        """Get the active roles among the given ids."""
        ids = set(role_ids)
        if not ids:
            return []
        query = select(Role).where(Role.id.in_(ids), Role.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_active_users(self, role_id: int) -> int:
        """Count active users holding an active assignment of the role."""
        query = (
            select(func.count(UserRole.id))
            .join(User, User.id == UserRole.user_id)
            .where(
                UserRole.role_id == role_id,
                UserRole.is_active.is_(True),
                User.is_active.is_(True),
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    # -------------------------------------------------------------------------
    # Role assignments (user_roles)
    # -------------------------------------------------------------------------

    async def get_user_roles(self, user_id: int) -> list[Role]:
        """Get active roles through active assignments, ordered by name."""
        query = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
            )
            .order_by(Role.role_name)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _assignments_for(self, user_id: int) -> dict[int, UserRole]:
        result = await self.session.execute(
            select(UserRole).where(UserRole.user_id == user_id)
        )
        return {row.role_id: row for row in result.scalars().all()}

    async def replace_user_roles(
        self,
        user_id: int,
        role_ids: Iterable[int],
        assigned_by: int | None,
        now: datetime,
    ) -> None:
        """
        Replace a user's role set.

        Deactivates every current assignment, then re-activates or inserts
        one per requested role. Runs inside the caller's transaction so a
        reader never observes the half-applied set.
        """
        existing = await self._assignments_for(user_id)
        for assignment in existing.values():
            assignment.is_active = False

        for role_id in set(role_ids):
            self._activate(existing, user_id, role_id, assigned_by, now)

        await self.session.flush()

    async def add_user_roles(
        self,
        user_id: int,
        role_ids: Iterable[int],
        assigned_by: int | None,
        now: datetime,
    ) -> None:
        """Activate (or insert) assignments without touching other roles."""
        existing = await self._assignments_for(user_id)
        for role_id in set(role_ids):
            self._activate(existing, user_id, role_id, assigned_by, now)
        await self.session.flush()

    def _activate(
        self,
        existing: dict[int, UserRole],
        user_id: int,
        role_id: int,
        assigned_by: int | None,
        now: datetime,
    ) -> None:
        assignment = existing.get(role_id)
        if assignment is None:
            assignment = UserRole(user_id=user_id, role_id=role_id)
            self.session.add(assignment)
            existing[role_id] = assignment
        elif assignment.is_active:
            return
        assignment.is_active = True
        assignment.assigned_at = now
        assignment.assigned_by = assigned_by

    async def remove_user_roles(self, user_id: int, role_ids: Iterable[int]) -> int:
        """Deactivate the given assignments. Returns the number changed."""
        result = await self.session.execute(
            update(UserRole)
            .where(
                UserRole.user_id == user_id,
                UserRole.role_id.in_(set(role_ids)),
                UserRole.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # -------------------------------------------------------------------------
    # Permission grants (role_permissions)
    # -------------------------------------------------------------------------

    async def get_role_permissions(self, role_id: int) -> list[Permission]:
        """Get active permissions granted to a role, ordered by code."""
        query = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .order_by(Permission.permission_code)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def grant_permissions(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        granted_by: int | None,
        now: datetime,
    ) -> None:
        """Activate (or insert) grants of the given permissions."""
        result = await self.session.execute(
            select(RolePermission).where(RolePermission.role_id == role_id)
        )
        existing = {row.permission_id: row for row in result.unique().scalars().all()}

        for permission_id in set(permission_ids):
            grant = existing.get(permission_id)
            if grant is None:
                grant = RolePermission(role_id=role_id, permission_id=permission_id)
                self.session.add(grant)
            elif grant.is_active:
                continue
            grant.is_active = True
            grant.granted_at = now
            grant.granted_by = granted_by

        await self.session.flush()

    async def revoke_permissions(self, role_id: int, permission_ids: Iterable[int]) -> int:
        """Deactivate grants. Returns the number changed."""
        result = await self.session.execute(
            update(RolePermission)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id.in_(set(permission_ids)),
                RolePermission.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # -------------------------------------------------------------------------
    # Menu access (role_menus)
    # -------------------------------------------------------------------------

    async def get_role_menus(self, role_id: int) -> list[tuple[RoleMenu, Menu]]:
        """Get a role's access rows on active menus."""
        query = (
            select(RoleMenu, Menu)
            .join(Menu, Menu.id == RoleMenu.menu_id)
            .where(RoleMenu.role_id == role_id, Menu.is_active.is_(True))
            .order_by(Menu.menu_order, Menu.menu_name)
        )
        result = await self.session.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def set_menu_access(
        self,
        role_id: int,
        menu_id: int,
        flags: dict[str, bool],
        updated_by: int | None,
    ) -> RoleMenu:
        """
        Insert or update the access row for (role, menu).

        Args:
            role_id: Role id
            menu_id: Menu id
            flags: Column values (can_view, can_create, ...)
            updated_by: Acting user id
        """
        result = await self.session.execute(
            select(RoleMenu).where(RoleMenu.role_id == role_id, RoleMenu.menu_id == menu_id)
        )
        access = result.scalar_one_or_none()
        if access is None:
            access = RoleMenu(role_id=role_id, menu_id=menu_id, created_by=updated_by)
            self.session.add(access)

        for column, value in flags.items():
            setattr(access, column, value)
        access.updated_by = updated_by

        await self.session.flush()
        return access


class PermissionRepository(BaseRepository[Permission]):
    """Repository for the permission catalogue."""

    def __init__(self, session: AsyncSession):
        super().__init__(Permission, session)

    async def get_by_code(self, permission_code: str) -> Permission | None:
        """Get an active permission by code."""
        query = select(Permission).where(Permission.permission_code == permission_code)
        query = self._apply_active_filter(query)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def code_exists(self, permission_code: str) -> bool:
        """Check if a permission code is taken (active or not)."""
        result = await self.session.execute(
            select(Permission.id).where(Permission.permission_code == permission_code)
        )
        return result.first() is not None

    async def get_by_ids(self, permission_ids: Iterable[int]) -> list[Permission]:
        """Get the active permissions among the given ids."""
        ids = set(permission_ids)
        if not ids:
            return []
        query = select(Permission).where(
            Permission.id.in_(ids), Permission.is_active.is_(True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_permissions(self, module: str | None = None) -> list[Permission]:
        """List active permissions, optionally for one module, by code."""
        query = select(Permission).order_by(Permission.module, Permission.permission_code)
        query = self._apply_active_filter(query)
        if module:
            query = query.where(Permission.module == module)
        result = await self.session.execute(query)
        return list(result.scalars().all())
