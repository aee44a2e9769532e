"""
Read-side queries over the user -> role -> permission/menu graph.

Every query here follows the same activity rule: an edge contributes only
if the edge itself, both of its endpoints and the user are active.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.menu import Menu, RoleMenu
from src.models.role import Permission, Role, RolePermission, UserRole
from src.models.user import User


class RbacRepository:
    """Graph reads used by the RBAC resolver."""

    def __init__(self, session: AsyncSession):
        """
        Initialize RbacRepository.

        Args:
            session: Async database session
        """
        self.session = session

    @staticmethod
    def _active_roles_of(user_id: int):  # type: ignore[no-untyped-def]
        return (
            select(Role.id)
            .join(UserRole, UserRole.role_id == Role.id)
            .join(User, User.id == UserRole.user_id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
                User.is_active.is_(True),
            )
        )

    async def roles_of(self, user_id: int) -> list[Role]:
        """Active roles through active assignments of an active user."""
        query = (
            select(Role)
            .where(Role.id.in_(self._active_roles_of(user_id)))
            .order_by(Role.role_name)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def permission_codes_of(self, user_id: int) -> set[str]:
        """Union of active permission codes granted to the user's active roles."""
        query = (
            select(Permission.permission_code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(
                RolePermission.role_id.in_(self._active_roles_of(user_id)),
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .distinct()
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def menu_grants_of(self, user_id: int) -> list[RoleMenu]:
        """
        Per-role viewable access rows on active menus.

        One row per (role, menu) the user reaches through an active role with
        can_view set. Rows are merged by the resolver.
        """
        query = (
            select(RoleMenu)
            .join(Menu, Menu.id == RoleMenu.menu_id)
            .where(
                RoleMenu.role_id.in_(self._active_roles_of(user_id)),
                RoleMenu.can_view.is_(True),
                Menu.is_active.is_(True),
            )
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
