"""
Menu repository for menu tree storage.

Provides the queries menu write rules depend on (code uniqueness among
active menus, active child count, ancestor walk) and ordered reads for
tree building.
"""

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.menu import Menu
from src.repositories.base import BaseRepository


class MenuRepository(BaseRepository[Menu]):
    """Repository for Menu model operations."""

    def __init__(self, session: AsyncSession):
        """
        Initialize MenuRepository.

        Args:
            session: Async database session
        """
        super().__init__(Menu, session)

    @staticmethod
    def _ordered(query):  # type: ignore[no-untyped-def]
        # Roots first, then display order, then name
        return query.order_by(
            Menu.parent_id.is_not(None),
            Menu.parent_id,
            Menu.menu_order,
            Menu.menu_name,
            Menu.id,
        )

    async def list_active(self) -> list[Menu]:
        """Get all active menus ordered for tree building."""
        query = self._ordered(select(Menu).where(Menu.is_active.is_(True)))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_visible_by_ids(self, menu_ids: Iterable[int]) -> list[Menu]:
        """Get the active, visible menus among the given ids."""
        ids = set(menu_ids)
        if not ids:
            return []
        query = self._ordered(
            select(Menu).where(
                Menu.id.in_(ids),
                Menu.is_active.is_(True),
                Menu.is_visible.is_(True),
            )
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_code(self, menu_code: str) -> Menu | None:
        """Get the active menu holding a code."""
        query = select(Menu).where(Menu.menu_code == menu_code, Menu.is_active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def code_exists(self, menu_code: str, exclude_menu_id: int | None = None) -> bool:
        """Check if a code is held by another active menu."""
        query = select(Menu.id).where(Menu.menu_code == menu_code, Menu.is_active.is_(True))
        if exclude_menu_id:
            query = query.where(Menu.id != exclude_menu_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def count_active_children(self, menu_id: int) -> int:
        """Count active menus whose parent is menu_id."""
        query = select(func.count(Menu.id)).where(
            Menu.parent_id == menu_id, Menu.is_active.is_(True)
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def ancestor_ids(self, menu_id: int) -> set[int]:
        """
        Ids on the path from menu_id up to its root, menu_id included.

        Walks parent_id with a recursive CTE. UNION (not UNION ALL)
        discards repeated rows, so the walk terminates even if stored data
        already contains a cycle.
        """
        ancestors = (
            select(Menu.id, Menu.parent_id)
            .where(Menu.id == menu_id)
            .cte("menu_ancestors", recursive=True)
        )
        ancestors = ancestors.union(
            select(Menu.id, Menu.parent_id).join(ancestors, Menu.id == ancestors.c.parent_id)
        )
        result = await self.session.execute(select(ancestors.c.id))
        return set(result.scalars().all())
