"""
Menu administration service.

Write rules checked before anything is stored:
- a menu is never its own parent
- re-parenting never closes a cycle (ancestor walk by recursive CTE)
- a parent must be an existing, active menu
- menu codes are unique among active menus
- a menu with active children cannot be deleted

A rejected write leaves storage untouched.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    AlreadyExistsError,
    MenuCycleError,
    MenuHasChildrenError,
    NotFoundError,
    ValidationError,
)
from src.models.menu import Menu
from src.repositories.menu_repository import MenuRepository
from src.schemas.menu import MenuCreate, MenuReorderItem, MenuUpdate
from src.services.menu_tree import MenuNode, build_menu_forest
from src.services.rbac_service import PermissionCache

logger = logging.getLogger(__name__)


class MenuService:
    """
    Service for menu CRUD and tree reads.

    Args:
        session: Async database session
        permission_cache: Invalidated after writes that change what users see
    """

    def __init__(self, session: AsyncSession, permission_cache: PermissionCache | None = None):
        self.session = session
        self.permission_cache = permission_cache
        self.menu_repo = MenuRepository(session)

    def _invalidate(self) -> None:
        if self.permission_cache is not None:
            self.permission_cache.invalidate()

    async def get_menu(self, menu_id: int) -> Menu:
        """
        Raises:
            NotFoundError: If no active menu has that id
        """
        menu = await self.menu_repo.get_by_id(menu_id)
        if menu is None:
            raise NotFoundError("Menu")
        return menu

    async def list_menus(self) -> list[Menu]:
        """All active menus, roots first."""
        return await self.menu_repo.list_active()

    async def full_tree(self) -> list[MenuNode]:
        """Forest of every active menu, hidden ones included, without flags."""
        return build_menu_forest(await self.menu_repo.list_active())

    async def _check_parent(self, parent_id: int, menu_id: int | None = None) -> None:
        if menu_id is not None and parent_id == menu_id:
            raise MenuCycleError(
                "A menu cannot be its own parent",
                details={"menu_id": menu_id, "parent_id": parent_id, "reason": "cycle"},
            )

        parent = await self.menu_repo.get_by_id(parent_id)
        if parent is None:
            raise ValidationError(
                "Parent menu does not exist",
                error_code="INVALID_PARENT",
                details={"parent_id": parent_id},
            )

        if menu_id is not None and menu_id in await self.menu_repo.ancestor_ids(parent_id):
            logger.warning(f"Rejected menu {menu_id} move under {parent_id}: cycle")
            raise MenuCycleError(
                details={"menu_id": menu_id, "parent_id": parent_id, "reason": "cycle"}
            )

    async def create_menu(self, data: MenuCreate, created_by: int) -> Menu:
        """
        Create a menu node.

        Raises:
            ValidationError: Parent does not exist
            AlreadyExistsError: Code is held by an active menu
        """
        if data.parent_id is not None:
            await self._check_parent(data.parent_id)
        if await self.menu_repo.code_exists(data.menu_code):
            raise AlreadyExistsError("Menu with this code")

        menu = await self.menu_repo.add(
            Menu(**data.model_dump(), created_by=created_by, updated_by=created_by)
        )
        await self.session.commit()
        self._invalidate()

        logger.info(f"Menu {menu.id} ({menu.menu_code}) created by user {created_by}")
        return menu

    async def update_menu(self, menu_id: int, data: MenuUpdate, updated_by: int) -> Menu:
        """
        Update a menu node. Only fields present in the request are applied.

        Raises:
            NotFoundError: Menu does not exist
            MenuCycleError: New parent is the menu itself or a descendant
            ValidationError: New parent does not exist
            AlreadyExistsError: New code is held by another active menu
        """
        menu = await self.get_menu(menu_id)
        changes = data.model_dump(exclude_unset=True)

        if "parent_id" in changes and changes["parent_id"] is not None:
            await self._check_parent(changes["parent_id"], menu_id=menu.id)

        for field_name in ("menu_name", "menu_code", "menu_order", "is_visible"):
            if field_name in changes and changes[field_name] is None:
                changes.pop(field_name)

        new_code = changes.get("menu_code")
        if new_code and new_code != menu.menu_code:
            if await self.menu_repo.code_exists(new_code, exclude_menu_id=menu.id):
                raise AlreadyExistsError("Menu with this code")

        for field_name, value in changes.items():
            setattr(menu, field_name, value)
        menu.updated_by = updated_by

        menu = await self.menu_repo.update(menu)
        await self.session.commit()
        self._invalidate()

        logger.info(f"Menu {menu.id} updated by user {updated_by}")
        return menu

    async def reorder(self, items: list[MenuReorderItem], updated_by: int) -> list[Menu]:
        """
        Apply several display-order changes in one transaction.

        Raises:
            NotFoundError: If any id is not an active menu (nothing is changed)
        """
        menus = []
        for item in items:
            menu = await self.get_menu(item.id)
            menu.menu_order = item.menu_order
            menu.updated_by = updated_by
            menus.append(menu)

        await self.session.flush()
        await self.session.commit()
        self._invalidate()

        logger.info(f"{len(menus)} menus reordered by user {updated_by}")
        return menus

    async def delete_menu(self, menu_id: int, deleted_by: int) -> None:
        """
        Soft-delete a menu.

        Raises:
            NotFoundError: Menu does not exist
            MenuHasChildrenError: An active menu still has it as parent
        """
        menu = await self.get_menu(menu_id)

        children = await self.menu_repo.count_active_children(menu.id)
        if children:
            raise MenuHasChildrenError(details={"menu_id": menu.id, "active_children": children})

        await self.menu_repo.soft_delete(menu, deleted_by=deleted_by)
        await self.session.commit()
        self._invalidate()

        logger.info(f"Menu {menu.id} deleted by user {deleted_by}")
