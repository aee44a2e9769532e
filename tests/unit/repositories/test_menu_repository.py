"""
Unit tests for the ancestry walk used by menu cycle checks.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.menu import Menu
from src.repositories.menu_repository import MenuRepository


async def add_menu(db_session: AsyncSession, code: str, parent_id: int | None = None) -> Menu:
    menu = Menu(menu_name=code.title(), menu_code=code, parent_id=parent_id)
    db_session.add(menu)
    await db_session.flush()
    return menu


class TestAncestorIds:
    @pytest.mark.asyncio
    async def test_path_to_root(self, db_session: AsyncSession):
        a = await add_menu(db_session, "a")
        b = await add_menu(db_session, "b", a.id)
        c = await add_menu(db_session, "c", b.id)
        await add_menu(db_session, "other")

        ancestors = await MenuRepository(db_session).ancestor_ids(c.id)

        assert ancestors == {a.id, b.id, c.id}

    @pytest.mark.asyncio
    async def test_root_is_its_own_only_ancestor(self, db_session: AsyncSession):
        a = await add_menu(db_session, "a")

        assert await MenuRepository(db_session).ancestor_ids(a.id) == {a.id}

    @pytest.mark.asyncio
    async def test_terminates_on_cyclic_data(self, db_session: AsyncSession):
        a = await add_menu(db_session, "a")
        b = await add_menu(db_session, "b", a.id)
        a.parent_id = b.id
        await db_session.flush()

        assert await MenuRepository(db_session).ancestor_ids(a.id) == {a.id, b.id}
