"""
Integration tests for menu administration and menu access.

Tests cover:
- Menu CRUD with parent, cycle and children checks
- Reordering and the full tree
- Per-user menu trees with flags merged over roles
- The menu access dependency and cache invalidation on ACL changes
"""

import pytest
from httpx import AsyncClient


def error_code(response) -> str:  # type: ignore[no-untyped-def]
    return response.json()["error"]["code"]


@pytest.fixture
def create_menu(async_client: AsyncClient, admin_headers):  # type: ignore[no-untyped-def]
    async def create(code: str, parent_id: int | None = None, order: int = 0) -> dict:
        response = await async_client.post(
            "/api/v1/menus",
            json={
                "menu_name": code.title(),
                "menu_code": code,
                "parent_id": parent_id,
                "menu_order": order,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return create


@pytest.fixture
def create_role(async_client: AsyncClient, admin_headers):  # type: ignore[no-untyped-def]
    async def create(code: str, menus: list[dict] | None = None) -> dict:
        response = await async_client.post(
            "/api/v1/roles",
            json={"role_name": code.title(), "role_code": code},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        role = response.json()["data"]
        if menus:
            response = await async_client.put(
                f"/api/v1/roles/{role['id']}/menus",
                json={"menus": menus},
                headers=admin_headers,
            )
            assert response.status_code == 200, response.text
        return role

    return create


# ============================================================================
# Menu Administration Tests
# ============================================================================
class TestMenuAdministration:
    @pytest.mark.asyncio
    async def test_create_and_get(self, async_client: AsyncClient, admin_headers, create_menu):
        parent = await create_menu("settings")
        child = await create_menu("users", parent_id=parent["id"])

        response = await async_client.get(f"/api/v1/menus/{child['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["parent_id"] == parent["id"]

    @pytest.mark.asyncio
    async def test_duplicate_code(self, async_client: AsyncClient, admin_headers, create_menu):
        await create_menu("reports")

        response = await async_client.post(
            "/api/v1/menus",
            json={"menu_name": "Reports 2", "menu_code": "reports"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert error_code(response) == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_unknown_parent(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            "/api/v1/menus",
            json={"menu_name": "Orphan", "menu_code": "orphan", "parent_id": 999},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert error_code(response) == "INVALID_PARENT"

    @pytest.mark.asyncio
    async def test_reparent_under_descendant_is_rejected(
        self, async_client: AsyncClient, admin_headers, create_menu
    ):
        a = await create_menu("a")
        b = await create_menu("b", parent_id=a["id"])
        c = await create_menu("c", parent_id=b["id"])

        response = await async_client.put(
            f"/api/v1/menus/{a['id']}", json={"parent_id": c["id"]}, headers=admin_headers
        )

        assert response.status_code == 400
        assert error_code(response) == "MENU_CYCLE"
        assert response.json()["error"]["details"]["reason"] == "cycle"

        stored = await async_client.get(f"/api/v1/menus/{a['id']}", headers=admin_headers)
        assert stored.json()["data"]["parent_id"] is None

    @pytest.mark.asyncio
    async def test_self_parent_is_rejected(
        self, async_client: AsyncClient, admin_headers, create_menu
    ):
        a = await create_menu("a")

        response = await async_client.put(
            f"/api/v1/menus/{a['id']}", json={"parent_id": a["id"]}, headers=admin_headers
        )

        assert error_code(response) == "MENU_CYCLE"

    @pytest.mark.asyncio
    async def test_move_to_root(self, async_client: AsyncClient, admin_headers, create_menu):
        a = await create_menu("a")
        b = await create_menu("b", parent_id=a["id"])

        response = await async_client.put(
            f"/api/v1/menus/{b['id']}", json={"parent_id": None}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["parent_id"] is None

    @pytest.mark.asyncio
    async def test_delete_with_children_is_rejected(
        self, async_client: AsyncClient, admin_headers, create_menu
    ):
        a = await create_menu("a")
        b = await create_menu("b", parent_id=a["id"])

        response = await async_client.delete(f"/api/v1/menus/{a['id']}", headers=admin_headers)
        assert response.status_code == 409
        assert error_code(response) == "MENU_HAS_CHILDREN"

        assert (
            await async_client.delete(f"/api/v1/menus/{b['id']}", headers=admin_headers)
        ).status_code == 200
        gone = await async_client.get(f"/api/v1/menus/{b['id']}", headers=admin_headers)
        assert gone.status_code == 404

        assert (
            await async_client.delete(f"/api/v1/menus/{a['id']}", headers=admin_headers)
        ).status_code == 200

        listing = await async_client.get("/api/v1/menus", headers=admin_headers)
        listed = {menu["id"] for menu in listing.json()["data"]}
        assert a["id"] not in listed
        assert b["id"] not in listed

    @pytest.mark.asyncio
    async def test_reorder_and_full_tree(
        self, async_client: AsyncClient, admin_headers, create_menu
    ):
        first = await create_menu("first", order=1)
        second = await create_menu("second", order=2)
        child = await create_menu("child", parent_id=second["id"])

        response = await async_client.put(
            "/api/v1/menus/reorder",
            json={"items": [{"id": first["id"], "menu_order": 3}]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        tree = (await async_client.get("/api/v1/menus/tree", headers=admin_headers)).json()["data"]
        assert [node["menu_code"] for node in tree] == ["second", "first"]
        assert tree[0]["children"][0]["id"] == child["id"]

    @pytest.mark.asyncio
    async def test_requires_menu_permission(
        self, async_client: AsyncClient, test_user, login_as
    ):
        data = await login_as("alice")

        response = await async_client.get("/api/v1/menus", headers=data["headers"])

        assert response.status_code == 403
        assert error_code(response) == "PERMISSION_DENIED"


# ============================================================================
# Menu Access Tests
# ============================================================================
class TestMenuAccess:
    @pytest.mark.asyncio
    async def test_flags_merge_across_roles(
        self,
        async_client: AsyncClient,
        create_menu,
        create_role,
        user_factory,
        login_as,
    ):
        reports = await create_menu("reports")
        await create_role("VIEWER", menus=[{"menu_id": reports["id"], "can_view": True}])
        await create_role(
            "EDITOR",
            menus=[{"menu_id": reports["id"], "can_view": True, "can_modify": True}],
        )
        await user_factory("erin", role_codes=["VIEWER", "EDITOR"])
        data = await login_as("erin")

        response = await async_client.get(
            "/api/v1/menus/access/reports", headers=data["headers"]
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "view": True,
            "create": False,
            "modify": True,
            "delete": False,
            "upload": False,
            "download": False,
        }

    @pytest.mark.asyncio
    async def test_flags_without_view_grant_nothing(
        self, async_client: AsyncClient, create_menu, create_role, user_factory, login_as
    ):
        reports = await create_menu("reports")
        await create_role(
            "UPLOADER",
            menus=[{"menu_id": reports["id"], "can_view": False, "can_upload": True}],
        )
        await user_factory("erin", role_codes=["UPLOADER"])
        data = await login_as("erin")

        response = await async_client.get(
            "/api/v1/menus/access/reports", headers=data["headers"]
        )

        assert response.status_code == 403
        assert error_code(response) == "MENU_FORBIDDEN"

    @pytest.mark.asyncio
    async def test_unknown_menu(self, async_client: AsyncClient, test_user, login_as):
        data = await login_as("alice")

        response = await async_client.get(
            "/api/v1/menus/access/nowhere", headers=data["headers"]
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_my_tree_keeps_child_of_hidden_parent(
        self, async_client: AsyncClient, create_menu, create_role, user_factory, login_as
    ):
        admin_menu = await create_menu("administration")
        audit = await create_menu("audit", parent_id=admin_menu["id"])
        await create_role("AUDITOR", menus=[{"menu_id": audit["id"], "can_view": True}])
        await user_factory("erin", role_codes=["AUDITOR"])
        data = await login_as("erin")

        response = await async_client.get("/api/v1/menus/my-tree", headers=data["headers"])

        tree = response.json()["data"]
        assert [node["menu_code"] for node in tree] == ["audit"]
        assert tree[0]["access"]["view"] is True

    @pytest.mark.asyncio
    async def test_acl_change_is_seen_on_next_request(
        self,
        async_client: AsyncClient,
        admin_headers,
        create_menu,
        create_role,
        user_factory,
        login_as,
    ):
        reports = await create_menu("reports")
        role = await create_role("VIEWER", menus=[{"menu_id": reports["id"], "can_view": True}])
        await user_factory("erin", role_codes=["VIEWER"])
        data = await login_as("erin")

        before = await async_client.get("/api/v1/menus/access/reports", headers=data["headers"])
        assert before.json()["data"]["delete"] is False

        await async_client.put(
            f"/api/v1/roles/{role['id']}/menus",
            json={"menus": [{"menu_id": reports["id"], "can_view": True, "can_delete": True}]},
            headers=admin_headers,
        )

        after = await async_client.get("/api/v1/menus/access/reports", headers=data["headers"])
        assert after.json()["data"]["delete"] is True

    @pytest.mark.asyncio
    async def test_removed_role_loses_access(
        self,
        async_client: AsyncClient,
        admin_headers,
        create_menu,
        create_role,
        user_factory,
        login_as,
    ):
        reports = await create_menu("reports")
        role = await create_role("VIEWER", menus=[{"menu_id": reports["id"], "can_view": True}])
        erin = await user_factory("erin", role_codes=["VIEWER"])
        data = await login_as("erin")

        response = await async_client.request(
            "DELETE",
            f"/api/v1/users/{erin.id}/roles",
            json={"role_ids": [role["id"]]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        denied = await async_client.get("/api/v1/menus/access/reports", headers=data["headers"])
        assert error_code(denied) == "MENU_FORBIDDEN"
