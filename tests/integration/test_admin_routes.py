"""
Integration tests for user, role and permission administration.

Tests cover:
- User CRUD, role assignment and session administration
- Role CRUD with system-role and in-use protection
- Permission grants and the permission catalogue
- Permission checks on every administrative route
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from src.models.role import Role

NEW_USER = {
    "username": "frank",
    "email": "Frank@Example.com",
    "password": "Fr4nkPassword!",
    "first_name": "Frank",
}


def error_code(response) -> str:  # type: ignore[no-untyped-def]
    return response.json()["error"]["code"]


async def role_id(session_factory, code: str) -> int:  # type: ignore[no-untyped-def]
    async with session_factory() as session:
        return (await session.execute(select(Role.id).where(Role.role_code == code))).scalar_one()


# ============================================================================
# User Administration Tests
# ============================================================================
class TestUserAdministration:
    @pytest.mark.asyncio
    async def test_create_user(self, async_client: AsyncClient, admin_headers, login_as):
        response = await async_client.post("/api/v1/users", json=NEW_USER, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "frank@example.com"
        assert data["status"] == "active"
        assert data["roles"] == []
        assert "password_hash" not in data

        await login_as("frank", "Fr4nkPassword!")

    @pytest.mark.asyncio
    async def test_create_user_with_roles(
        self, async_client: AsyncClient, admin_headers, session_factory
    ):
        admin_role = await role_id(session_factory, "ADMIN")

        response = await async_client.post(
            "/api/v1/users",
            json={**NEW_USER, "role_ids": [admin_role]},
            headers=admin_headers,
        )

        assert [role["role_code"] for role in response.json()["data"]["roles"]] == ["ADMIN"]

    @pytest.mark.asyncio
    async def test_duplicate_username(self, async_client: AsyncClient, admin_headers, test_user):
        response = await async_client.post(
            "/api/v1/users",
            json={**NEW_USER, "username": "alice"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert error_code(response) == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_weak_initial_password(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            "/api/v1/users",
            json={**NEW_USER, "password": "frank"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert error_code(response) == "WEAK_PASSWORD"

    @pytest.mark.asyncio
    async def test_invalid_username(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            "/api/v1/users",
            json={**NEW_USER, "username": "no spaces"},
            headers=admin_headers,
        )

        assert error_code(response) == "INPUT_ERROR"

    @pytest.mark.asyncio
    async def test_list_and_search(self, async_client: AsyncClient, admin_headers, user_factory):
        await user_factory("alice")
        await user_factory("bob")

        response = await async_client.get(
            "/api/v1/users", params={"search": "bob"}, headers=admin_headers
        )

        page = response.json()["data"]
        assert [user["username"] for user in page["data"]] == ["bob"]
        assert page["meta"]["total"] == 1

    @pytest.mark.asyncio
    async def test_deactivation_revokes_sessions(
        self, async_client: AsyncClient, admin_headers, test_user, login_as
    ):
        data = await login_as("alice")

        response = await async_client.put(
            f"/api/v1/users/{test_user.id}", json={"is_active": False}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        replay = await async_client.get("/api/auth/me", headers=data["headers"])
        assert error_code(replay) == "SESSION_REVOKED"

        relogin = await async_client.post(
            "/api/auth/login", json={"username": "alice", "password": "Passw0rd!"}
        )
        assert error_code(relogin) == "ACCOUNT_INACTIVE"

    @pytest.mark.asyncio
    async def test_reactivate_user(self, async_client: AsyncClient, admin_headers, test_user):
        deactivate = await async_client.put(
            f"/api/v1/users/{test_user.id}", json={"is_active": False}, headers=admin_headers
        )
        assert deactivate.status_code == 200

        # Other edits still treat the user as gone
        edit = await async_client.put(
            f"/api/v1/users/{test_user.id}", json={"first_name": "Al"}, headers=admin_headers
        )
        assert edit.status_code == 404

        response = await async_client.put(
            f"/api/v1/users/{test_user.id}", json={"is_active": True}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is True

        login = await async_client.post(
            "/api/auth/login", json={"username": "alice", "password": "Passw0rd!"}
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_delete_user(self, async_client: AsyncClient, admin_headers, test_user):
        response = await async_client.delete(
            f"/api/v1/users/{test_user.id}", headers=admin_headers
        )
        assert response.status_code == 200

        gone = await async_client.get(f"/api/v1/users/{test_user.id}", headers=admin_headers)
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, async_client: AsyncClient, admin_headers, admin_user):
        response = await async_client.delete(
            f"/api/v1/users/{admin_user.id}", headers=admin_headers
        )

        assert response.status_code == 400
        assert error_code(response) == "SELF_DELETE"

    @pytest.mark.asyncio
    async def test_admin_password_reset(
        self, async_client: AsyncClient, admin_headers, test_user, login_as
    ):
        data = await login_as("alice")

        response = await async_client.post(
            f"/api/v1/users/{test_user.id}/reset-password",
            json={"new_password": "Adm1nChosen!"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"sessions_revoked": 1}

        replay = await async_client.get("/api/auth/me", headers=data["headers"])
        assert error_code(replay) == "SESSION_REVOKED"
        await login_as("alice", "Adm1nChosen!")

    @pytest.mark.asyncio
    async def test_sessions_listing_and_revocation(
        self, async_client: AsyncClient, admin_headers, test_user, login_as
    ):
        await login_as("alice")
        await login_as("alice")

        listing = await async_client.get(
            f"/api/v1/users/{test_user.id}/sessions", headers=admin_headers
        )
        assert len(listing.json()["data"]) == 2

        response = await async_client.delete(
            f"/api/v1/users/{test_user.id}/sessions", headers=admin_headers
        )
        assert response.json()["data"] == {"sessions_revoked": 2}

        listing = await async_client.get(
            f"/api/v1/users/{test_user.id}/sessions", headers=admin_headers
        )
        assert listing.json()["data"] == []

    @pytest.mark.asyncio
    async def test_role_assignment_grants_permissions(
        self, async_client: AsyncClient, admin_headers, test_user, session_factory, login_as
    ):
        data = await login_as("alice")
        denied = await async_client.get("/api/v1/users", headers=data["headers"])
        assert error_code(denied) == "PERMISSION_DENIED"

        response = await async_client.post(
            f"/api/v1/users/{test_user.id}/roles",
            json={"role_ids": [await role_id(session_factory, "ADMIN")]},
            headers=admin_headers,
        )
        assert response.status_code == 200

        allowed = await async_client.get("/api/v1/users", headers=data["headers"])
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_role(self, async_client: AsyncClient, admin_headers, test_user):
        response = await async_client.post(
            f"/api/v1/users/{test_user.id}/roles",
            json={"role_ids": [999]},
            headers=admin_headers,
        )

        assert response.status_code == 404


# ============================================================================
# Role Administration Tests
# ============================================================================
class TestRoleAdministration:
    async def create_role(self, client: AsyncClient, headers, name: str = "Auditor", code: str = "auditor"):  # type: ignore[no-untyped-def]
        return await client.post(
            "/api/v1/roles", json={"role_name": name, "role_code": code}, headers=headers
        )

    @pytest.mark.asyncio
    async def test_create_upper_cases_code(self, async_client: AsyncClient, admin_headers):
        response = await self.create_role(async_client, admin_headers)

        assert response.status_code == 201
        assert response.json()["data"]["role_code"] == "AUDITOR"
        assert response.json()["data"]["is_system_role"] is False

    @pytest.mark.asyncio
    async def test_name_unique_ignoring_case(self, async_client: AsyncClient, admin_headers):
        await self.create_role(async_client, admin_headers)

        response = await self.create_role(async_client, admin_headers, "AUDITOR", "AUDIT2")

        assert response.status_code == 409
        assert error_code(response) == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_system_role_is_immutable(
        self, async_client: AsyncClient, admin_headers, session_factory
    ):
        admin_role = await role_id(session_factory, "ADMIN")

        update = await async_client.put(
            f"/api/v1/roles/{admin_role}", json={"role_name": "Root"}, headers=admin_headers
        )
        delete = await async_client.delete(f"/api/v1/roles/{admin_role}", headers=admin_headers)

        assert update.status_code == delete.status_code == 409
        assert error_code(update) == error_code(delete) == "SYSTEM_ROLE_IMMUTABLE"

    @pytest.mark.asyncio
    async def test_role_in_use_cannot_be_deleted(
        self, async_client: AsyncClient, admin_headers, user_factory
    ):
        role = (await self.create_role(async_client, admin_headers)).json()["data"]
        await user_factory("alice", role_codes=["AUDITOR"])

        response = await async_client.delete(f"/api/v1/roles/{role['id']}", headers=admin_headers)

        assert response.status_code == 409
        assert error_code(response) == "ROLE_IN_USE"
        assert response.json()["error"]["details"]["active_users"] == 1

    @pytest.mark.asyncio
    async def test_delete_unused_role(self, async_client: AsyncClient, admin_headers):
        role = (await self.create_role(async_client, admin_headers)).json()["data"]

        response = await async_client.delete(f"/api/v1/roles/{role['id']}", headers=admin_headers)
        assert response.status_code == 200

        gone = await async_client.get(f"/api/v1/roles/{role['id']}", headers=admin_headers)
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_grant_and_revoke_permissions(
        self, async_client: AsyncClient, admin_headers, user_factory, login_as
    ):
        role = (await self.create_role(async_client, admin_headers)).json()["data"]
        catalogue = await async_client.get(
            "/api/v1/permissions", params={"module": "system"}, headers=admin_headers
        )
        activity_view = next(
            p for p in catalogue.json()["data"] if p["permission_code"] == "activity_view"
        )
        await user_factory("alice", role_codes=["AUDITOR"])
        data = await login_as("alice")

        granted = await async_client.post(
            f"/api/v1/roles/{role['id']}/permissions",
            json={"permission_ids": [activity_view["id"]]},
            headers=admin_headers,
        )
        assert [p["permission_code"] for p in granted.json()["data"]["permissions"]] == [
            "activity_view"
        ]
        allowed = await async_client.get("/api/v1/activity-logs", headers=data["headers"])
        assert allowed.status_code == 200

        await async_client.request(
            "DELETE",
            f"/api/v1/roles/{role['id']}/permissions",
            json={"permission_ids": [activity_view["id"]]},
            headers=admin_headers,
        )
        denied = await async_client.get("/api/v1/activity-logs", headers=data["headers"])
        assert error_code(denied) == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_deactivated_role_grants_nothing(
        self, async_client: AsyncClient, admin_headers, user_factory, login_as, session_factory
    ):
        role = (await self.create_role(async_client, admin_headers)).json()["data"]
        await async_client.post(
            f"/api/v1/roles/{role['id']}/permissions",
            json={"permission_ids": [1]},
            headers=admin_headers,
        )
        await user_factory("alice", role_codes=["AUDITOR"])
        data = await login_as("alice")

        response = await async_client.put(
            f"/api/v1/roles/{role['id']}", json={"is_active": False}, headers=admin_headers
        )
        assert response.status_code == 200

        me = await async_client.get("/api/auth/me", headers=data["headers"])
        assert me.json()["data"]["roles"] == []
        assert me.json()["data"]["permissions"] == []

    @pytest.mark.asyncio
    async def test_create_permission(self, async_client: AsyncClient, admin_headers):
        body = {"permission_code": "reports_export", "permission_name": "Export reports", "module": "reports"}

        created = await async_client.post("/api/v1/permissions", json=body, headers=admin_headers)
        duplicate = await async_client.post("/api/v1/permissions", json=body, headers=admin_headers)

        assert created.status_code == 201
        assert duplicate.status_code == 409
