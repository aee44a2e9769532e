"""
Integration tests for settings, maintenance mode, activity logs and health.
"""

import pytest
from httpx import AsyncClient

from src.services.activity_recorder import ActivityRecorder


def error_code(response) -> str:  # type: ignore[no-untyped-def]
    return response.json()["error"]["code"]


# ============================================================================
# Settings Tests
# ============================================================================
class TestSettings:
    @pytest.mark.asyncio
    async def test_public_settings_need_no_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/settings/public")

        assert response.status_code == 200
        keys = {s["setting_key"] for s in response.json()["data"]}
        assert keys == {"app_name", "app_version", "maintenance_mode"}

    @pytest.mark.asyncio
    async def test_full_listing_requires_permission(
        self, async_client: AsyncClient, test_user, login_as
    ):
        data = await login_as("alice")

        response = await async_client.get("/api/v1/settings", headers=data["headers"])

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_and_read(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            "/api/v1/settings",
            json={"setting_key": "support_email", "setting_value": "help@example.com"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        read = await async_client.get("/api/v1/settings/support_email", headers=admin_headers)
        assert read.json()["data"]["setting_value"] == "help@example.com"

    @pytest.mark.asyncio
    async def test_value_must_match_type(self, async_client: AsyncClient, admin_headers):
        response = await async_client.put(
            "/api/v1/settings/max_login_attempts",
            json={"setting_value": "five"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert error_code(response) == "INVALID_SETTING_VALUE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["inf", "nan", "1e400"])
    async def test_non_finite_number_rejected(
        self, async_client: AsyncClient, admin_headers, value: str
    ):
        response = await async_client.put(
            "/api/v1/settings/max_login_attempts",
            json={"setting_value": value},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert error_code(response) == "INVALID_SETTING_VALUE"

    @pytest.mark.asyncio
    async def test_huge_policy_values_keep_login_working(
        self, async_client: AsyncClient, admin_headers, test_user, login_as
    ):
        for key, value in [
            ("session_timeout_hours", "1e12"),
            ("account_lock_duration_minutes", "1e15"),
            ("max_login_attempts", "1e300"),
        ]:
            response = await async_client.put(
                f"/api/v1/settings/{key}", json={"setting_value": value}, headers=admin_headers
            )
            assert response.status_code == 200

        failed = await async_client.post(
            "/api/auth/login", json={"username": "alice", "password": "WrongPass1!"}
        )
        assert error_code(failed) == "INVALID_CREDENTIALS"

        data = await login_as("alice")
        me = await async_client.get("/api/auth/me", headers=data["headers"])
        assert me.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_key(self, async_client: AsyncClient, admin_headers):
        response = await async_client.get("/api/v1/settings/nope", headers=admin_headers)

        assert response.status_code == 404


# ============================================================================
# Maintenance Mode Tests
# ============================================================================
class TestMaintenanceMode:
    async def set_maintenance(self, client: AsyncClient, headers, value: str):  # type: ignore[no-untyped-def]
        response = await client.put(
            "/api/v1/settings/maintenance_mode",
            json={"setting_value": value},
            headers=headers,
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_non_auth_routes_are_closed(
        self, async_client: AsyncClient, admin_headers, test_user, login_as
    ):
        await self.set_maintenance(async_client, admin_headers, "true")

        response = await async_client.get("/api/v1/users", headers=admin_headers)
        assert response.status_code == 403
        assert error_code(response) == "MAINTENANCE_MODE"

        # Authentication and settings stay reachable
        data = await login_as("alice")
        me = await async_client.get("/api/auth/me", headers=data["headers"])
        assert me.status_code == 200
        public = await async_client.get("/api/v1/settings/public")
        assert {s["setting_key"]: s["setting_value"] for s in public.json()["data"]}[
            "maintenance_mode"
        ] == "true"

        await self.set_maintenance(async_client, admin_headers, "false")
        reopened = await async_client.get("/api/v1/users", headers=admin_headers)
        assert reopened.status_code == 200

    @pytest.mark.asyncio
    async def test_health_stays_up(self, async_client: AsyncClient, admin_headers):
        await self.set_maintenance(async_client, admin_headers, "on")

        response = await async_client.get("/health")

        assert response.status_code == 200


# ============================================================================
# Activity Log Tests
# ============================================================================
class TestActivityLogs:
    @pytest.mark.asyncio
    async def test_admin_actions_are_recorded(
        self, async_client: AsyncClient, admin_headers, admin_user, recorder: ActivityRecorder
    ):
        await async_client.post(
            "/api/v1/menus",
            json={"menu_name": "Reports", "menu_code": "reports"},
            headers=admin_headers,
        )
        await recorder.flush()

        response = await async_client.get(
            "/api/v1/activity-logs",
            params={"action": "CREATE"},
            headers=admin_headers,
        )

        rows = response.json()["data"]["data"]
        assert len(rows) == 1
        assert rows[0]["user_id"] == admin_user.id
        assert rows[0]["target_type"] == "menu"

    @pytest.mark.asyncio
    async def test_authenticated_requests_are_recorded(
        self, async_client: AsyncClient, test_user, login_as, recorder: ActivityRecorder
    ):
        data = await login_as("alice")
        await async_client.get("/api/auth/me", headers=data["headers"])
        await recorder.flush()

        response = await async_client.get(
            "/api/v1/activity-logs/me",
            params={"action": "API_REQUEST"},
            headers=data["headers"],
        )

        rows = response.json()["data"]["data"]
        assert rows[0]["description"] == "GET /api/auth/me"
        assert rows[0]["response_status"] == 200

    @pytest.mark.asyncio
    async def test_password_never_persisted(
        self, async_client: AsyncClient, admin_headers, recorder: ActivityRecorder
    ):
        await async_client.post(
            "/api/auth/login", json={"username": "ghost", "password": "Secr3t!pass"}
        )
        await recorder.flush()

        response = await async_client.get(
            "/api/v1/activity-logs",
            params={"action": "LOGIN_FAILED"},
            headers=admin_headers,
        )

        assert "Secr3t!pass" not in response.text
        assert response.json()["data"]["data"][0]["request_payload"] == {"username": "ghost"}

    @pytest.mark.asyncio
    async def test_my_activity_is_scoped(
        self, async_client: AsyncClient, admin_headers, test_user, login_as,
        recorder: ActivityRecorder,
    ):
        await async_client.post(
            "/api/v1/menus",
            json={"menu_name": "Reports", "menu_code": "reports"},
            headers=admin_headers,
        )
        data = await login_as("alice")
        await recorder.flush()

        response = await async_client.get("/api/v1/activity-logs/me", headers=data["headers"])

        assert {row["user_id"] for row in response.json()["data"]["data"]} == {test_user.id}


# ============================================================================
# Health Tests
# ============================================================================
class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_readiness(self, async_client: AsyncClient):
        response = await async_client.get("/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["activity_lost"] == 0

    @pytest.mark.asyncio
    async def test_root_reports_identity(self, async_client: AsyncClient):
        response = await async_client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"].startswith("Welcome to ")
        assert body["health"] == "/health"

    @pytest.mark.asyncio
    async def test_root_follows_app_name_setting(self, async_client: AsyncClient, admin_headers):
        await async_client.put(
            "/api/v1/settings/app_name",
            json={"setting_value": "Back Office"},
            headers=admin_headers,
        )

        response = await async_client.get("/")

        assert response.json()["message"] == "Welcome to Back Office API"

    @pytest.mark.asyncio
    async def test_security_headers(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


# ============================================================================
# Middleware Tests
# ============================================================================
class TestResponseHeaders:
    @pytest.mark.asyncio
    async def test_request_id_generated_when_absent(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_api_responses_are_not_cached(self, async_client: AsyncClient):
        api = await async_client.get("/api/v1/settings/public")
        health = await async_client.get("/health")

        assert api.headers["Cache-Control"] == "no-store"
        assert "Cache-Control" not in health.headers

    @pytest.mark.asyncio
    async def test_error_envelope_carries_request_id(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/auth/me", headers={"X-Request-ID": "trace-42"}
        )

        assert response.status_code == 401
        assert response.json()["meta"]["request_id"] == "trace-42"
