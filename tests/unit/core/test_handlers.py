"""
Unit tests for exception handlers.

Tests cover:
- AppException handler response format
- Validation error handler formatting
- Integrity error mapping
- General exception handler
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from src.core.handlers import (
    app_exception_handler,
    general_exception_handler,
    integrity_error_handler,
    validation_exception_handler,
)
from src.exceptions import (
    AccountLockedError,
    MenuCycleError,
    NotFoundError,
    StorageError,
)


@pytest.fixture
def mock_request() -> MagicMock:
    """Create a mock request with request_id in state."""
    request = MagicMock(spec=Request)
    request.state.request_id = "test-request-123"
    request.client.host = "127.0.0.1"
    return request


def body_of(response) -> dict:  # type: ignore[no-untyped-def]
    return json.loads(response.body)


class TestAppExceptionHandler:
    """Tests for app_exception_handler."""

    @pytest.mark.asyncio
    async def test_not_found_envelope(self, mock_request: MagicMock) -> None:
        response = await app_exception_handler(mock_request, NotFoundError("Role"))

        assert response.status_code == 404
        assert body_of(response) == {
            "success": False,
            "message": "Role not found",
            "error": {"code": "NOT_FOUND", "message": "Role not found", "details": {}},
            "meta": {"request_id": "test-request-123"},
        }

    @pytest.mark.asyncio
    async def test_details_are_passed_through(self, mock_request: MagicMock) -> None:
        exc = MenuCycleError(details={"menu_id": 1, "parent_id": 3, "reason": "cycle"})

        response = await app_exception_handler(mock_request, exc)

        assert response.status_code == 400
        body = body_of(response)
        assert body["error"]["code"] == "MENU_CYCLE"
        assert body["error"]["details"]["reason"] == "cycle"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc, status_code, code",
        [
            (AccountLockedError(), 401, "ACCOUNT_LOCKED"),
            (StorageError(), 500, "STORAGE_ERROR"),
        ],
    )
    async def test_status_and_code(
        self, mock_request: MagicMock, exc, status_code: int, code: str  # type: ignore[no-untyped-def]
    ) -> None:
        response = await app_exception_handler(mock_request, exc)

        assert response.status_code == status_code
        assert body_of(response)["error"]["code"] == code


class TestValidationExceptionHandler:
    @pytest.mark.asyncio
    async def test_field_errors_become_input_error(self, mock_request: MagicMock) -> None:
        exc = RequestValidationError(
            [
                {
                    "loc": ("body", "username"),
                    "msg": "Field required",
                    "type": "missing",
                }
            ]
        )

        response = await validation_exception_handler(mock_request, exc)

        assert response.status_code == 400
        body = body_of(response)
        assert body["error"]["code"] == "INPUT_ERROR"
        assert body["error"]["details"] == [
            {"field": "body.username", "message": "Field required", "type": "missing"}
        ]


class TestIntegrityErrorHandler:
    @pytest.mark.asyncio
    async def test_maps_to_conflict(self, mock_request: MagicMock) -> None:
        exc = IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed"))

        response = await integrity_error_handler(mock_request, exc)

        assert response.status_code == 409
        assert body_of(response)["error"]["code"] == "ALREADY_EXISTS"


class TestGeneralExceptionHandler:
    @pytest.mark.asyncio
    async def test_hides_internal_details(self, mock_request: MagicMock) -> None:
        response = await general_exception_handler(mock_request, RuntimeError("db password=x"))

        assert response.status_code == 500
        body = body_of(response)
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "password" not in body["message"]
