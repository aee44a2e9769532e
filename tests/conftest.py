"""
Pytest configuration and fixtures for the access core tests.

This module provides:
- An in-memory SQLite database with the schema and reference data
- Test client fixtures (httpx over ASGI, app.state wired by hand)
- User fixtures and a user factory
- Login helpers returning tokens
- A controllable clock
"""

# Set environment variables BEFORE importing anything from src
import os

os.environ["SECRET_KEY"] = "test-secret-key-for-the-access-core-0123456789"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_DEFAULT"] = "10000 per hour"
os.environ["RATE_LIMIT_LOGIN"] = "10000 per hour"
os.environ["RATE_LIMIT_PASSWORD_CHANGE"] = "10000 per hour"
os.environ["RATE_LIMIT_TOKEN_REFRESH"] = "10000 per hour"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ["LOG_FILE_ENABLED"] = "false"

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.database import create_database_engine, create_sessionmaker
from src.core.security import hash_password
from src.main import app
from src.models.base import Base
from src.models.bootstrap import ADMIN_ROLE_CODE, seed_reference_data
from src.models.role import Role, UserRole
from src.models.user import User, UserStatus
from src.services.activity_recorder import (
    ActivityRecorder,
    DatabaseActivitySink,
    FileActivitySink,
)
from src.services.rbac_service import PermissionCache

DEFAULT_PASSWORD = "Passw0rd!"


# ============================================================================
# Clock
# ============================================================================
class FrozenClock:
    """Replacement for clock.utc_now that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def frozen_clock(monkeypatch: pytest.MonkeyPatch) -> FrozenClock:
    """Patch src.core.clock.utc_now with a controllable clock."""
    fake = FrozenClock(datetime.now(UTC).replace(microsecond=0))
    monkeypatch.setattr("src.core.clock.utc_now", fake)
    return fake


# ============================================================================
# Database Fixtures
# ============================================================================
@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh in-memory database per test.

    StaticPool keeps the single in-memory connection alive for every
    session the test and the application open.
    """
    engine = create_database_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with reference data (statuses, settings, ADMIN role) seeded."""
    factory = create_sessionmaker(test_engine)
    async with factory() as session:
        await seed_reference_data(session)
    return factory


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def permission_cache() -> PermissionCache:
    return PermissionCache(ttl_seconds=30.0)


@pytest_asyncio.fixture
async def recorder(
    session_factory: async_sessionmaker[AsyncSession], tmp_path
) -> AsyncGenerator[ActivityRecorder, None]:
    """
    Activity recorder writing to the test database.

    The background worker is not started; tests call flush() before
    reading activity rows.
    """
    activity = ActivityRecorder(
        sink=DatabaseActivitySink(session_factory),
        fallback=FileActivitySink(tmp_path / "activity_fallback.jsonl"),
    )
    yield activity
    await activity.stop(drain_timeout=1.0)


# ============================================================================
# FastAPI Client Fixtures
# ============================================================================
@pytest_asyncio.fixture
async def async_client(
    test_engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    permission_cache: PermissionCache,
    recorder: ActivityRecorder,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async client over ASGI.

    ASGITransport does not run the lifespan, so app.state is populated here
    with the test engine, session factory, cache and recorder.
    """
    app.state.engine = test_engine
    app.state.sessionmaker = session_factory
    app.state.permission_cache = permission_cache
    app.state.recorder = recorder

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.state.sessionmaker = None
    app.state.recorder = None


# ============================================================================
# User Fixtures
# ============================================================================
UserFactory = Callable[..., Awaitable[User]]


@pytest_asyncio.fixture
async def user_factory(session_factory: async_sessionmaker[AsyncSession]) -> UserFactory:
    """
    Factory creating users directly in the database.

    Usage:
        bob = await user_factory("bob", role_codes=["VIEWER"])
    """

    async def create(
        username: str,
        password: str = DEFAULT_PASSWORD,
        email: str | None = None,
        role_codes: Iterable[str] = (),
        status_code: str = UserStatus.ACTIVE,
        is_active: bool = True,
    ) -> User:
        async with session_factory() as session:
            status = (
                await session.execute(
                    select(UserStatus).where(UserStatus.status_code == status_code)
                )
            ).scalar_one()
            user = User(
                username=username,
                email=email or f"{username}@example.com",
                password_hash=hash_password(password),
                first_name=username.capitalize(),
                status_id=status.id,
                is_active=is_active,
            )
            session.add(user)
            await session.flush()

            for code in role_codes:
                role = (
                    await session.execute(select(Role).where(Role.role_code == code))
                ).scalar_one()
                session.add(UserRole(user_id=user.id, role_id=role.id))

            await session.commit()
            await session.refresh(user)
            return user

    return create


@pytest_asyncio.fixture
async def test_user(user_factory: UserFactory) -> User:
    """User alice with password Passw0rd! and no roles."""
    return await user_factory("alice")


@pytest_asyncio.fixture
async def admin_user(user_factory: UserFactory) -> User:
    """User holding the ADMIN system role (every administrative permission)."""
    return await user_factory("admin", role_codes=[ADMIN_ROLE_CODE])


# ============================================================================
# Authentication Helpers
# ============================================================================
LoginAs = Callable[..., Awaitable[dict]]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_as(async_client: AsyncClient) -> LoginAs:
    """
    Log in through the API and return the response data.

    The returned dict carries token and refresh_token plus a ready-made
    "headers" entry for authenticated requests.

    Usage:
        session = await login_as("alice")
        await async_client.get("/api/auth/me", headers=session["headers"])
    """

    async def do_login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = await async_client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        data["headers"] = bearer(data["token"])
        return data

    return do_login


@pytest_asyncio.fixture
async def admin_headers(login_as: LoginAs, admin_user: User) -> dict[str, str]:
    """Authorization headers of a logged-in administrator."""
    return (await login_as(admin_user.username))["headers"]
