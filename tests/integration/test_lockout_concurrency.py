"""
Concurrent failed logins against a file-backed SQLite database.

Every attempt runs in its own session on its own connection, so the
failed-login UPDATEs genuinely race. The account must be locked for exactly
one interval no matter how many attempts arrive together.
"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.database import create_database_engine, create_sessionmaker
from src.core.security import hash_password
from src.exceptions import AccountLockedError, InvalidCredentialsError
from src.models.base import Base
from src.models.bootstrap import seed_reference_data
from src.models.user import User, UserStatus
from src.services.activity_recorder import ActivityRecorder
from src.services.auth_service import AuthService

MAX_ATTEMPTS = 5
EXTRA_ATTEMPTS = 4


class ListSink:
    def __init__(self) -> None:
        self.rows: list[dict] = []

    async def write(self, rows: list[dict]) -> None:
        self.rows.extend(rows)


@pytest_asyncio.fixture
async def file_sessions(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sessionmaker over a database file; each session opens its own connection."""
    engine = create_database_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'lockout.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_sessionmaker(engine)
    async with factory() as session:
        await seed_reference_data(session)
        status = (
            await session.execute(
                select(UserStatus).where(UserStatus.status_code == UserStatus.ACTIVE)
            )
        ).scalar_one()
        session.add(
            User(
                username="alice",
                email="alice@example.com",
                password_hash=hash_password("Passw0rd!"),
                first_name="Alice",
                status_id=status.id,
            )
        )
        await session.commit()

    yield factory

    await engine.dispose()


async def attempt_login(
    sessions: async_sessionmaker[AsyncSession],
    recorder: ActivityRecorder,
    password: str,
):  # type: ignore[no-untyped-def]
    async with sessions() as session:
        return await AuthService(session, recorder=recorder).login("alice", password)


class TestConcurrentFailedLogins:
    @pytest.mark.asyncio
    async def test_parallel_failures_lock_exactly_once(self, file_sessions, frozen_clock):
        sink = ListSink()
        recorder = ActivityRecorder(sink=sink, fallback=ListSink())
        start = frozen_clock.now

        outcomes = await asyncio.gather(
            *(
                attempt_login(file_sessions, recorder, "WrongPass1!")
                for _ in range(MAX_ATTEMPTS + EXTRA_ATTEMPTS)
            ),
            return_exceptions=True,
        )

        assert all(
            isinstance(outcome, InvalidCredentialsError | AccountLockedError)
            for outcome in outcomes
        ), outcomes

        await recorder.flush()
        locks = [row for row in sink.rows if row["action"] == "ACCOUNT_LOCKED"]
        assert len(locks) == 1

        async with file_sessions() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.failed_login_attempts == MAX_ATTEMPTS
        assert user.locked_until == start + timedelta(minutes=30)

        # Still locked just before the window ends, open right after it
        frozen_clock.advance(minutes=29)
        with pytest.raises(AccountLockedError):
            await attempt_login(file_sessions, recorder, "Passw0rd!")

        frozen_clock.advance(minutes=2)
        response = await attempt_login(file_sessions, recorder, "Passw0rd!")
        assert response.user.username == "alice"
