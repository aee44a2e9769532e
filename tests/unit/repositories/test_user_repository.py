"""
Unit tests for the lockout counter kept on the user row.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.user_repository import UserRepository

NOW = datetime(2026, 1, 15, 9, 0, tzinfo=UTC)
LOCK = timedelta(minutes=30)


class TestRegisterFailedLogin:
    @pytest.mark.asyncio
    async def test_counts_up_to_the_threshold(self, db_session: AsyncSession, user_factory):
        alice = await user_factory("alice")
        repo = UserRepository(db_session)

        results = [await repo.register_failed_login(alice.id, 3, LOCK, NOW) for _ in range(3)]

        assert results == [(1, None), (2, None), (3, NOW + LOCK)]

    @pytest.mark.asyncio
    async def test_locks_exactly_once(self, db_session: AsyncSession, user_factory):
        alice = await user_factory("alice")
        repo = UserRepository(db_session)

        results = [
            await repo.register_failed_login(alice.id, 5, LOCK, NOW + timedelta(seconds=i))
            for i in range(8)
        ]

        locks = [r for r in results if r is not None and r[1] is not None]
        assert len(locks) == 1
        assert locks[0] == (5, NOW + timedelta(seconds=4) + LOCK)
        # Attempts inside the lockout window leave the row untouched
        assert results[5:] == [None, None, None]

    @pytest.mark.asyncio
    async def test_expired_lock_restarts_count(self, db_session: AsyncSession, user_factory):
        alice = await user_factory("alice")
        repo = UserRepository(db_session)
        for _ in range(2):
            await repo.register_failed_login(alice.id, 2, LOCK, NOW)

        later = NOW + LOCK + timedelta(minutes=1)
        result = await repo.register_failed_login(alice.id, 2, LOCK, later)

        assert result == (1, None)
