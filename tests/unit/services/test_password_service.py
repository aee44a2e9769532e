"""
Unit tests for password rotation with history.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.security import verify_password
from src.exceptions import PasswordReuseError, WeakPasswordError
from src.repositories.user_repository import UserRepository
from src.services.password_service import PasswordService


async def load(db_session: AsyncSession, user_id: int):  # type: ignore[no-untyped-def]
    return await UserRepository(db_session).get_by_id(user_id)


class TestRotate:
    @pytest.mark.asyncio
    async def test_rotation_swaps_hash_and_keeps_history(self, db_session, user_factory):
        alice = await user_factory("alice")
        user = await load(db_session, alice.id)
        old_hash = user.password_hash
        service = PasswordService(db_session)

        await service.rotate(user, "NewPassw0rd!")

        assert verify_password("NewPassw0rd!", user.password_hash)
        assert user.password_changed_at is not None
        history = await UserRepository(db_session).get_recent_password_hashes(user.id, 5)
        assert history == [old_hash]

    @pytest.mark.asyncio
    async def test_current_password_cannot_be_reused(self, db_session, user_factory):
        alice = await user_factory("alice")
        user = await load(db_session, alice.id)

        with pytest.raises(PasswordReuseError) as exc_info:
            await PasswordService(db_session).rotate(user, "Passw0rd!")

        assert exc_info.value.error_code == "PASSWORD_REUSE"

    @pytest.mark.asyncio
    async def test_recent_password_cannot_be_reused(self, db_session, user_factory):
        alice = await user_factory("alice")
        user = await load(db_session, alice.id)
        service = PasswordService(db_session, history_size=2)

        await service.rotate(user, "Second2nd!")
        await service.rotate(user, "Third3rd!")

        with pytest.raises(PasswordReuseError):
            await service.rotate(user, "Passw0rd!")

    @pytest.mark.asyncio
    async def test_password_older_than_history_may_return(self, db_session, user_factory):
        alice = await user_factory("alice")
        user = await load(db_session, alice.id)
        service = PasswordService(db_session, history_size=1)

        await service.rotate(user, "Second2nd!")
        await service.rotate(user, "Third3rd!")
        await service.rotate(user, "Passw0rd!")

        assert verify_password("Passw0rd!", user.password_hash)

    @pytest.mark.asyncio
    async def test_weak_password_leaves_user_untouched(self, db_session, user_factory):
        alice = await user_factory("alice")
        user = await load(db_session, alice.id)
        old_hash = user.password_hash

        with pytest.raises(WeakPasswordError):
            await PasswordService(db_session).rotate(user, "weak")

        assert user.password_hash == old_hash
        assert await UserRepository(db_session).get_recent_password_hashes(user.id, 5) == []
