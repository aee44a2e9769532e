"""
Password rotation with history.

This module provides the write side of the password engine:
1. Policy check (length from settings, character classes)
2. Reuse check against the current hash and the last N history entries
3. History append of the hash being replaced
4. Hash swap and password_changed_at stamp

Steps 3 and 4 are flushed and committed together; if either fails the
transaction is rolled back and StorageError is raised, so a user never ends
up with a history row but the old password, or the reverse.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import clock
from src.core.config import settings
from src.core.security import hash_password, validate_password_strength, verify_password
from src.exceptions import PasswordReuseError, StorageError
from src.models.user import User
from src.repositories.user_repository import UserRepository
from src.services.system_service import SystemSettingService

logger = logging.getLogger(__name__)


class PasswordService:
    """
    Service for password policy and rotation.

    Args:
        session: Async database session
        history_size: Number of previous passwords that may not be reused
            (default: settings.password_history_size)
    """

    def __init__(self, session: AsyncSession, history_size: int | None = None):
        self.session = session
        self.user_repo = UserRepository(session)
        self.settings_service = SystemSettingService(session)
        self.history_size = (
            history_size if history_size is not None else settings.password_history_size
        )

    async def validate_policy(self, password: str) -> None:
        """
        Check a candidate password against the current policy.

        Raises:
            WeakPasswordError: If the password violates the policy
        """
        min_length = await self.settings_service.password_min_length()
        validate_password_strength(password, min_length=min_length)

    async def is_reused(self, user: User, password: str) -> bool:
        """
        Whether a plaintext matches the current hash or a recent history hash.

        Each comparison is a full Argon2id verification since hashes are salted.
        """
        if verify_password(password, user.password_hash):
            return True

        recent = await self.user_repo.get_recent_password_hashes(user.id, self.history_size)
        return any(verify_password(password, old_hash) for old_hash in recent)

    async def rotate(self, user: User, new_password: str, updated_by: int | None = None) -> User:
        """
        Replace a user's password, preserving history.

        Args:
            user: User whose password changes
            new_password: New plaintext password
            updated_by: Acting user id (defaults to the user themself)

        Returns:
            The updated user

        Raises:
            WeakPasswordError: If the password violates the policy
            PasswordReuseError: If it matches the current or a recent password
            StorageError: If the history append or hash swap failed

        Example:
            await password_service.rotate(user, "NewPass1!")
        """
        await self.validate_policy(new_password)

        if await self.is_reused(user, new_password):
            logger.warning(f"Password rotation rejected: reuse for user {user.id}")
            raise PasswordReuseError(details={"history_size": self.history_size})

        new_hash = hash_password(new_password)
        now = clock.utc_now()

        try:
            await self.user_repo.add_password_history(user.id, user.password_hash, now)
            user.password_hash = new_hash
            user.password_changed_at = now
            user.updated_by = updated_by if updated_by is not None else user.id
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Password rotation failed for user {user.id}: {e}")
            raise StorageError("Password could not be changed") from e

        logger.info(f"Password rotated for user {user.id}")
        return user
