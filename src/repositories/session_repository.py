"""
Session and password reset token repositories.

Sessions are looked up through the unique index on session_token (the
SHA-256 of the token's session id). Revocation is a single UPDATE so it is
visible to every validator on its next read.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.session import PasswordResetToken, UserSession
from src.repositories.base import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    """Repository for UserSession rows."""

    def __init__(self, session: AsyncSession):
        """
        Initialize SessionRepository.

        Args:
            session: Async database session
        """
        super().__init__(UserSession, session)

    async def get_by_token_hash(self, token_hash: str) -> UserSession | None:
        """
        Get a session by token hash, regardless of state.

        Callers apply the validity rule themselves so they can tell revoked
        sessions from expired ones.
        """
        result = await self.session.execute(
            select(UserSession).where(UserSession.session_token == token_hash)
        )
        return result.scalar_one_or_none()

    async def revoke_by_token_hash(self, token_hash: str, now: datetime) -> bool:
        """
        Revoke one live session.

        Returns:
            True if a live session was revoked
        """
        result = await self.session.execute(
            update(UserSession)
            .where(
                UserSession.session_token == token_hash,
                UserSession.is_active.is_(True),
            )
            .values(is_active=False, logout_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def revoke_all_for_user(self, user_id: int, now: datetime) -> int:
        """
        Revoke every live session of a user.

        Returns:
            Number of sessions revoked
        """
        result = await self.session.execute(
            update(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
            )
            .values(is_active=False, logout_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_active_for_user(self, user_id: int, now: datetime) -> list[UserSession]:
        """Sessions of a user that currently satisfy the validity rule, newest first."""
        result = await self.session.execute(
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
                UserSession.logout_at.is_(None),
                UserSession.expires_at > now,
            )
            .order_by(UserSession.login_at.desc(), UserSession.id.desc())
        )
        return list(result.scalars().all())


class PasswordResetTokenRepository(BaseRepository[PasswordResetToken]):
    """Repository for single-use password reset tokens."""

    def __init__(self, session: AsyncSession):
        super().__init__(PasswordResetToken, session)

    async def replace_for_user(
        self, user_id: int, token_hash: str, expires_at: datetime
    ) -> PasswordResetToken:
        """Issue a token for a user, replacing any previous one."""
        result = await self.session.execute(
            select(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
        token = result.scalar_one_or_none()
        if token is None:
            token = PasswordResetToken(user_id=user_id)
            self.session.add(token)

        token.token_hash = token_hash
        token.expires_at = expires_at
        token.used = False

        await self.session.flush()
        return token

    async def consume(self, token_hash: str, now: datetime) -> int | None:
        """
        Mark a live token as used.

        A conditional UPDATE guards against two requests racing on the same
        token; only one of them gets the user id back.

        Returns:
            The token's user id, or None if unknown, expired or already used
        """
        result = await self.session.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.token_hash == token_hash,
                PasswordResetToken.used.is_(False),
                PasswordResetToken.expires_at > now,
            )
            .values(used=True)
            .returning(PasswordResetToken.user_id)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        return row[0] if row else None
