"""
Server-side session store.

A bearer token is only authoritative while the session it names is valid:
is_active AND expires_at > now AND logout_at IS NULL. The store keys sessions
by the SHA-256 of the token's session id, so neither the token nor the id is
stored in the clear.

Lookups are never cached beyond a single call; revocation becomes visible to
every validator on its next read.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.core import clock
from src.core.database import retry_transient
from src.core.security import hash_opaque_token
from src.exceptions import SessionExpiredError, SessionRevokedError, UserMismatchError
from src.models.session import UserSession
from src.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Persist and validate login sessions.

    None of the write methods commit; the caller's unit of work does.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize SessionStore.

        Args:
            session: Async database session
        """
        self.session = session
        self.session_repo = SessionRepository(session)

    async def create(
        self,
        user_id: int,
        session_id: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserSession:
        """
        Create a live session for a freshly minted token pair.

        Args:
            user_id: Owner
            session_id: The "sid" claim carried by the tokens
            expires_at: Hard expiry
            ip_address: Client IP address
            user_agent: Client user agent (truncated to the column size)

        Returns:
            The persisted session row
        """
        user_session = await self.session_repo.add(
            UserSession(
                user_id=user_id,
                session_token=hash_opaque_token(session_id),
                ip_address=ip_address,
                user_agent=user_agent[:500] if user_agent else None,
                login_at=clock.utc_now(),
                expires_at=expires_at,
                is_active=True,
            )
        )
        logger.debug(f"Session {user_session.id} created for user {user_id}")
        return user_session

    async def lookup(self, session_id: str) -> UserSession | None:
        """
        Find a session by its id, whatever its state.

        The caller applies UserSession.is_valid_at so that a revoked session
        can be told apart from an expired one.
        """
        token_hash = hash_opaque_token(session_id)
        return await retry_transient(
            lambda: self.session_repo.get_by_token_hash(token_hash),
            session=self.session,
            description="session lookup",
        )

    async def validate(self, session_id: str, user_id: int) -> UserSession:
        """
        Confirm that a parsed token's session is live and belongs to its user.

        Args:
            session_id: The token's "sid" claim
            user_id: The token's "user_id" claim

        Returns:
            The live session

        Raises:
            SessionRevokedError: Unknown session, revoked or logged out
            SessionExpiredError: expires_at has passed
            UserMismatchError: Session belongs to another user
        """
        user_session = await self.lookup(session_id)
        if user_session is None or not user_session.is_active or user_session.logout_at:
            raise SessionRevokedError()
        if user_session.expires_at <= clock.utc_now():
            raise SessionExpiredError()
        if user_session.user_id != user_id:
            logger.warning(
                f"Session {user_session.id} presented with token of user {user_id}"
            )
            raise UserMismatchError()
        return user_session

    async def revoke(self, session_id: str) -> bool:
        """
        Revoke one session: is_active := false, logout_at := now.

        Returns:
            True if a live session was revoked
        """
        revoked = await self.session_repo.revoke_by_token_hash(
            hash_opaque_token(session_id), clock.utc_now()
        )
        if revoked:
            logger.info("Session revoked")
        return revoked

    async def revoke_all_for(self, user_id: int) -> int:
        """
        Revoke every live session of a user.

        Returns:
            Number of sessions revoked
        """
        count = await self.session_repo.revoke_all_for_user(user_id, clock.utc_now())
        logger.info(f"Revoked {count} sessions for user {user_id}")
        return count

    async def extend(self, user_session: UserSession, ttl: timedelta) -> UserSession:
        """Push a live session's expiry to now + ttl."""
        user_session.expires_at = clock.utc_now() + ttl
        return await self.session_repo.update(user_session)

    async def list_active(self, user_id: int) -> list[UserSession]:
        """Sessions of a user that are valid right now."""
        return await self.session_repo.list_active_for_user(user_id, clock.utc_now())
