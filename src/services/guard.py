"""
Bearer token guard.

Turns a presented bearer string into a Principal or a typed rejection:

    missing          -> TokenMissingError
    not a JWT        -> TokenMalformedError
    bad signature    -> TokenSignatureError
    past exp + skew  -> TokenExpiredError
    session gone     -> SessionRevokedError
    session expired  -> SessionExpiredError
    other user's sid -> UserMismatchError

The session row is re-read on every call. The Principal is the only trusted
source of identity downstream; ids in request bodies are checked against it
with ensure_same_subject().
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.security import TOKEN_TYPE_ACCESS, decode_token
from src.exceptions import PermissionDeniedError, TokenMissingError
from src.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    Authenticated subject of a request.

    Attributes:
        user_id: User id
        username: Username
        email: Email
        session_id: user_sessions row id
        sid: Session id carried by the token (never logged)
    """

    user_id: int
    username: str
    email: str
    session_id: int
    sid: str

    def ensure_same_subject(self, user_id: int | None) -> None:
        """
        Reject a request body naming a different acting user.

        Raises:
            PermissionDeniedError: If user_id is given and is not this principal
        """
        if user_id is not None and user_id != self.user_id:
            logger.warning(
                f"User {self.user_id} attempted to act as user {user_id}"
            )
            raise PermissionDeniedError("Cannot act on behalf of another user")


class Guard:
    """
    Validates access tokens against the session store.

    Args:
        session: Async database session
    """

    def __init__(self, session: AsyncSession):
        self.session_store = SessionStore(session)

    async def authenticate(self, bearer: str | None) -> Principal:
        """
        Resolve a bearer token to a Principal.

        Args:
            bearer: Raw token (without the "Bearer " prefix), or None

        Returns:
            Principal bound to a live session

        Raises:
            AuthenticationError: One of the typed rejections listed above
        """
        if not bearer or not bearer.strip():
            raise TokenMissingError()

        claims = decode_token(bearer.strip(), expected_type=TOKEN_TYPE_ACCESS)
        user_session = await self.session_store.validate(claims.session_id, claims.user_id)

        return Principal(
            user_id=claims.user_id,
            username=claims.username,
            email=claims.email,
            session_id=user_session.id,
            sid=claims.session_id,
        )
