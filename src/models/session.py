"""
UserSession and PasswordResetToken models.

A session is the server-side authority behind a bearer token. Its
session_token column holds the SHA-256 of the session id carried in the
token's "sid" claim; lookups go through the unique index on that column.

A session is valid iff is_active AND expires_at > now AND logout_at IS NULL.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core import clock
from src.models.base import Base, UTCDateTime


class UserSession(Base):
    """
    Server-side login session.

    Attributes:
        user_id: Owner of the session
        session_token: SHA-256 of the session id (unique)
        ip_address / user_agent: Client metadata at login
        login_at: When the session was created
        logout_at: When the session was revoked (NULL while live)
        expires_at: Hard expiry, extended on refresh
        is_active: False once revoked
    """

    __tablename__ = "user_sessions"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users_application.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    login_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: clock.utc_now()
    )
    logout_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def is_valid_at(self, now: datetime) -> bool:
        """Apply the session validity rule at the given instant."""
        return self.is_active and self.logout_at is None and self.expires_at > now


class PasswordResetToken(Base):
    """
    Single-use password reset token.

    Only the SHA-256 of the token is stored. One live token per user:
    issuing a new one replaces the previous row.
    """

    __tablename__ = "password_reset_tokens"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users_application.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: clock.utc_now()
    )
