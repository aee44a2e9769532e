"""
User, UserStatus, Department and PasswordHistory models.

This module defines:
- UserStatus: Lookup of account status codes (active, inactive, suspended)
- Department: Organisational unit a user may belong to
- User: Principal with credentials, lockout state and profile
- PasswordHistory: Previous password hashes, used to block reuse

Lockout state (failed_login_attempts, locked_until) lives on the user row so
it can be updated with a single conditional UPDATE.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core import clock
from src.models.base import Base, UTCDateTime
from src.models.mixins import ActiveFlagMixin, AuditFieldsMixin, TimestampMixin

# =============================================================================
# Lookup Tables
# =============================================================================


class UserStatus(Base, TimestampMixin, ActiveFlagMixin):
    """
    Account status lookup.

    Attributes:
        status_code: Machine code ("active", "inactive", "suspended")
        status_name: Display name
    """

    __tablename__ = "users_application_status"

    status_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    status_name: Mapped[str] = mapped_column(String(50), nullable=False)

    ACTIVE = "active"


class Department(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """Organisational unit. Hierarchy via parent_id."""

    __tablename__ = "departments"

    department_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("departments.id"), nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


# =============================================================================
# User Model
# =============================================================================


class User(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """
    User model for authentication and profile management.

    Attributes:
        id: Integer primary key
        username: Unique, case-sensitive username (letters, digits, underscore)
        email: Unique email address, stored lower-cased
        password_hash: Argon2id hashed password (never leaves the service layer)
        first_name / last_name: Profile names
        status_id: FK to users_application_status
        department_id: Optional FK to departments
        employee_id / phone / avatar_url: Optional profile fields
        last_login_at: Timestamp of last successful login
        password_changed_at: Timestamp of the last password rotation
        failed_login_attempts: Consecutive failed logins since last success
        locked_until: Login is refused while this is in the future
        is_active: Soft-delete / deactivation flag

    Security:
        - failed_login_attempts resets to 0 on every successful login
        - locked_until in the future forbids login even with correct credentials
    """

    __tablename__ = "users_application"

    # Authentication fields
    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Profile fields
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    employee_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    status_id: Mapped[int] = mapped_column(
        ForeignKey("users_application_status.id"),
        nullable=False,
    )
    department_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("departments.id"),
        nullable=True,
    )

    # Activity tracking
    last_login_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Lockout state
    failed_login_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    locked_until: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    status: Mapped[UserStatus] = relationship(lazy="joined")
    department: Mapped[Optional[Department]] = relationship(lazy="joined")

    @property
    def full_name(self) -> str:
        """First and last name joined."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def is_locked(self) -> bool:
        """Whether a lockout window is currently in force."""
        return self.locked_until is not None and self.locked_until > clock.utc_now()

    @property
    def can_login(self) -> bool:
        """Active flag set and status code is active."""
        return bool(self.is_active) and (
            self.status is None or self.status.status_code == UserStatus.ACTIVE
        )

    def __repr__(self) -> str:
        """String representation of User."""
        return f"User(id={self.id}, username={self.username}, email={self.email})"


class PasswordHistory(Base):
    """
    Previous password hash of a user.

    A row is written inside the same transaction that swaps the password
    hash, holding the hash being replaced.
    """

    __tablename__ = "user_password_history"
    __table_args__ = (
        Index("ix_user_password_history_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users_application.id", ondelete="CASCADE"),
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: clock.utc_now(),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
