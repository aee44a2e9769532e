"""
Reusable mixins for database models.

This module provides mixins for common model patterns:
- TimestampMixin: created_at and updated_at timestamps
- AuditFieldsMixin: created_by and updated_by tracking
- ActiveFlagMixin: soft delete through the is_active flag

Rows are never physically removed by the application: deletion flips
is_active to False and stamps the audit fields.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from src.core import clock
from src.models.base import UTCDateTime


class TimestampMixin:
    """
    Mixin to add timestamp columns to models.

    Adds:
    - created_at: Timestamp when record was created (auto-set)
    - updated_at: Timestamp when record was last updated (auto-updated)

    Both timestamps use UTC timezone and come from clock.utc_now().

    Usage:
        class User(Base, TimestampMixin):
            __tablename__ = "users_application"
            username: Mapped[str]
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: clock.utc_now(),
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: clock.utc_now(),
        onupdate=lambda: clock.utc_now(),
    )


class ActiveFlagMixin:
    """
    Mixin to add the is_active soft-delete flag.

    Querying with soft deletes:
        # Get only active records
        active_roles = select(Role).where(Role.is_active.is_(True))

    Unique codes that may be reused after deletion are enforced with
    partial unique indexes (WHERE is_active) on the model itself.
    """

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )


class AuditFieldsMixin:
    """
    Mixin to track who created and updated records.

    Adds:
    - created_by: id of user who created the record
    - updated_by: id of user who last updated the record

    Both fields are nullable to support:
    - System-generated records (created_by = None)
    - Seed data

    Setting audit fields:
        # In service layer, pass current user
        role = Role(
            role_name="Viewer",
            created_by=current_user.user_id,
            updated_by=current_user.user_id,
        )
    """

    created_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    updated_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
