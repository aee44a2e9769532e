"""
ActivityLog model for the user activity trail.

Rows are written only by the activity recorder's background worker and are
never updated or deleted by the application.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core import clock
from src.models.base import Base, UTCDateTime


class ActivityLog(Base):
    """
    One recorded user activity.

    Attributes:
        user_id: Acting user (NULL for anonymous or unknown users)
        session_id: Session the request ran under, if any
        action: ActivityAction value
        target_type: Kind of entity affected (e.g. "user", "menu")
        target_id: Id of the entity affected
        menu_name: Menu the action was performed from, if known
        description: Human-readable description
        ip_address / user_agent: Client metadata
        request_payload: Opaque request context (never contains passwords)
        response_status: HTTP status returned to the caller
        created_at: When the event happened (set by the caller, not the worker)

    Example:
        log = ActivityLog(
            user_id=principal.user_id,
            action=ActivityAction.LOGOUT.value,
            target_type="session",
            description="User logged out",
            response_status=200,
        )
    """

    __tablename__ = "users_activity_logs"
    __table_args__ = (
        Index("ix_users_activity_logs_user_created", "user_id", "created_at"),
    )

    # No FK: failed logins for unknown users and sessions are recorded too
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    session_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    target_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    menu_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    request_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: clock.utc_now(),
        index=True,
    )
