"""
Role, Permission and the role graph association models.

This module defines:
- Role: Role catalogue (table users_roles)
- Permission: Permission catalogue with lowercase_underscore codes
- RolePermission: role -> permission grant
- UserRole: user -> role assignment

Architecture:
- Users have many roles, roles have many permissions and many menus
- Each edge carries its own is_active flag; only active edges between
  active endpoints contribute to a user's effective permissions
- Edges are unique per (left, right) pair so assignment can be upserted
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core import clock
from src.models.base import Base, UTCDateTime
from src.models.mixins import ActiveFlagMixin, AuditFieldsMixin, TimestampMixin


class Role(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """
    Role definition.

    Attributes:
        role_name: Unique, case-insensitive display name
        role_code: Unique uppercase code (2-20 chars)
        description: Optional description
        is_system_role: System roles cannot be updated or deleted via the API
    """

    __tablename__ = "users_roles"

    role_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_system_role: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"Role(id={self.id}, code={self.role_code})"


# Role names are unique regardless of case
Index("uq_users_roles_role_name_lower", func.lower(Role.role_name), unique=True)


class Permission(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """
    Permission catalogue entry.

    Attributes:
        permission_code: Unique lowercase_underscore code
        permission_name: Display name
        module: Optional grouping (e.g. "users", "menus")
    """

    __tablename__ = "permissions"

    permission_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    permission_name: Mapped[str] = mapped_column(String(100), nullable=False)
    module: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class RolePermission(Base):
    """Grant of a permission to a role."""

    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id"),)

    role_id: Mapped[int] = mapped_column(
        ForeignKey("users_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    permission_id: Mapped[int] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    granted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: clock.utc_now()
    )
    granted_by: Mapped[Optional[int]] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    permission: Mapped[Permission] = relationship(lazy="joined")


class UserRole(Base):
    """Assignment of a role to a user."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id"),)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users_application.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[int] = mapped_column(
        ForeignKey("users_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda: clock.utc_now()
    )
    assigned_by: Mapped[Optional[int]] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    role: Mapped[Role] = relationship(lazy="joined")
