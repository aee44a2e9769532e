"""
Menu and RoleMenu models.

This module defines:
- Menu: Node of the navigation tree (self-referencing parent_id)
- RoleMenu: Per-(role, menu) access flags

Structural rules (no self-parent, no cycle, no delete with active children)
are enforced by MenuService on write; the table only guarantees that
parent_id references an existing menu and that codes are unique among
active menus.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base
from src.models.mixins import ActiveFlagMixin, AuditFieldsMixin, TimestampMixin


class Menu(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """
    Navigation menu node.

    Attributes:
        menu_name: Display name
        menu_code: Code, unique among active menus
        parent_id: Optional parent menu
        icon: Optional icon identifier
        route: Optional front-end route
        menu_order: Sort key within a sibling group
        is_visible: Hidden menus never appear in a user's tree
    """

    __tablename__ = "menus"
    __table_args__ = (
        Index(
            "uq_menus_menu_code_active",
            "menu_code",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    menu_name: Mapped[str] = mapped_column(String(100), nullable=False)
    menu_code: Mapped[str] = mapped_column(String(50), nullable=False)
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("menus.id"),
        nullable=True,
        index=True,
    )
    icon: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    route: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    menu_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"Menu(id={self.id}, code={self.menu_code}, parent_id={self.parent_id})"


class RoleMenu(Base, TimestampMixin, AuditFieldsMixin):
    """
    Access flags a role holds on a menu.

    When can_view is False the other flags carry no meaning; such rows are
    ignored by the RBAC resolver.
    """

    __tablename__ = "role_menus"
    __table_args__ = (UniqueConstraint("role_id", "menu_id"),)

    role_id: Mapped[int] = mapped_column(
        ForeignKey("users_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_id: Mapped[int] = mapped_column(
        ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    can_view: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_modify: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_upload: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_download: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
