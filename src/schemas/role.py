"""
Role and permission Pydantic schemas for API request/response handling.

This module provides:
- Role create/update requests and responses
- Permission grant and catalogue schemas
- Role menu access (ACL) schemas
"""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

ROLE_CODE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]{1,19}$")
PERMISSION_CODE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


def _normalize_role_code(value: str) -> str:
    value = value.strip().upper()
    if not ROLE_CODE_PATTERN.match(value):
        raise ValueError(
            "Role code must be 2-20 characters of uppercase letters, digits and underscores"
        )
    return value


class RoleCreate(BaseModel):
    """
    Schema for creating a role.

    Attributes:
        role_name: Display name, unique ignoring case
        role_code: Code, upper-cased and unique
        description: Optional description
    """

    role_name: str = Field(min_length=2, max_length=100)
    role_code: str
    description: str | None = Field(default=None, max_length=255)

    @field_validator("role_code")
    @classmethod
    def validate_role_code(cls, value: str) -> str:
        """Upper-case and validate the role code."""
        return _normalize_role_code(value)


class RoleUpdate(BaseModel):
    """Schema for updating a (non-system) role. All fields optional."""

    role_name: str | None = Field(default=None, min_length=2, max_length=100)
    role_code: str | None = None
    description: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None

    @field_validator("role_code")
    @classmethod
    def validate_role_code(cls, value: str | None) -> str | None:
        """Upper-case and validate the role code if provided."""
        return _normalize_role_code(value) if value is not None else None


class RoleResponse(BaseModel):
    """Role catalogue entry."""

    id: int
    role_name: str
    role_code: str
    description: str | None = None
    is_system_role: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PermissionCreate(BaseModel):
    """Schema for adding a permission to the catalogue."""

    permission_code: str = Field(min_length=2, max_length=100)
    permission_name: str = Field(min_length=2, max_length=100)
    module: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("permission_code")
    @classmethod
    def validate_permission_code(cls, value: str) -> str:
        """Permission codes are lowercase_underscore."""
        if not PERMISSION_CODE_PATTERN.match(value):
            raise ValueError("Permission code must be lowercase letters, digits and underscores")
        return value


class PermissionResponse(BaseModel):
    """Permission catalogue entry."""

    id: int
    permission_code: str
    permission_name: str
    module: str | None = None
    description: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class PermissionIdsRequest(BaseModel):
    """Non-empty list of permission ids to grant or revoke."""

    permission_ids: list[int] = Field(min_length=1)


class MenuAccessItem(BaseModel):
    """
    Access flags a role holds on one menu.

    When can_view is False the remaining flags are stored as False.
    """

    menu_id: int
    can_view: bool = True
    can_create: bool = False
    can_modify: bool = False
    can_delete: bool = False
    can_upload: bool = False
    can_download: bool = False


class MenuAccessRequest(BaseModel):
    """Batch of per-menu access flags for a role."""

    menus: list[MenuAccessItem] = Field(min_length=1)


class RoleMenuResponse(MenuAccessItem):
    """Access row with the menu's identity."""

    menu_name: str
    menu_code: str


class RoleDetailResponse(RoleResponse):
    """Role with its permissions and menu ACL."""

    permissions: list[PermissionResponse] = Field(default_factory=list)
    menus: list[RoleMenuResponse] = Field(default_factory=list)
