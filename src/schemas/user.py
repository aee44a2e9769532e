"""
User Pydantic schemas for API request/response handling.

This module provides:
- User creation and update schemas (admin)
- Profile update schema (self-service)
- User response schemas
- Role assignment and session schemas

Password strength is not validated here: the policy's minimum length is a
runtime setting, so the password service checks it.
"""

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,50}$")


def _check_username(value: str) -> str:
    if not USERNAME_PATTERN.match(value):
        raise ValueError(
            "Username must be 3-50 characters of letters, numbers and underscores"
        )
    return value


class UserCreate(BaseModel):
    """
    Schema for creating a user (admin).

    Attributes:
        username: Unique username, case-sensitive (letters, digits, underscore)
        email: Unique email address
        password: Initial password
        first_name / last_name: Names
        status_code: Account status code (default "active")
        department_id / employee_id / phone / avatar_url: Optional profile data
        role_ids: Roles to assign on creation
    """

    username: str = Field(description="Username (3-50 chars, letters/digits/underscore)")
    email: EmailStr = Field(description="User's email address")
    password: str = Field(min_length=1, max_length=256)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    status_code: str = Field(default="active", max_length=20)
    department_id: int | None = None
    employee_id: str | None = Field(default=None, max_length=50)
    phone: str | None = Field(default=None, max_length=30)
    avatar_url: str | None = Field(default=None, max_length=500)
    role_ids: list[int] = Field(default_factory=list)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        """Validate username format."""
        return _check_username(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        """Store emails lower-cased."""
        return value.lower()


class UserUpdate(BaseModel):
    """
    Schema for updating a user (admin).

    All fields are optional to support partial updates. When role_ids is
    present the user's role set is replaced in one transaction.
    """

    username: str | None = None
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    status_code: str | None = Field(default=None, max_length=20)
    department_id: int | None = None
    employee_id: str | None = Field(default=None, max_length=50)
    phone: str | None = Field(default=None, max_length=30)
    avatar_url: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None
    role_ids: list[int] | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str | None) -> str | None:
        """Validate username format if provided."""
        if value is not None:
            return _check_username(value)
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        """Store emails lower-cased."""
        return value.lower() if value is not None else None


class ProfileUpdate(BaseModel):
    """Schema for the caller editing their own profile."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    avatar_url: str | None = Field(default=None, max_length=500)


class AdminPasswordReset(BaseModel):
    """Schema for an administrator setting a user's password."""

    new_password: str = Field(min_length=1, max_length=256)


class RoleIdsRequest(BaseModel):
    """Schema carrying a non-empty list of role ids."""

    role_ids: list[int] = Field(min_length=1)


class RoleSummary(BaseModel):
    """Role as embedded in user responses."""

    id: int
    role_name: str
    role_code: str

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """
    Schema for user response.

    Never carries the password hash.
    """

    id: int = Field(description="User's unique identifier")
    username: str
    email: str
    first_name: str
    last_name: str | None = None
    full_name: str
    status: str | None = Field(default=None, description="Account status code")
    department_id: int | None = None
    employee_id: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    password_changed_at: datetime | None = None
    failed_login_attempts: int = 0
    locked_until: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def status_code_of(cls, value: object) -> object:
        """Flatten the status relationship to its code."""
        return getattr(value, "status_code", value)


class UserDetailResponse(UserResponse):
    """User with their active roles."""

    roles: list[RoleSummary] = Field(default_factory=list)


class SessionResponse(BaseModel):
    """A live login session (the token hash is never exposed)."""

    id: int
    user_id: int
    ip_address: str | None = None
    user_agent: str | None = None
    login_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}
