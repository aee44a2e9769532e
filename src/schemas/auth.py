"""
Authentication Pydantic schemas for API request/response handling.

This module provides:
- Login request and response schemas
- Token refresh schemas
- Password change and reset schemas
- The current-user (me) response
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from src.schemas.menu import MenuNodeResponse
from src.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """
    Schema for user login request.

    Attributes:
        username: User's username (case-sensitive)
        password: User's password
    """

    username: str = Field(min_length=1, max_length=50, description="User's username")
    password: str = Field(min_length=1, max_length=256, description="User's password")


class LoginUser(BaseModel):
    """Principal summary returned with a successful login."""

    id: int
    username: str
    email: str
    full_name: str

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    """
    Schema for authentication token response.

    Attributes:
        token: Access token to send as "Authorization: Bearer <token>"
        refresh_token: Refresh token (lifetime 7x the access token)
        token_type: Type of token (always "bearer")
        expires_in: Access token lifetime in seconds
        expires_at: Session expiry
        user: The authenticated principal
    """

    token: str = Field(description="JWT access token")
    refresh_token: str = Field(description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(description="Access token lifetime in seconds")
    expires_at: datetime = Field(description="Session expiry")
    user: LoginUser


class RefreshTokenRequest(BaseModel):
    """
    Schema for token refresh request.

    Attributes:
        refresh_token: JWT refresh token to use for obtaining new tokens
    """

    refresh_token: str = Field(min_length=1, description="JWT refresh token")


class RefreshTokenResponse(BaseModel):
    """
    Schema for token refresh response.

    Attributes:
        token: New JWT access token
        refresh_token: New JWT refresh token for the same session
        token_type: Type of token (always "bearer")
        expires_in: Access token lifetime in seconds
        expires_at: Extended session expiry
    """

    token: str = Field(description="New JWT access token")
    refresh_token: str = Field(description="New JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(description="Access token lifetime in seconds")
    expires_at: datetime = Field(description="Session expiry")


class _NewPasswordMixin(BaseModel):
    new_password: str = Field(min_length=1, max_length=256, description="New password")
    confirm_password: str = Field(min_length=1, max_length=256, description="Repeat new password")

    @model_validator(mode="after")
    def passwords_match(self):  # type: ignore[no-untyped-def]
        """Reject mismatched confirmation before any policy check runs."""
        if self.new_password != self.confirm_password:
            raise ValueError("New password and confirmation do not match")
        return self


class ChangePasswordRequest(_NewPasswordMixin):
    """
    Schema for changing the caller's password.

    Attributes:
        current_password: Current password (for verification)
        new_password: New password (policy-checked by the service)
        confirm_password: Must equal new_password
        user_id: Optional; if present it must be the caller's own id
    """

    current_password: str = Field(min_length=1, max_length=256)
    user_id: int | None = Field(default=None, description="Must match the caller if given")


class ForgotPasswordRequest(BaseModel):
    """Schema for requesting a password reset token."""

    email: EmailStr


class ResetPasswordRequest(_NewPasswordMixin):
    """Schema for consuming a password reset token."""

    token: str = Field(min_length=1, max_length=128)


class MeResponse(BaseModel):
    """
    Current principal with effective authorisation.

    Attributes:
        user: Profile
        roles: Role codes of active assignments
        permissions: Effective permission codes, sorted
        menus: Accessible menu forest with merged access flags
    """

    user: UserResponse
    roles: list[str]
    permissions: list[str]
    menus: list[MenuNodeResponse]
