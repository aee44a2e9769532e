"""
Authentication API routes.

This module provides REST endpoints for:
- Login and logout
- Token refresh (same session, extended expiry)
- Password change, forgot and reset
- The current principal (me) and profile edits

These routes stay reachable in maintenance mode.
"""

import logging

from fastapi import APIRouter, Request, status

from src.api.dependencies import AuthServiceDep, CurrentPrincipal, client_info
from src.core.config import settings
from src.core.rate_limit import limiter
from src.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    ResetPasswordRequest,
)
from src.schemas.common import ApiResponse
from src.schemas.user import ProfileUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/login",
    response_model=ApiResponse[LoginResponse],
    status_code=status.HTTP_200_OK,
    summary="Login with username and password",
    description="""
    Authenticate with username and password and open a session.

    **Lockout:** after `max_login_attempts` consecutive failures the account
    is locked for `account_lock_duration_minutes` (both system settings).
    Unknown usernames and wrong passwords get the same response.

    **Rate Limit:** Configurable via RATE_LIMIT_LOGIN (default: 10/minute)
    """,
)
@limiter.limit(settings.rate_limit_login)
async def login(
    request: Request,
    credentials: LoginRequest,
    auth_service: AuthServiceDep,
) -> ApiResponse[LoginResponse]:
    """
    Login user and return access + refresh tokens.

    Raises:
        401: Invalid credentials, account locked or inactive
        429: Too many login attempts
    """
    ip_address, user_agent = client_info(request)
    result = await auth_service.login(
        username=credentials.username,
        password=credentials.password,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return ApiResponse(message="Login successful", data=result)


@router.post(
    "/refresh",
    response_model=ApiResponse[RefreshTokenResponse],
    summary="Refresh the token pair",
    description="""
    Exchange a refresh token for a new access and refresh token on the same
    session. The session's expiry is pushed out by `session_timeout_hours`.

    **Rate Limit:** Configurable via RATE_LIMIT_TOKEN_REFRESH (default: 30/hour)
    """,
)
@limiter.limit(settings.rate_limit_token_refresh)
async def refresh_token(
    request: Request,
    payload: RefreshTokenRequest,
    auth_service: AuthServiceDep,
) -> ApiResponse[RefreshTokenResponse]:
    """
    Refresh access token.

    Raises:
        401: Token invalid or expired, or session revoked/expired
    """
    ip_address, user_agent = client_info(request)
    result = await auth_service.refresh(
        refresh_token=payload.refresh_token,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return ApiResponse(message="Token refreshed", data=result)


@router.post(
    "/logout",
    response_model=ApiResponse[None],
    summary="Logout",
    description="Revoke the current session. Both tokens stop working immediately.",
)
async def logout(
    request: Request,
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
) -> ApiResponse[None]:
    ip_address, user_agent = client_info(request)
    await auth_service.logout(principal, ip_address=ip_address, user_agent=user_agent)
    return ApiResponse(message="Logged out successfully")


@router.post(
    "/change-password",
    response_model=ApiResponse[dict],
    summary="Change password",
    description="""
    Change the caller's password. The new password must satisfy the policy
    and must not match the current or recent passwords. Every session of the
    user, the current one included, is revoked.

    **Rate Limit:** Configurable via RATE_LIMIT_PASSWORD_CHANGE (default: 5/hour)
    """,
)
@limiter.limit(settings.rate_limit_password_change)
async def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
) -> ApiResponse[dict]:
    """
    Change password.

    Raises:
        400: Weak or reused password, or confirmation mismatch
        401: Current password incorrect
        403: user_id in the body names another user
    """
    ip_address, user_agent = client_info(request)
    revoked = await auth_service.change_password(
        principal,
        current_password=payload.current_password,
        new_password=payload.new_password,
        user_id=payload.user_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return ApiResponse(
        message="Password changed successfully. Please login again.",
        data={"sessions_revoked": revoked},
    )


@router.post(
    "/forgot-password",
    response_model=ApiResponse[None],
    summary="Request a password reset",
    description="Always reports success, whether or not the email is registered.",
)
@limiter.limit(settings.rate_limit_password_change)
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    auth_service: AuthServiceDep,
) -> ApiResponse[None]:
    await auth_service.forgot_password(payload.email)
    return ApiResponse(
        message="If the email is registered, password reset instructions have been sent"
    )


@router.post(
    "/reset-password",
    response_model=ApiResponse[None],
    summary="Reset password with a reset token",
)
@limiter.limit(settings.rate_limit_password_change)
async def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    auth_service: AuthServiceDep,
) -> ApiResponse[None]:
    """
    Consume a reset token and set a new password.

    Raises:
        400: Weak or reused password
        401: Token unknown, expired or already used
    """
    ip_address, user_agent = client_info(request)
    await auth_service.reset_password(
        payload.token,
        payload.new_password,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return ApiResponse(message="Password has been reset. Please login again.")


@router.get(
    "/me",
    response_model=ApiResponse[MeResponse],
    summary="Current user",
    description="Profile, role codes, effective permissions and accessible menu tree.",
)
async def get_me(
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
) -> ApiResponse[MeResponse]:
    return ApiResponse(data=await auth_service.get_me(principal))


@router.put(
    "/profile",
    response_model=ApiResponse[UserResponse],
    summary="Update own profile",
)
async def update_profile(
    payload: ProfileUpdate,
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
) -> ApiResponse[UserResponse]:
    user = await auth_service.update_profile(principal, payload)
    return ApiResponse(message="Profile updated", data=UserResponse.model_validate(user))
