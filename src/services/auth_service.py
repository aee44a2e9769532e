"""
Authentication service: login, token refresh, logout and password lifecycle.

This module provides:
- Login with lockout (failed-attempt counter and time-bounded lock)
- Token refresh bound to a live session
- Logout (session revocation)
- Password change and password reset, both revoking every session
- The current principal's profile with effective authorisation

Login state machine, evaluated per attempt:

    locked_until > now   -> AccountLockedError (credentials not checked)
    password wrong       -> counter += 1, lock at max_login_attempts,
                            InvalidCredentialsError
    password right,
      user not active    -> AccountInactiveError
    password right       -> counter := 0, last_login_at := now, tokens issued

Unknown usernames cost one dummy Argon2id verification and produce the same
InvalidCredentialsError as a wrong password.
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.core import clock
from src.core.config import settings
from src.core.security import (
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    dummy_verify_password,
    generate_reset_token,
    hash_opaque_token,
    new_session_id,
    verify_password,
)
from src.exceptions import (
    AccountInactiveError,
    AccountLockedError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    NotFoundError,
)
from src.models.enums import ActivityAction
from src.models.user import User
from src.repositories.session_repository import PasswordResetTokenRepository
from src.repositories.user_repository import UserRepository
from src.schemas.auth import LoginResponse, LoginUser, MeResponse, RefreshTokenResponse
from src.schemas.menu import MenuNodeResponse
from src.schemas.user import ProfileUpdate, UserResponse
from src.services.activity_recorder import ActivityEvent, ActivityRecorder
from src.services.guard import Principal
from src.services.password_service import PasswordService
from src.services.rbac_service import PermissionCache, RbacService
from src.services.session_store import SessionStore
from src.services.system_service import SystemSettingService

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service class for authentication operations.

    This service handles:
    - Login and token generation
    - Token refresh
    - Logout and session revocation
    - Password changes and resets
    - Profile reads and edits for the caller

    Args:
        session: Async database session
        recorder: Activity recorder for auth events (optional)
        permission_cache: Shared RBAC cache, warmed on login (optional)
    """

    def __init__(
        self,
        session: AsyncSession,
        recorder: ActivityRecorder | None = None,
        permission_cache: PermissionCache | None = None,
    ):
        self.session = session
        self.recorder = recorder
        self.user_repo = UserRepository(session)
        self.reset_repo = PasswordResetTokenRepository(session)
        self.session_store = SessionStore(session)
        self.settings_service = SystemSettingService(session)
        self.password_service = PasswordService(session)
        self.rbac_service = RbacService(session, permission_cache)

    async def _record(self, action: ActivityAction, **fields) -> None:  # type: ignore[no-untyped-def]
        if self.recorder is not None:
            await self.recorder.record(ActivityEvent(action=action.value, **fields))

    # -------------------------------------------------------------------------
    # Login
    # -------------------------------------------------------------------------

    async def login(
        self,
        username: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResponse:
        """
        Authenticate by username and password and open a session.

        Args:
            username: Username (case-sensitive)
            password: Plain text password
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            LoginResponse with access and refresh tokens

        Raises:
            InvalidCredentialsError: Unknown user or wrong password
            AccountLockedError: A lockout window is in force
            AccountInactiveError: Correct password on a deactivated account

        Example:
            response = await auth_service.login("alice", "Passw0rd!", "10.0.0.1")
        """
        client = {"ip_address": ip_address, "user_agent": user_agent}
        user = await self.user_repo.get_by_username(username, include_inactive=True)

        if user is None:
            dummy_verify_password(password)
            logger.warning("Login failed: invalid credentials")
            await self._record(
                ActivityAction.LOGIN_FAILED,
                description="Login failed",
                request_payload={"username": username},
                response_status=401,
                **client,
            )
            raise InvalidCredentialsError()

        now = clock.utc_now()
        if user.locked_until is not None and user.locked_until > now:
            logger.warning(f"Login rejected: user {user.id} is locked")
            await self._record(
                ActivityAction.LOGIN_FAILED,
                user_id=user.id,
                description="Login rejected: account locked",
                response_status=401,
                **client,
            )
            raise AccountLockedError(details={"locked_until": user.locked_until.isoformat()})

        if not verify_password(password, user.password_hash):
            await self._register_failure(user, **client)
            raise InvalidCredentialsError()

        if not user.can_login:
            logger.warning(f"Login rejected: user {user.id} is inactive")
            await self._record(
                ActivityAction.LOGIN_FAILED,
                user_id=user.id,
                description="Login rejected: account inactive",
                response_status=401,
                **client,
            )
            raise AccountInactiveError()

        await self.user_repo.record_successful_login(user, now)

        timeout_hours = await self.settings_service.session_timeout_hours()
        sid = new_session_id()
        user_session = await self.session_store.create(
            user_id=user.id,
            session_id=sid,
            expires_at=now + timedelta(hours=timeout_hours),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        access_token, refresh_token = self._mint_pair(user, sid)
        await self.session.commit()

        # Warm the RBAC cache for the requests that follow
        await self.rbac_service.resolve(user.id)

        logger.info(f"User logged in successfully: {user.id}")
        await self._record(
            ActivityAction.LOGIN_SUCCESS,
            user_id=user.id,
            session_id=user_session.id,
            description="Login successful",
            response_status=200,
            **client,
        )

        return LoginResponse(
            token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_minutes * 60,
            expires_at=user_session.expires_at,
            user=LoginUser.model_validate(user),
        )

    async def _register_failure(
        self, user: User, ip_address: str | None, user_agent: str | None
    ) -> None:
        max_attempts = await self.settings_service.max_login_attempts()
        lock_minutes = await self.settings_service.account_lock_duration_minutes()

        result = await self.user_repo.register_failed_login(
            user.id,
            max_attempts=max_attempts,
            lock_duration=timedelta(minutes=lock_minutes),
            now=clock.utc_now(),
        )
        await self.session.commit()

        logger.warning("Login failed: invalid credentials")
        await self._record(
            ActivityAction.LOGIN_FAILED,
            user_id=user.id,
            description="Login failed: wrong password",
            response_status=401,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        if result is None:
            return
        attempts, locked_until = result
        if locked_until is not None:
            logger.warning(
                f"User {user.id} locked until {locked_until.isoformat()} "
                f"after {attempts} failed attempts"
            )
            await self._record(
                ActivityAction.ACCOUNT_LOCKED,
                user_id=user.id,
                target_type="user",
                target_id=str(user.id),
                description=f"Account locked after {attempts} failed attempts",
                ip_address=ip_address,
                user_agent=user_agent,
            )

    def _mint_pair(self, user: User, sid: str) -> tuple[str, str]:
        principal = {"user_id": user.id, "username": user.username, "email": user.email}
        return create_access_token(principal, sid), create_refresh_token(principal, sid)

    # -------------------------------------------------------------------------
    # Refresh / logout
    # -------------------------------------------------------------------------

    async def refresh(
        self,
        refresh_token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshTokenResponse:
        """
        Exchange a refresh token for a new token pair on the same session.

        The refresh token must parse, be unexpired and name a live session of
        the same user. The session's expiry is pushed out by the session
        timeout.

        Raises:
            TokenMalformedError / TokenSignatureError / TokenExpiredError:
                Token does not parse or is not a refresh token
            SessionRevokedError / SessionExpiredError / UserMismatchError:
                Session check failed
            AccountInactiveError: User deactivated since login
        """
        claims = decode_token(refresh_token, expected_type=TOKEN_TYPE_REFRESH)
        user_session = await self.session_store.validate(claims.session_id, claims.user_id)

        user = await self.user_repo.get_by_id(claims.user_id, include_inactive=True)
        if user is None or not user.can_login:
            logger.warning(f"Token refresh rejected: user {claims.user_id} is inactive")
            raise AccountInactiveError()

        timeout_hours = await self.settings_service.session_timeout_hours()
        user_session = await self.session_store.extend(
            user_session, timedelta(hours=timeout_hours)
        )
        access_token, new_refresh_token = self._mint_pair(user, claims.session_id)
        await self.session.commit()

        logger.info(f"Access token refreshed for user {user.id}")
        await self._record(
            ActivityAction.TOKEN_REFRESH,
            user_id=user.id,
            session_id=user_session.id,
            description="Token refreshed",
            response_status=200,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return RefreshTokenResponse(
            token=access_token,
            refresh_token=new_refresh_token,
            expires_in=settings.access_token_expire_minutes * 60,
            expires_at=user_session.expires_at,
        )

    async def logout(
        self,
        principal: Principal,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """
        Revoke the caller's session.

        Both tokens of the pair stop validating immediately.
        """
        await self.session_store.revoke(principal.sid)
        await self.session.commit()

        logger.info(f"User logged out: {principal.user_id}")
        await self._record(
            ActivityAction.LOGOUT,
            user_id=principal.user_id,
            session_id=principal.session_id,
            description="User logged out",
            response_status=200,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    # -------------------------------------------------------------------------
    # Password lifecycle
    # -------------------------------------------------------------------------

    async def change_password(
        self,
        principal: Principal,
        current_password: str,
        new_password: str,
        user_id: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> int:
        """
        Change the caller's password and revoke all their sessions.

        Args:
            principal: Authenticated caller
            current_password: Must match the stored hash
            new_password: New password (policy and history checked)
            user_id: Acting user id from the request body, if any

        Returns:
            Number of sessions revoked

        Raises:
            PermissionDeniedError: user_id names someone else
            InvalidCredentialsError: Current password is wrong
            WeakPasswordError / PasswordReuseError / StorageError: From rotation
        """
        principal.ensure_same_subject(user_id)

        user = await self.user_repo.get_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User")

        if not verify_password(current_password, user.password_hash):
            logger.warning(
                f"Password change failed: invalid current password for user {user.id}"
            )
            raise InvalidCredentialsError("Current password is incorrect")

        # Revocation joins the rotation transaction and commits with it
        revoked = await self.session_store.revoke_all_for(user.id)
        await self.password_service.rotate(user, new_password)

        logger.info(f"Password changed for user {user.id}, revoked {revoked} sessions")
        await self._record(
            ActivityAction.PASSWORD_CHANGE,
            user_id=user.id,
            session_id=principal.session_id,
            target_type="user",
            target_id=str(user.id),
            description="Password changed",
            response_status=200,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return revoked

    async def forgot_password(self, email: str) -> str | None:
        """
        Issue a single-use reset token for an active user.

        The caller always reports success, whether or not the email is known.
        Delivery is outside this service: the token is returned to the caller
        and only logged at DEBUG.

        Returns:
            The plain reset token, or None if no active user has that email
        """
        user = await self.user_repo.get_by_email(email)
        if user is None or not user.can_login:
            logger.info("Password reset requested for unknown or inactive email")
            return None

        token = generate_reset_token()
        expires_at = clock.utc_now() + timedelta(
            minutes=settings.password_reset_token_expire_minutes
        )
        await self.reset_repo.replace_for_user(user.id, hash_opaque_token(token), expires_at)
        await self.session.commit()

        logger.info(f"Password reset token issued for user {user.id}")
        logger.debug(f"Password reset token for user {user.id}: {token}")
        return token

    async def reset_password(
        self,
        token: str,
        new_password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """
        Consume a reset token, rotate the password and revoke all sessions.

        The token is marked used in the same transaction as the rotation, so
        a rejected new password leaves it usable.

        Raises:
            InvalidResetTokenError: Token unknown, expired or already used
            WeakPasswordError / PasswordReuseError / StorageError: From rotation
        """
        user_id = await self.reset_repo.consume(hash_opaque_token(token), clock.utc_now())
        if user_id is None:
            logger.warning("Password reset rejected: invalid token")
            raise InvalidResetTokenError()

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise InvalidResetTokenError()

        revoked = await self.session_store.revoke_all_for(user.id)
        await self.password_service.rotate(user, new_password)

        logger.info(f"Password reset for user {user.id}, revoked {revoked} sessions")
        await self._record(
            ActivityAction.PASSWORD_RESET,
            user_id=user.id,
            target_type="user",
            target_id=str(user.id),
            description="Password reset with token",
            response_status=200,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    async def get_me(self, principal: Principal) -> MeResponse:
        """
        The caller's profile, roles, permissions and menu forest.

        Raises:
            NotFoundError: If the user was deleted since login
        """
        user = await self.user_repo.get_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User")

        resolved = await self.rbac_service.resolve(user.id)
        tree = await self.rbac_service.menu_tree_for(user.id)

        return MeResponse(
            user=UserResponse.model_validate(user),
            roles=list(resolved.role_codes),
            permissions=sorted(resolved.permissions),
            menus=[MenuNodeResponse.model_validate(node) for node in tree],
        )

    async def update_profile(self, principal: Principal, data: ProfileUpdate) -> User:
        """Edit the caller's own names, phone and avatar."""
        user = await self.user_repo.get_by_id(principal.user_id)
        if user is None:
            raise NotFoundError("User")

        for field_name, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field_name, value)
        user.updated_by = principal.user_id

        user = await self.user_repo.update(user)
        await self.session.commit()

        logger.info(f"Profile updated for user {user.id}")
        return user
