"""
User administration service.

This module provides:
- Create users with initial roles
- Get, list and filter users
- Update users, replacing their role set in one transaction
- Soft delete and deactivate (both revoke every session)
- Administrative password reset and account unlock
- Role assignment and removal
- Session listing and bulk revocation

Writes that change role assignments or a user's active flag invalidate the
shared permission cache after commit.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from src.core import clock
from src.core.security import hash_password
from src.exceptions import AlreadyExistsError, NotFoundError, ValidationError
from src.models.session import UserSession
from src.models.user import User, UserStatus
from src.repositories.role_repository import RoleRepository
from src.repositories.user_repository import UserRepository
from src.schemas.common import PaginatedResponse, PaginationMeta, PaginationParams
from src.schemas.user import RoleSummary, UserCreate, UserDetailResponse, UserResponse, UserUpdate
from src.services.password_service import PasswordService
from src.services.rbac_service import PermissionCache
from src.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class UserService:
    """
    Service class for user management operations.

    Args:
        session: Async database session
        permission_cache: Invalidated after role or activity changes
    """

    def __init__(self, session: AsyncSession, permission_cache: PermissionCache | None = None):
        self.session = session
        self.permission_cache = permission_cache
        self.user_repo = UserRepository(session)
        self.role_repo = RoleRepository(session)
        self.session_store = SessionStore(session)
        self.password_service = PasswordService(session)

    def _invalidate(self) -> None:
        if self.permission_cache is not None:
            self.permission_cache.invalidate()

    async def _get(self, user_id: int, include_inactive: bool = False) -> User:
        user = await self.user_repo.get_by_id(user_id, include_inactive=include_inactive)
        if user is None:
            logger.warning(f"User {user_id} not found")
            raise NotFoundError("User")
        return user

    async def _resolve_status(self, status_code: str) -> UserStatus:
        status = await self.user_repo.get_status_by_code(status_code)
        if status is None:
            raise ValidationError(
                f"Unknown status code: {status_code}",
                error_code="INVALID_STATUS",
                details={"status_code": status_code},
            )
        return status

    async def _check_roles(self, role_ids: Iterable[int]) -> set[int]:
        wanted = set(role_ids)
        found = {role.id for role in await self.role_repo.get_by_ids(wanted)}
        missing = sorted(wanted - found)
        if missing:
            raise NotFoundError("Role", details={"role_ids": missing})
        return wanted

    async def _detail(self, user: User) -> UserDetailResponse:
        roles = await self.role_repo.get_user_roles(user.id)
        response = UserDetailResponse.model_validate(user)
        response.roles = [RoleSummary.model_validate(role) for role in roles]
        return response

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def create_user(self, data: UserCreate, created_by: int) -> UserDetailResponse:
        """
        Create a user with an initial password and role set.

        Raises:
            AlreadyExistsError: Username or email taken
            ValidationError: Unknown status code
            WeakPasswordError: Password violates the policy
            NotFoundError: A role id is unknown or inactive
        """
        if await self.user_repo.username_exists(data.username):
            raise AlreadyExistsError("User with this username")
        if await self.user_repo.email_exists(data.email):
            raise AlreadyExistsError("User with this email")

        status = await self._resolve_status(data.status_code)
        await self.password_service.validate_policy(data.password)
        role_ids = await self._check_roles(data.role_ids)

        now = clock.utc_now()
        user = await self.user_repo.add(
            User(
                username=data.username,
                email=data.email,
                password_hash=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                status_id=status.id,
                department_id=data.department_id,
                employee_id=data.employee_id,
                phone=data.phone,
                avatar_url=data.avatar_url,
                password_changed_at=now,
                created_by=created_by,
                updated_by=created_by,
            )
        )
        if role_ids:
            await self.role_repo.replace_user_roles(user.id, role_ids, created_by, now)
        await self.session.commit()
        self._invalidate()

        logger.info(f"User {user.id} ({user.username}) created by user {created_by}")
        return await self._detail(user)

    async def get_user(self, user_id: int) -> UserDetailResponse:
        """Get an active user with their roles."""
        return await self._detail(await self._get(user_id))

    async def list_users(
        self,
        pagination: PaginationParams,
        search: str | None = None,
        status_code: str | None = None,
    ) -> PaginatedResponse[UserResponse]:
        """
        List active users with search and pagination.

        Args:
            pagination: Pagination parameters (page, page_size)
            search: Matches username, email or names
            status_code: Only users with this status

        Returns:
            PaginatedResponse with list of users and pagination metadata
        """
        users = await self.user_repo.filter_users(
            search=search,
            status_code=status_code,
            offset=pagination.offset,
            limit=pagination.page_size,
        )
        total = await self.user_repo.count_filtered(search=search, status_code=status_code)

        return PaginatedResponse(
            data=[UserResponse.model_validate(user) for user in users],
            meta=PaginationMeta.build(total, pagination),
        )

    async def update_user(
        self, user_id: int, data: UserUpdate, updated_by: int
    ) -> UserDetailResponse:
        """
        Update a user.

        When role_ids is present the role set is replaced: every current
        assignment is deactivated and the requested ones re-activated or
        inserted, all inside this method's single commit.

        Raises:
            NotFoundError: User (or a role) not found
            AlreadyExistsError: New username or email taken
            ValidationError: Unknown status code
        """
        changes = data.model_dump(exclude_unset=True)
        # Deactivated users are only reachable to switch them back on
        user = await self._get(user_id, include_inactive=changes.get("is_active") is True)
        role_ids = changes.pop("role_ids", None)

        if changes.get("username") and changes["username"] != user.username:
            if await self.user_repo.username_exists(changes["username"], exclude_user_id=user.id):
                raise AlreadyExistsError("User with this username")
        if changes.get("email") and changes["email"] != user.email:
            if await self.user_repo.email_exists(changes["email"], exclude_user_id=user.id):
                raise AlreadyExistsError("User with this email")

        status_code = changes.pop("status_code", None)
        if status_code:
            user.status_id = (await self._resolve_status(status_code)).id

        checked_roles = await self._check_roles(role_ids) if role_ids is not None else None

        for field_name, value in changes.items():
            if value is None and field_name in ("username", "email", "first_name", "is_active"):
                continue
            setattr(user, field_name, value)
        user.updated_by = updated_by

        now = clock.utc_now()
        if checked_roles is not None:
            await self.role_repo.replace_user_roles(user.id, checked_roles, updated_by, now)
        if changes.get("is_active") is False:
            await self.session_store.revoke_all_for(user.id)

        await self.user_repo.update(user)
        await self.session.commit()
        self._invalidate()

        logger.info(f"User {user.id} updated by user {updated_by}")
        return await self._detail(user)

    async def delete_user(self, user_id: int, deleted_by: int) -> None:
        """
        Soft delete a user and revoke their sessions.

        Raises:
            NotFoundError: User not found
            ValidationError: Caller is deleting themself
        """
        if user_id == deleted_by:
            raise ValidationError("You cannot delete your own account", error_code="SELF_DELETE")

        user = await self._get(user_id)
        await self.session_store.revoke_all_for(user.id)
        await self.user_repo.soft_delete(user, deleted_by=deleted_by)
        await self.session.commit()
        self._invalidate()

        logger.info(f"User {user_id} deleted by user {deleted_by}")

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    async def admin_reset_password(self, user_id: int, new_password: str, updated_by: int) -> int:
        """
        Set a user's password (policy and history checked), revoking sessions.

        Returns:
            Number of sessions revoked
        """
        user = await self._get(user_id)
        revoked = await self.session_store.revoke_all_for(user.id)
        await self.password_service.rotate(user, new_password, updated_by=updated_by)

        logger.info(f"Password of user {user_id} reset by user {updated_by}")
        return revoked

    async def unlock_user(self, user_id: int, updated_by: int) -> User:
        """Clear a user's lockout window and failure counter."""
        user = await self._get(user_id)
        user = await self.user_repo.unlock(user, updated_by=updated_by)
        await self.session.commit()

        logger.info(f"User {user_id} unlocked by user {updated_by}")
        return user

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    async def assign_roles(
        self, user_id: int, role_ids: list[int], assigned_by: int
    ) -> UserDetailResponse:
        """Add roles to a user, keeping the ones already held."""
        user = await self._get(user_id)
        checked = await self._check_roles(role_ids)
        await self.role_repo.add_user_roles(user.id, checked, assigned_by, clock.utc_now())
        await self.session.commit()
        self._invalidate()

        logger.info(f"Roles {sorted(checked)} assigned to user {user_id} by user {assigned_by}")
        return await self._detail(user)

    async def remove_roles(
        self, user_id: int, role_ids: list[int], removed_by: int
    ) -> UserDetailResponse:
        """Deactivate the given role assignments of a user."""
        user = await self._get(user_id)
        removed = await self.role_repo.remove_user_roles(user.id, role_ids)
        await self.session.commit()
        self._invalidate()

        logger.info(f"{removed} role assignments of user {user_id} removed by user {removed_by}")
        return await self._detail(user)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def list_sessions(self, user_id: int) -> list[UserSession]:
        """Live sessions of a user."""
        await self._get(user_id)
        return await self.session_store.list_active(user_id)

    async def revoke_sessions(self, user_id: int, revoked_by: int) -> int:
        """Revoke every live session of a user."""
        await self._get(user_id)
        revoked = await self.session_store.revoke_all_for(user_id)
        await self.session.commit()

        logger.info(f"{revoked} sessions of user {user_id} revoked by user {revoked_by}")
        return revoked
