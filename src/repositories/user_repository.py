"""
User repository for user-specific database operations.

This module provides database operations for the User model, including
authentication lookups, the lockout counter, password history and the
admin list view.
"""

from datetime import datetime, timedelta

from sqlalchemy import case, func, literal, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.base import UTCDateTime
from src.models.user import PasswordHistory, User, UserStatus
from src.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """
    Repository for User model operations.

    Extends BaseRepository with user-specific queries:
    - Username and email lookups (for authentication)
    - Atomic failed-login counter with lockout
    - Password history reads and appends
    - User filtering (for admin list view)
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize UserRepository.

        Args:
            session: Async database session
        """
        super().__init__(User, session)

    async def get_by_username(
        self, username: str, include_inactive: bool = False
    ) -> User | None:
        """
        Get user by username (case-sensitive).

        Args:
            username: Username to search for
            include_inactive: Also return deactivated users (login needs them
                to report AccountInactive after a correct password)

        Returns:
            User instance or None if not found

        Example:
            user = await user_repo.get_by_username("alice", include_inactive=True)
        """
        query = select(User).where(User.username == username)
        query = self._apply_active_filter(query, include_inactive)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """
        Get an active user by email address (compared lower-cased).

        Args:
            email: Email address to search for

        Returns:
            User instance or None if not found
        """
        query = select(User).where(User.email == email.lower())
        query = self._apply_active_filter(query)

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def email_exists(self, email: str, exclude_user_id: int | None = None) -> bool:
        """
        Check if email is already in use by another user.

        Deactivated users keep their email reserved.

        Args:
            email: Email address to check
            exclude_user_id: User ID to exclude from check (for updates)

        Returns:
            True if email exists, False otherwise
        """
        query = select(User.id).where(User.email == email.lower())
        if exclude_user_id:
            query = query.where(User.id != exclude_user_id)

        result = await self.session.execute(query)
        return result.first() is not None

    async def username_exists(self, username: str, exclude_user_id: int | None = None) -> bool:
        """
        Check if username is already in use by another user.

        Deactivated users keep their username reserved.

        Args:
            username: Username to check
            exclude_user_id: User ID to exclude from check (for updates)

        Returns:
            True if username exists, False otherwise
        """
        query = select(User.id).where(User.username == username)
        if exclude_user_id:
            query = query.where(User.id != exclude_user_id)

        result = await self.session.execute(query)
        return result.first() is not None

    async def get_status_by_code(self, status_code: str) -> UserStatus | None:
        """Resolve an account status code to its lookup row."""
        result = await self.session.execute(
            select(UserStatus).where(
                UserStatus.status_code == status_code,
                UserStatus.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Lockout counter
    # -------------------------------------------------------------------------

    async def register_failed_login(
        self,
        user_id: int,
        max_attempts: int,
        lock_duration: timedelta,
        now: datetime,
    ) -> tuple[int, datetime | None] | None:
        """
        Atomically count a failed login and lock the account at the threshold.

        A single conditional UPDATE does the read-modify-write, so concurrent
        failures serialise on the row lock the datastore takes for it:
        - rows inside a lockout window are not touched (WHERE clause)
        - an expired lock restarts the count at 1
        - locked_until is set when the new count reaches max_attempts

        Args:
            user_id: User that failed to authenticate
            max_attempts: Threshold from the max_login_attempts setting
            lock_duration: Window from the account_lock_duration_minutes setting
            now: Current time

        Returns:
            (failed_login_attempts, locked_until) after the update, or None if
            the account was already locked and nothing changed
        """
        new_count = case(
            (User.locked_until.is_not(None), 1),
            else_=User.failed_login_attempts + 1,
        )
        stmt = (
            update(User)
            .where(User.id == user_id)
            .where(or_(User.locked_until.is_(None), User.locked_until <= now))
            .values(
                failed_login_attempts=new_count,
                locked_until=case(
                    (new_count >= max_attempts, literal(now + lock_duration, UTCDateTime())),
                    else_=literal(None, UTCDateTime()),
                ),
            )
            .returning(User.failed_login_attempts, User.locked_until)
            .execution_options(synchronize_session=False)
        )

        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def record_successful_login(self, user: User, now: datetime) -> None:
        """
        Reset the lockout state and stamp last_login_at.

        Args:
            user: Authenticated user
            now: Current time
        """
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        await self.session.flush()

    async def unlock(self, user: User, updated_by: int | None = None) -> User:
        """Clear the lockout window and the failure counter."""
        user.failed_login_attempts = 0
        user.locked_until = None
        user.updated_by = updated_by
        return await self.update(user)

    # -------------------------------------------------------------------------
    # Password history
    # -------------------------------------------------------------------------

    async def get_recent_password_hashes(self, user_id: int, limit: int) -> list[str]:
        """
        Get the most recent previous password hashes of a user.

        Args:
            user_id: User id
            limit: Number of history entries to return

        Returns:
            Hashes, newest first
        """
        query = (
            select(PasswordHistory.password_hash)
            .where(
                PasswordHistory.user_id == user_id,
                PasswordHistory.is_active.is_(True),
            )
            .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def add_password_history(
        self, user_id: int, password_hash: str, now: datetime
    ) -> None:
        """Append a previous password hash to the user's history."""
        self.session.add(
            PasswordHistory(user_id=user_id, password_hash=password_hash, created_at=now)
        )
        await self.session.flush()

    # -------------------------------------------------------------------------
    # Admin list view
    # -------------------------------------------------------------------------

    def _filtered(self, query, search: str | None, status_code: str | None):  # type: ignore[no-untyped-def]
        query = self._apply_active_filter(query)

        if search:
            search_pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.username.ilike(search_pattern),
                    User.email.ilike(search_pattern),
                    User.first_name.ilike(search_pattern),
                    User.last_name.ilike(search_pattern),
                )
            )

        if status_code:
            query = query.join(UserStatus, User.status_id == UserStatus.id).where(
                UserStatus.status_code == status_code
            )
        return query

    async def filter_users(
        self,
        search: str | None = None,
        status_code: str | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> list[User]:
        """
        Filter active users with search and pagination.

        Args:
            search: Search term for username, email or names
            status_code: Filter by account status code
            offset: Number of records to skip (pagination)
            limit: Maximum number of records to return

        Returns:
            List of User instances, newest first
        """
        query = self._filtered(select(User), search, status_code)
        query = query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit)

        result = await self.session.execute(query)
        return list(result.unique().scalars().all())

    async def count_filtered(
        self,
        search: str | None = None,
        status_code: str | None = None,
    ) -> int:
        """Count users matching filter criteria, for pagination metadata."""
        query = self._filtered(select(func.count(User.id)), search, status_code)

        result = await self.session.execute(query)
        return result.scalar_one()
