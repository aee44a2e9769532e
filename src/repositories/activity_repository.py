"""
Activity log repository.

Writes come in batches from the activity recorder; reads serve the admin
activity endpoints.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.activity_log import ActivityLog
from src.repositories.base import BaseRepository


class ActivityRepository(BaseRepository[ActivityLog]):
    """Repository for ActivityLog rows."""

    def __init__(self, session: AsyncSession):
        """
        Initialize ActivityRepository.

        Args:
            session: Async database session
        """
        super().__init__(ActivityLog, session)

    async def add_many(self, rows: Sequence[dict[str, Any]]) -> None:
        """Insert a batch of activity rows with one executemany."""
        if rows:
            await self.session.execute(insert(ActivityLog), list(rows))

    async def list_recent(
        self,
        user_id: int | None = None,
        action: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[ActivityLog]:
        """
        List activity newest first.

        Args:
            user_id: Only this user's activity
            action: Only this action code
            offset: Number of records to skip
            limit: Maximum number of records to return
        """
        query = select(ActivityLog)
        if user_id is not None:
            query = query.where(ActivityLog.user_id == user_id)
        if action:
            query = query.where(ActivityLog.action == action)
        query = (
            query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_filtered(self, user_id: int | None = None, action: str | None = None) -> int:
        """Count activity rows matching the filters."""
        query = select(func.count(ActivityLog.id))
        if user_id is not None:
            query = query.where(ActivityLog.user_id == user_id)
        if action:
            query = query.where(ActivityLog.action == action)
        result = await self.session.execute(query)
        return result.scalar_one()
