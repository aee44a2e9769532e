"""
Activity log read service.

Rows are written by the activity recorder; this service only reads them.
A user may read their own activity; reading everyone's activity is gated by
the activity_logs:read permission at the route level.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.activity_repository import ActivityRepository
from src.schemas.common import PaginatedResponse, PaginationMeta, PaginationParams
from src.schemas.system import ActivityLogResponse

logger = logging.getLogger(__name__)


class ActivityService:
    """
    Service class for activity log retrieval.

    Activity rows are immutable; there are no write operations here.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize ActivityService.

        Args:
            session: Async database session
        """
        self.session = session
        self.activity_repo = ActivityRepository(session)

    async def list_activity(
        self,
        pagination: PaginationParams,
        user_id: int | None = None,
        action: str | None = None,
    ) -> PaginatedResponse[ActivityLogResponse]:
        """
        List activity newest first.

        Args:
            pagination: Pagination parameters (page, page_size)
            user_id: Only this user's activity
            action: Only this action code (e.g. LOGIN_FAILED)

        Returns:
            PaginatedResponse with activity rows and pagination metadata
        """
        rows = await self.activity_repo.list_recent(
            user_id=user_id,
            action=action,
            offset=pagination.offset,
            limit=pagination.page_size,
        )
        total = await self.activity_repo.count_filtered(user_id=user_id, action=action)

        logger.debug(f"Listed {len(rows)} of {total} activity rows (user={user_id})")
        return PaginatedResponse(
            data=[ActivityLogResponse.model_validate(row) for row in rows],
            meta=PaginationMeta.build(total, pagination),
        )
