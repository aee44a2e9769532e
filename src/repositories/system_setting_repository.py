"""
System setting repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.system_setting import SystemSetting
from src.repositories.base import BaseRepository


class SystemSettingRepository(BaseRepository[SystemSetting]):
    """Repository for SystemSetting rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(SystemSetting, session)

    async def get_by_key(self, key: str, include_inactive: bool = False) -> SystemSetting | None:
        """Get a setting by key."""
        query = select(SystemSetting).where(SystemSetting.setting_key == key)
        query = self._apply_active_filter(query, include_inactive)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_values(self, keys: list[str]) -> dict[str, SystemSetting]:
        """Get several active settings in one query, keyed by setting_key."""
        query = select(SystemSetting).where(
            SystemSetting.setting_key.in_(keys),
            SystemSetting.is_active.is_(True),
        )
        result = await self.session.execute(query)
        return {s.setting_key: s for s in result.scalars().all()}

    async def list_settings(self, public_only: bool = False) -> list[SystemSetting]:
        """List active settings ordered by key."""
        query = select(SystemSetting).order_by(SystemSetting.setting_key)
        query = self._apply_active_filter(query)
        if public_only:
            query = query.where(SystemSetting.is_public.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())
