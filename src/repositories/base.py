"""
Base repository with generic CRUD operations.

This module provides a generic repository pattern for database operations.
All specific repositories should inherit from BaseRepository.

Type Parameters:
    ModelType: The SQLAlchemy model class (e.g., User, Role, etc.)
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.base import Base

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository for database operations.

    Provides common CRUD operations that work with any SQLAlchemy model.
    Automatically hides soft-deleted records (is_active = False) unless the
    caller asks for them.

    Type Parameters:
        ModelType: The SQLAlchemy model class

    Usage:
        class RoleRepository(BaseRepository[Role]):
            def __init__(self, session: AsyncSession):
                super().__init__(Role, session)

            # Add custom methods here
            async def get_by_code(self, code: str) -> Role | None:
                ...
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: The SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def _apply_active_filter(
        self, query: Select[Any], include_inactive: bool = False
    ) -> Select[Any]:
        """
        Apply soft delete filter to query if model supports it.

        Args:
            query: SQLAlchemy select statement
            include_inactive: Skip the filter

        Returns:
            Query with is_active filter applied
        """
        if not include_inactive and hasattr(self.model, "is_active"):
            query = query.where(self.model.is_active.is_(True))
        return query

    async def add(self, instance: ModelType) -> ModelType:
        """
        Persist a model instance.

        Args:
            instance: Model instance to persist

        Returns:
            Persisted model instance (with ID and defaults populated)
        """
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int, include_inactive: bool = False) -> ModelType | None:
        """
        Get a record by ID.

        Args:
            id: Primary key of the record
            include_inactive: Also return soft-deleted records

        Returns:
            Model instance or None if not found

        Example:
            role = await role_repo.get_by_id(role_id)
            if role is None:
                raise NotFoundError("Role")
        """
        query = select(self.model).where(self.model.id == id)
        query = self._apply_active_filter(query, include_inactive)

        result = await self.session.execute(query)
        return result.unique().scalar_one_or_none()

    async def get_all(
        self,
        offset: int = 0,
        limit: int = 100,
    ) -> list[ModelType]:
        """
        Get active records with pagination, ordered by id.

        Args:
            offset: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of model instances
        """
        query = select(self.model).order_by(self.model.id).offset(offset).limit(limit)
        query = self._apply_active_filter(query)

        result = await self.session.execute(query)
        return list(result.unique().scalars().all())

    async def update(self, instance: ModelType) -> ModelType:
        """
        Persist changes to an already-modified model instance.

        The caller is responsible for modifying the instance attributes
        before calling this method. This method only handles persistence
        (flush + refresh).

        Args:
            instance: Model instance with changes already applied

        Returns:
            Updated model instance (with refreshed timestamps)
        """
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def soft_delete(self, instance: ModelType, deleted_by: int | None = None) -> ModelType:
        """
        Soft delete a record (set is_active to False).

        Args:
            instance: Model instance to soft delete
            deleted_by: Acting user id, stamped into updated_by when supported

        Returns:
            Soft-deleted model instance

        Raises:
            AttributeError: If model doesn't support soft delete
        """
        if not hasattr(instance, "is_active"):
            raise AttributeError(f"{self.model.__name__} does not support soft delete")

        instance.is_active = False
        if deleted_by is not None and hasattr(instance, "updated_by"):
            instance.updated_by = deleted_by

        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def count(self) -> int:
        """
        Count active records.

        Returns:
            Total count
        """
        query = select(func.count()).select_from(self.model)
        query = self._apply_active_filter(query)

        result = await self.session.execute(query)
        return result.scalar_one()
