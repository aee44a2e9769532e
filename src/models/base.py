"""
Base model class for all database models.

This module provides the declarative base and common model configuration.
All SQLAlchemy models should inherit from Base.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Naming convention for constraints
# This ensures consistent naming across all database objects
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    PostgreSQL keeps the offset (timestamptz); SQLite drops it. Values are
    normalised to UTC on the way in and re-tagged as UTC on the way out, so
    comparisons against clock.utc_now() behave the same on both backends.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:  # type: ignore[no-untyped-def]
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:  # type: ignore[no-untyped-def]
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """
    Base class for all database models.

    Provides:
    - Integer surrogate primary key (id column)
    - Naming convention for constraints
    - Common configuration

    Usage:
        class Role(Base):
            __tablename__ = "users_roles"
            role_name: Mapped[str] = mapped_column(String(100))
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    # Default primary key column
    # All models will have this unless overridden
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Type annotation for repr
    __name__: str

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String in format: ModelName(id=1)
        """
        return f"{self.__class__.__name__}(id={self.id})"
