"""
Database connection and session management.

This module provides async database session management using SQLAlchemy 2.0
with PostgreSQL (asyncpg) or SQLite (aiosqlite). It implements:
- Engine creation with connection pooling (PostgreSQL) or a single-file store
- A per-request AsyncSession dependency
- Bounded retry of idempotent reads on transient datastore failures
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import TypeVar

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.core.config import settings
from src.exceptions import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# -----------------------------------------------------------------------------
# Database Engine Configuration
# -----------------------------------------------------------------------------


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_database_engine(database_url: str | None = None, **engine_kwargs) -> AsyncEngine:  # type: ignore[no-untyped-def]
    """
    Create async database engine.

    Args:
        database_url: Database URL. If None, uses settings.database_url
        **engine_kwargs: Overrides passed to create_async_engine (tests pass
            poolclass=StaticPool for a shared in-memory database)

    Returns:
        Configured AsyncEngine instance

    Connection Pool Configuration (PostgreSQL):
        - pool_size: Number of permanent connections (default: 5)
        - max_overflow: Additional connections under load (default: 10)
        - pool_pre_ping: Test connection before use (default: True)
        - pool_recycle: Recycle connections after N seconds (default: 3600)
    """
    url = database_url or settings.database_url

    logger.info("Initializing database engine...")

    if url.startswith("sqlite"):
        options: dict = {
            "echo": settings.debug,
            "poolclass": NullPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        options = {
            "echo": settings.debug,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": settings.db_pool_pre_ping,
            "pool_recycle": settings.db_pool_recycle,
            "pool_timeout": settings.db_pool_timeout,
            "connect_args": {
                "server_settings": {
                    "application_name": f"{settings.app_name} - {settings.environment}",
                },
            },
        }
    options.update(engine_kwargs)

    engine = create_async_engine(url, **options)

    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    logger.info(f"Database engine created: dialect={engine.dialect.name}")

    return engine


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory stored on app.state.sessionmaker."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# -----------------------------------------------------------------------------
# Request-scoped Session
# -----------------------------------------------------------------------------


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide one AsyncSession per request.

    Services commit their own units of work; anything left uncommitted when
    the request fails is rolled back here.
    """
    sessionmaker: async_sessionmaker[AsyncSession] = request.app.state.sessionmaker
    async with sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_database_connection(engine: AsyncEngine) -> bool:
    """
    Run a trivial query to verify the datastore is reachable.

    Returns:
        True if the query succeeded, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        return False


# -----------------------------------------------------------------------------
# Transient Failure Retry
# -----------------------------------------------------------------------------


def is_transient(exc: Exception) -> bool:
    """Classify datastore errors that are worth retrying."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    session: AsyncSession | None = None,
    attempts: int | None = None,
    description: str = "database read",
) -> T:
    """
    Run an idempotent read, retrying on transient datastore failures.

    Retries use exponential backoff starting at
    settings.transient_retry_base_delay. Only reads may go through here:
    a write that failed half-way must not be replayed.

    Args:
        operation: Zero-argument coroutine factory performing the read
        session: Session to roll back between attempts
        attempts: Total attempts (default: settings.transient_retry_attempts)
        description: Label for log messages

    Returns:
        Whatever the operation returns

    Raises:
        TransientError: If every attempt failed transiently
    """
    max_attempts = attempts or settings.transient_retry_attempts
    delay = settings.transient_retry_base_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except DBAPIError as e:
            if not is_transient(e):
                raise
            logger.warning(
                f"Transient failure on {description} "
                f"(attempt {attempt}/{max_attempts}): {e.orig}"
            )
            if session is not None:
                await session.rollback()
            if attempt == max_attempts:
                raise TransientError(details={"operation": description}) from e
            await asyncio.sleep(delay)
            delay *= 2

    raise TransientError(details={"operation": description})


# -----------------------------------------------------------------------------
# Lifecycle Management
# -----------------------------------------------------------------------------


async def close_database_connection(engine: AsyncEngine) -> None:
    """
    Close database engine and dispose of connection pool.

    Should be called on application shutdown to gracefully close
    all database connections.

    Args:
        engine: The AsyncEngine to dispose
    """
    try:
        await engine.dispose()
        logger.info("Database engine disposed successfully")
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}")
        # Don't raise - we're shutting down anyway
