import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.core.config import settings
from src.core.database import (
    close_database_connection,
    create_database_engine,
    create_sessionmaker,
)
from src.models.base import Base
from src.models.bootstrap import seed_reference_data
from src.services.activity_recorder import (
    ActivityRecorder,
    DatabaseActivitySink,
    FileActivitySink,
)
from src.services.rbac_service import PermissionCache

logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan Context Manager
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore
    """
    Lifespan context manager for startup and shutdown events.

    Handles:
    - Database engine and session factory creation, stored in app.state
    - Optional schema creation and reference data seeding
    - The process-wide permission cache
    - Activity recorder start, and drain on shutdown
    - Resource cleanup on shutdown
    """
    logger.info(f"Starting {settings.app_name} v{settings.version}")
    logger.info(f"Environment: {settings.environment}")

    engine = create_database_engine()
    sessionmaker = create_sessionmaker(engine)
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker

    if settings.database_create_schema:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with sessionmaker() as session:
            await seed_reference_data(session)
        logger.info("Database schema created")

    app.state.permission_cache = PermissionCache()

    recorder = None
    if settings.activity_enabled:
        recorder = ActivityRecorder(
            sink=DatabaseActivitySink(sessionmaker),
            fallback=FileActivitySink(settings.activity_fallback_path),
            buffer_size=settings.activity_buffer_size,
            batch_size=settings.activity_batch_size,
            flush_interval=settings.activity_flush_interval_seconds,
        )
        recorder.start()
    app.state.recorder = recorder

    logger.info("Application startup complete")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down application")
    if recorder is not None:
        await recorder.stop(drain_timeout=settings.activity_drain_timeout_seconds)
    await close_database_connection(engine)
    app.state.sessionmaker = None
    app.state.recorder = None
