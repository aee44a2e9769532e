"""
FastAPI application entry point.

This module sets up:
- FastAPI application with middleware
- Exception handlers
- Rate limiting (slowapi)
- API routes, with the maintenance gate on non-auth routers
- CORS configuration
"""

import logging

from fastapi import APIRouter, Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

from src.api.dependencies import check_maintenance
from src.api.routes import activity_logs, auth, health, menus, roles, root, settings, users
from src.core.config import settings as app_settings
from src.core.handlers import (
    app_exception_handler,
    general_exception_handler,
    integrity_error_handler,
    rate_limit_handler,
    validation_exception_handler,
)
from src.core.lifespan import lifespan
from src.core.logging import setup_logging
from src.core.rate_limit import limiter
from src.exceptions import AppException
from src.middleware import (
    ActivityMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Returns:
        Configured application; app.state is populated by the lifespan
    """
    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.version,
        description=app_settings.description,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    # Attach rate limiter to app
    app.state.limiter = limiter

    # ========================================================================
    # Exception Handlers
    # ========================================================================
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # ========================================================================
    # Middleware Setup (last added runs first)
    # ========================================================================
    app.add_middleware(ActivityMiddleware)
    app.add_middleware(
        SecurityHeadersMiddleware,
        enable_hsts=app_settings.is_production,
    )
    app.add_middleware(RequestLoggingMiddleware)
    # Outermost of ours, so every log line above carries the request id
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=app_settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # API Routes
    # ========================================================================
    # Administrative routers are closed while maintenance_mode is on
    v1_router = APIRouter(prefix="/v1")
    gated = APIRouter(dependencies=[Depends(check_maintenance)])
    gated.include_router(users.router)
    gated.include_router(roles.router)
    gated.include_router(roles.permissions_router)
    gated.include_router(menus.router)
    gated.include_router(activity_logs.router)
    v1_router.include_router(gated)
    v1_router.include_router(settings.router)

    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth.router)
    api_router.include_router(v1_router)

    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(api_router)

    return app


app = create_app()
