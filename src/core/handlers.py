"""
Exception handlers for FastAPI application.

This module provides:
- Custom application exception handler (AppException)
- Request validation error handler (RequestValidationError -> InputError, 400)
- Datastore integrity error handler (IntegrityError -> AlreadyExistsError, 409)
- General unhandled exception handler (Exception -> InternalError, 500)
- Rate limit exceeded handler (RateLimitExceeded)

Every error response shares one envelope:
    {"success": false, "message": ..., "error": {...}, "meta": {"request_id": ...}}
"""

import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

from src.core.config import settings
from src.exceptions import (
    AlreadyExistsError,
    AppException,
    InputError,
    InternalError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)


def _error_response(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException in the shared error envelope."""
    content = exc.to_dict()
    content["meta"] = {
        "request_id": getattr(request.state, "request_id", None),
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Converts AppException to proper HTTP responses with consistent format.
    Server-side kinds (5xx) are logged at ERROR, caller errors at WARNING.
    """
    log_message = (
        f"Application exception: {exc.error_code} - {exc.message} "
        f"(request_id={getattr(request.state, 'request_id', 'unknown')})"
    )
    if exc.status_code >= 500:
        logger.error(log_message)
    else:
        logger.warning(log_message)

    return _error_response(request, exc)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic request validation errors.

    Malformed bodies, missing fields and type mismatches are InputErrors (400).
    """
    logger.warning(
        f"Validation error: {exc.errors()} "
        f"(request_id={getattr(request.state, 'request_id', 'unknown')})"
    )

    # Format validation errors
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    return _error_response(
        request,
        InputError(message="Request validation failed", details=errors),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """
    Handle uniqueness and foreign-key violations that escape the pre-checks.

    Services check uniqueness before writing; a concurrent writer can still
    win the race, in which case the datastore constraint is the authority.
    """
    logger.warning(
        f"Integrity error: {exc.orig} "
        f"(request_id={getattr(request.state, 'request_id', 'unknown')})"
    )

    return _error_response(
        request,
        AlreadyExistsError(message="Resource conflicts with an existing record"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full error and returns a generic error response to the client
    (don't expose internal error details in production).
    """
    logger.error(
        f"Unexpected error: {str(exc)} "
        f"(request_id={getattr(request.state, 'request_id', 'unknown')})",
        exc_info=True,
    )

    return _error_response(
        request,
        InternalError(
            message=(
                "An unexpected error occurred. Please contact support."
                if not settings.debug
                else str(exc)
            )
        ),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handle rate limit exceeded errors.

    Returns 429 status with retry information.
    """
    logger.warning(
        f"Rate limit exceeded: {request.client.host if request.client else 'unknown'} "
        f"(request_id={getattr(request.state, 'request_id', 'unknown')})"
    )

    response = _error_response(
        request,
        RateLimitExceededError(details={"limit": str(exc.detail)}),
    )
    response.status_code = status.HTTP_429_TOO_MANY_REQUESTS
    return response
