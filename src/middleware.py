"""
Custom middleware for FastAPI application.

This module provides:
- Request ID generation and tracking (also bound to the logging context)
- Security headers middleware
- Request/response logging
- The API_REQUEST activity trail for authenticated requests
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.logging import request_id_ctx
from src.models.enums import ActivityAction
from src.services.activity_recorder import ActivityEvent

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to generate and track request IDs.

    This middleware:
    - Reuses an inbound X-Request-ID or generates a UUID
    - Stores it in request.state.request_id and the logging context
    - Adds X-Request-ID header to responses

    The request ID appears in every log record emitted while the request
    is handled and in the meta block of error responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and add request ID.

        Args:
            request: FastAPI Request object
            call_next: Next middleware or endpoint handler

        Returns:
            Response with X-Request-ID header
        """
        inbound = request.headers.get("X-Request-ID", "")
        request_id = inbound if 0 < len(inbound) <= 64 else str(uuid.uuid4())

        # Store in request state and the logging context
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses.

    Security headers added:
    - X-Content-Type-Options, X-Frame-Options, Referrer-Policy
    - Content-Security-Policy (relaxed for the debug-only Swagger UI)
    - Cache-Control: no-store on /api responses, which carry tokens and
      personal data
    - Strict-Transport-Security (production only)
    """

    STATIC_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    # Swagger UI loads its bundle from jsdelivr and runs inline scripts
    CSP_DIRECTIVES = (
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "img-src 'self' data: https://fastapi.tiangolo.com",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
    )

    def __init__(self, app: ASGIApp, enable_hsts: bool = False):
        """
        Initialize SecurityHeadersMiddleware.

        Args:
            app: ASGI application
            enable_hsts: Enable Strict-Transport-Security header (production only)
        """
        super().__init__(app)
        self.enable_hsts = enable_hsts
        self.csp = "; ".join(self.CSP_DIRECTIVES)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for name, value in self.STATIC_HEADERS.items():
            response.headers[name] = value
        response.headers["Content-Security-Policy"] = self.csp

        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log one line per request.

    The line carries method, path, status, latency, client address and,
    for authenticated requests, the user id. Levels:
    - INFO: 2xx and 3xx (health checks at DEBUG)
    - WARNING: 4xx
    - ERROR: 5xx and exceptions escaping the handlers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: FastAPI Request object
            call_next: Next middleware or endpoint handler

        Returns:
            Response object with an X-Response-Time header
        """
        start = time.perf_counter()
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"{method} {path} failed - client={client_host} "
                f"duration={time.perf_counter() - start:.3f}s",
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - start
        principal = getattr(request.state, "principal", None)
        status_code = response.status_code
        log_message = (
            f"{method} {path} {status_code} - client={client_host} "
            f"user={principal.user_id if principal else '-'} duration={duration:.3f}s"
        )

        if status_code >= 500:
            logger.error(log_message)
        elif status_code >= 400:
            logger.warning(log_message)
        elif path.startswith("/health"):
            logger.debug(log_message)
        else:
            logger.info(log_message)

        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


class ActivityMiddleware(BaseHTTPMiddleware):
    """
    Middleware recording an API_REQUEST activity for authenticated requests.

    The principal is read from request.state, where the authentication
    dependency leaves it; anonymous requests and excluded path prefixes
    (health checks) are not recorded. Recording never blocks the response
    on storage: the recorder buffers the event.
    """

    def __init__(self, app: ASGIApp, excluded_prefixes: tuple[str, ...] = ("/health",)):
        super().__init__(app)
        self.excluded_prefixes = excluded_prefixes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        principal = getattr(request.state, "principal", None)
        recorder = getattr(request.app.state, "recorder", None)
        path = request.url.path
        if principal is None or recorder is None or path.startswith(self.excluded_prefixes):
            return response

        await recorder.record(
            ActivityEvent(
                action=ActivityAction.API_REQUEST.value,
                user_id=principal.user_id,
                session_id=principal.session_id,
                description=f"{request.method} {path}",
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("User-Agent"),
                response_status=response.status_code,
            )
        )
        return response
