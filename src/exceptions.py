"""
Custom exception classes for the back-office access core.

This module defines a hierarchy of custom exceptions that map to HTTP status codes
and provide consistent error responses across the API. Every component raises
from this hierarchy; datastore and library errors are translated at the
component boundary and never reach the transport layer untyped.

Exception hierarchy:
    AppException (base)
    ├── InputError (400)
    ├── ValidationError (400)
    │   ├── WeakPasswordError
    │   ├── PasswordReuseError
    │   └── MenuCycleError
    ├── AuthenticationError (401)
    │   ├── InvalidCredentialsError
    │   ├── AccountLockedError
    │   ├── AccountInactiveError
    │   ├── TokenMissingError
    │   ├── TokenMalformedError
    │   ├── TokenSignatureError
    │   ├── TokenExpiredError
    │   ├── SessionRevokedError
    │   ├── SessionExpiredError
    │   ├── UserMismatchError
    │   └── InvalidResetTokenError
    ├── AuthorizationError (403)
    │   ├── PermissionDeniedError
    │   ├── MenuForbiddenError
    │   └── MaintenanceModeError
    ├── ResourceError
    │   ├── NotFoundError (404)
    │   ├── AlreadyExistsError (409)
    │   └── ConflictError (409)
    │       ├── SystemRoleImmutableError
    │       ├── MenuHasChildrenError
    │       └── RoleInUseError
    ├── TransientError (500)
    │   └── StorageError
    ├── InternalError (500)
    └── RateLimitExceededError (429)
"""

from typing import Any


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    All custom exceptions should inherit from this class to ensure
    consistent error handling and response formatting.

    Attributes:
        status_code: HTTP status code for the error
        error_code: Machine-readable error code
        message: Human-readable error message
        details: Optional additional error details
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (default: 500)
            error_code: Machine-readable error code
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error information
        """
        return {
            "success": False,
            "message": self.message,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }


# =============================================================================
# Input / Validation Errors (400 Bad Request)
# =============================================================================


class InputError(AppException):
    """Raised when a request body is malformed, incomplete or mistyped."""

    def __init__(
        self,
        message: str = "Invalid request input",
        details: dict[str, Any] | list[Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="INPUT_ERROR",
        )
        # Field-level errors from request parsing arrive as a list
        self.details = details if details is not None else {}


class ValidationError(AppException):
    """Base class for well-formed input that violates a policy."""

    def __init__(
        self,
        message: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details,
        )


class WeakPasswordError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""

    def __init__(
        self,
        message: str = "Password does not meet security requirements",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="WEAK_PASSWORD",
            details=details,
        )


class PasswordReuseError(ValidationError):
    """Raised when a new password matches the current or a recent password."""

    def __init__(
        self,
        message: str = "Password was used recently and cannot be reused",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="PASSWORD_REUSE",
            details=details,
        )


class MenuCycleError(ValidationError):
    """Raised when a menu parent assignment would create a cycle."""

    def __init__(
        self,
        message: str = "Parent assignment would create a menu cycle",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="MENU_CYCLE",
            details=details,
        )


# =============================================================================
# Authentication Errors (401 Unauthorized)
# =============================================================================


class AuthenticationError(AppException):
    """Base class for authentication errors."""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = "AUTHENTICATION_FAILED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=401,
            error_code=error_code,
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid (or the user is unknown)."""

    def __init__(
        self,
        message: str = "Invalid username or password",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="INVALID_CREDENTIALS",
            details=details,
        )


class AccountLockedError(AuthenticationError):
    """Raised when an account is locked due to too many failed login attempts."""

    def __init__(
        self,
        message: str = "Account is locked due to too many failed login attempts",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="ACCOUNT_LOCKED",
            details=details,
        )


class AccountInactiveError(AuthenticationError):
    """Raised when a deactivated account presents valid credentials."""

    def __init__(
        self,
        message: str = "Account is inactive",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="ACCOUNT_INACTIVE",
            details=details,
        )


class TokenMissingError(AuthenticationError):
    """Raised when no bearer token is presented."""

    def __init__(
        self,
        message: str = "Authorization token is required",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="TOKEN_MISSING",
            details=details,
        )


class TokenMalformedError(AuthenticationError):
    """Raised when a bearer token cannot be decoded or lacks required claims."""

    def __init__(
        self,
        message: str = "Invalid or malformed token",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="TOKEN_MALFORMED",
            details=details,
        )


class TokenSignatureError(AuthenticationError):
    """Raised when a bearer token's signature does not verify."""

    def __init__(
        self,
        message: str = "Token signature is invalid",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="TOKEN_SIGNATURE_INVALID",
            details=details,
        )


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(
        self,
        message: str = "Token has expired",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="TOKEN_EXPIRED",
            details=details,
        )


class SessionRevokedError(AuthenticationError):
    """Raised when the session behind a token is missing, logged out or inactive."""

    def __init__(
        self,
        message: str = "Session has been revoked",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="SESSION_REVOKED",
            details=details,
        )


class SessionExpiredError(AuthenticationError):
    """Raised when the session behind a token is past its expiry."""

    def __init__(
        self,
        message: str = "Session has expired",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="SESSION_EXPIRED",
            details=details,
        )


class UserMismatchError(AuthenticationError):
    """Raised when a session belongs to a different user than the token claims."""

    def __init__(
        self,
        message: str = "Token does not belong to this session",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="USER_MISMATCH",
            details=details,
        )


class InvalidResetTokenError(AuthenticationError):
    """Raised when a password reset token is unknown, expired or already used."""

    def __init__(
        self,
        message: str = "Invalid or expired reset token",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="INVALID_RESET_TOKEN",
            details=details,
        )


# =============================================================================
# Authorization Errors (403 Forbidden)
# =============================================================================


class AuthorizationError(AppException):
    """Base class for authorization errors."""

    def __init__(
        self,
        message: str = "Access forbidden",
        error_code: str = "AUTHORIZATION_FAILED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=403,
            error_code=error_code,
            details=details,
        )


class PermissionDeniedError(AuthorizationError):
    """Raised when user lacks the permission code required for an action."""

    def __init__(
        self,
        message: str = "Insufficient permissions to perform this action",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="PERMISSION_DENIED",
            details=details,
        )


class MenuForbiddenError(AuthorizationError):
    """Raised when none of the user's roles grants the required menu flag."""

    def __init__(
        self,
        message: str = "Access to this menu is forbidden",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="MENU_FORBIDDEN",
            details=details,
        )


class MaintenanceModeError(AuthorizationError):
    """Raised for non-auth routes while maintenance mode is on."""

    def __init__(
        self,
        message: str = "System is under maintenance",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="MAINTENANCE_MODE",
            details=details,
        )


# =============================================================================
# Resource Errors
# =============================================================================


class ResourceError(AppException):
    """Base class for resource-related errors."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class NotFoundError(ResourceError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource: str = "Resource",
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if message is None:
            message = f"{resource} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class AlreadyExistsError(ResourceError):
    """Raised when attempting to create a resource that already exists."""

    def __init__(
        self,
        resource: str = "Resource",
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if message is None:
            message = f"{resource} already exists"
        super().__init__(
            message=message,
            status_code=409,
            error_code="ALREADY_EXISTS",
            details=details,
        )


class ConflictError(ResourceError):
    """Raised when there's a conflict with the current state of the resource."""

    def __init__(
        self,
        message: str = "Resource conflict",
        error_code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code,
            details=details,
        )


class SystemRoleImmutableError(ConflictError):
    """Raised when a system role is targeted by an update or delete."""

    def __init__(
        self,
        message: str = "System roles cannot be modified or deleted",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="SYSTEM_ROLE_IMMUTABLE",
            details=details,
        )


class MenuHasChildrenError(ConflictError):
    """Raised when deleting a menu that still has active children."""

    def __init__(
        self,
        message: str = "Menu has active children and cannot be deleted",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="MENU_HAS_CHILDREN",
            details=details,
        )


class RoleInUseError(ConflictError):
    """Raised when deleting a role that is still assigned to users."""

    def __init__(
        self,
        message: str = "Role is assigned to users and cannot be deleted",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="ROLE_IN_USE",
            details=details,
        )


# =============================================================================
# Transient / Internal Errors (500 Internal Server Error)
# =============================================================================


class TransientError(AppException):
    """Raised when the datastore stays unreachable after bounded retries."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable, please retry",
        error_code: str = "TRANSIENT_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code=error_code,
            details=details,
        )


class StorageError(TransientError):
    """Raised when a multi-step write fails and has been rolled back."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            details=details,
        )


class InternalError(AppException):
    """Raised on invariant violations that indicate a programming error."""

    def __init__(
        self,
        message: str = "Internal error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="INTERNAL_ERROR",
            details=details,
        )


# =============================================================================
# Rate Limiting Error (429 Too Many Requests)
# =============================================================================


class RateLimitExceededError(AppException):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if details is None:
            details = {}
        if retry_after:
            details["retry_after"] = retry_after

        super().__init__(
            message=message,
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details=details,
        )
