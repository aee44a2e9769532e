"""
Security utilities for authentication and authorization.

This module provides:
- Password hashing with Argon2id
- Password policy validation (length, character classes)
- Signed bearer token minting and parsing (HS256, access and refresh)
- SHA-256 hashing of opaque secrets (session ids, reset tokens)

Nothing here touches the database: revocation of a token that parses is the
job of the session store.
"""

import hashlib
import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import (
    InvalidHashError,
    VerificationError,
    VerifyMismatchError,
)
from jose import JWTError, jwt

from src.core import clock
from src.core.config import settings
from src.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Password Hashing with Argon2id
# =============================================================================

pwd_hasher = PasswordHasher(
    time_cost=settings.argon2_time_cost,
    memory_cost=settings.argon2_memory_cost,
    parallelism=settings.argon2_parallelism,
    hash_len=32,  # 32-byte output
    salt_len=16,  # 16-byte salt
)

# Verified against when the username is unknown so both paths cost one hash
_DUMMY_PASSWORD_HASH = pwd_hasher.hash(secrets.token_hex(16))


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password to hash

    Returns:
        Argon2id hash string (includes algorithm, parameters, salt, and hash)

    Example:
        >>> hashed = hash_password("my_secure_password")
        >>> # Returns: $argon2id$v=19$m=65536,t=2,p=4$...
    """
    return pwd_hasher.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against an Argon2id hash.

    Args:
        password: Plain text password to verify
        hashed_password: Argon2id hash to verify against

    Returns:
        True if password matches hash, False otherwise

    Example:
        >>> hashed = hash_password("my_password")
        >>> verify_password("my_password", hashed)
        True
        >>> verify_password("wrong_password", hashed)
        False
    """
    try:
        pwd_hasher.verify(hashed_password, password)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def dummy_verify_password(password: str) -> None:
    """Spend one Argon2id verification on a throwaway hash."""
    verify_password(password, _DUMMY_PASSWORD_HASH)


MIN_PASSWORD_LENGTH = 8
PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
_SPECIAL_PATTERN = re.compile("[" + re.escape(PASSWORD_SPECIAL_CHARACTERS) + "]")


def validate_password_strength(
    password: str,
    min_length: int = MIN_PASSWORD_LENGTH,
) -> None:
    """
    Validate password strength against security requirements.

    Requirements:
    - At least ``min_length`` characters (never fewer than 8)
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 digit
    - At least 1 special character from PASSWORD_SPECIAL_CHARACTERS

    Args:
        password: Password to validate
        min_length: Minimum length from the password_min_length setting

    Raises:
        WeakPasswordError: With the first unmet requirement as message

    Example:
        >>> validate_password_strength("weak")
        Traceback (most recent call last):
        WeakPasswordError: Password must be at least 8 characters long
        >>> validate_password_strength("Passw0rd!")
    """
    min_length = max(MIN_PASSWORD_LENGTH, min_length)

    if len(password) < min_length:
        raise WeakPasswordError(
            f"Password must be at least {min_length} characters long",
            details={"min_length": min_length},
        )

    if not re.search(r"[A-Z]", password):
        raise WeakPasswordError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise WeakPasswordError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise WeakPasswordError("Password must contain at least one digit")

    if not _SPECIAL_PATTERN.search(password):
        raise WeakPasswordError("Password must contain at least one special character")


# =============================================================================
# JWT Token Management
# =============================================================================
# Access tokens carry user_id, username, email, iat, exp plus the session id
# (sid). Refresh tokens carry the same claims with type "refresh" and live
# seven times as long. A token is only authoritative once the session store
# confirms its sid maps to an active session.
# =============================================================================

ALGORITHM = "HS256"

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

_REQUIRED_CLAIMS = ("user_id", "username", "email", "iat", "exp", "sid", "type")


@dataclass(frozen=True)
class TokenClaims:
    """
    Parsed and verified bearer token claims.

    Attributes:
        user_id: Principal id
        username: Principal username
        email: Principal email
        session_id: Opaque session id shared by the access/refresh pair
        token_type: "access" or "refresh"
        issued_at: Issue time (UTC)
        expires_at: Expiry time (UTC)
        jti: Unique token id
    """

    user_id: int
    username: str
    email: str
    session_id: str
    token_type: str
    issued_at: datetime
    expires_at: datetime
    jti: str


def new_session_id() -> str:
    """Generate a fresh opaque session id for a login."""
    return uuid.uuid4().hex


def create_token(
    principal: dict[str, Any],
    session_id: str,
    token_type: str,
    ttl: timedelta,
) -> str:
    """
    Mint a signed bearer token.

    Args:
        principal: Must contain user_id, username and email
        session_id: Session id the token is bound to
        token_type: TOKEN_TYPE_ACCESS or TOKEN_TYPE_REFRESH
        ttl: Token lifetime

    Returns:
        Encoded JWT token string
    """
    now = clock.utc_now()
    to_encode = {
        "user_id": int(principal["user_id"]),
        "username": principal["username"],
        "email": principal["email"],
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "sid": session_id,
        "type": token_type,
        "jti": str(uuid.uuid4()),  # Unique JWT ID to ensure token uniqueness
    }

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(principal: dict[str, Any], session_id: str) -> str:
    """
    Create a JWT access token with the configured lifetime.

    Example:
        >>> token = create_access_token(
        ...     {"user_id": 1, "username": "alice", "email": "alice@example.com"},
        ...     session_id=new_session_id(),
        ... )
    """
    return create_token(
        principal,
        session_id,
        TOKEN_TYPE_ACCESS,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(principal: dict[str, Any], session_id: str) -> str:
    """Create a JWT refresh token living 7x the access lifetime."""
    return create_token(
        principal,
        session_id,
        TOKEN_TYPE_REFRESH,
        timedelta(minutes=settings.refresh_token_expire_minutes),
    )


def decode_token(token: str, expected_type: str | None = None) -> TokenClaims:
    """
    Parse and verify a bearer token.

    Verification order decides which rejection the caller sees:
    1. Structure and header (TokenMalformedError)
    2. HMAC-SHA-256 signature (TokenSignatureError)
    3. Expiry with clock-skew tolerance (TokenExpiredError)
    4. Required claims and token type (TokenMalformedError)

    Args:
        token: JWT token string to decode
        expected_type: If given, the token's "type" claim must match

    Returns:
        TokenClaims

    Raises:
        TokenMalformedError: Not a JWT, wrong algorithm, missing claims, wrong type
        TokenSignatureError: Signature does not verify
        TokenExpiredError: exp is further in the past than the skew tolerance
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        logger.warning(f"JWT header decode error: {e}")
        raise TokenMalformedError()

    if header.get("alg") != ALGORITHM:
        logger.warning(f"JWT rejected: unexpected algorithm {header.get('alg')!r}")
        raise TokenMalformedError("Unsupported token algorithm")

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
            # Expiry is checked below against clock.utc_now() with skew
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError as e:
        logger.warning(f"JWT signature error: {e}")
        raise TokenSignatureError()

    missing = [claim for claim in _REQUIRED_CLAIMS if claim not in payload]
    if missing:
        raise TokenMalformedError(
            "Token is missing required claims", details={"missing": missing}
        )

    try:
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=UTC)
        user_id = int(payload["user_id"])
    except (TypeError, ValueError, OverflowError):
        raise TokenMalformedError("Token claims have invalid types")

    skew = timedelta(seconds=settings.token_clock_skew_seconds)
    if expires_at + skew <= clock.utc_now():
        raise TokenExpiredError()

    if expected_type is not None and payload["type"] != expected_type:
        raise TokenMalformedError(f"Token is not an {expected_type} token")

    return TokenClaims(
        user_id=user_id,
        username=str(payload["username"]),
        email=str(payload["email"]),
        session_id=str(payload["sid"]),
        token_type=str(payload["type"]),
        issued_at=issued_at,
        expires_at=expires_at,
        jti=str(payload.get("jti", "")),
    )


# =============================================================================
# Opaque Secret Hashing
# =============================================================================
# Session ids and password reset tokens are stored as SHA-256 hashes so a
# database read does not yield usable credentials.
# =============================================================================


def hash_opaque_token(token: str) -> str:
    """
    Hash an opaque token using SHA-256.

    Args:
        token: Session id or reset token

    Returns:
        SHA-256 hash of the token (hex string)
    """
    return hashlib.sha256(token.encode()).hexdigest()


def generate_reset_token() -> str:
    """Generate a random 32-byte reset token as a hex string."""
    return secrets.token_hex(32)
