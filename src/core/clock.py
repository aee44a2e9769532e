"""
Single source of "now" for the access core.

Lockout windows, token expiry and session expiry all compare against this
function. Tests move time forward by patching ``src.core.clock.utc_now``;
callers must therefore look it up through the module
(``clock.utc_now()``) rather than importing the function directly.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)
