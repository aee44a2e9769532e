from slowapi import Limiter
from slowapi.util import get_remote_address

from src.core.config import settings


# ============================================================================
# Rate Limiter Setup
# ============================================================================
# memory:// keeps counters per process; point RATE_LIMIT_STORAGE_URI at
# redis:// (install the redis extra) to share them across workers
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[settings.rate_limit_default],  # Global rate limit
    enabled=settings.rate_limit_enabled,
)
