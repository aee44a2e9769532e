"""
Core configuration module using Pydantic Settings.

This module defines all process-level settings loaded from environment variables.
All configuration must go through this Settings class - NO hardcoded values.

Runtime policy (lockout thresholds, session timeout, maintenance mode) is NOT
configured here: it lives in the system_settings table and is read at use time
through SystemSettingsService.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are loaded from .env file or environment variables.
    Settings are validated using Pydantic with type hints and are treated
    as immutable once the module-level instance is built.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = Field(default="Back-Office Access Core")
    version: str = Field(default="1.0.0")
    description: str = Field(
        default="Authentication, session and role/menu authorization core"
    )
    environment: Literal["development", "staging", "production"] = Field(default="development")
    debug: bool = Field(default=False)

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = Field(default=False)

    # -------------------------------------------------------------------------
    # Security Settings
    # -------------------------------------------------------------------------
    secret_key: str = Field(
        ...,
        min_length=32,
        description="Secret key for JWT signing. Must be at least 32 characters."
    )

    # JWT Token Configuration (refresh lifetime is always 7x the access lifetime)
    access_token_expire_minutes: int = Field(default=60, ge=1, le=1440)
    token_clock_skew_seconds: int = Field(default=60, ge=0, le=300)

    # Argon2id Password Hashing Configuration
    argon2_time_cost: int = Field(default=2, ge=1, le=10)
    argon2_memory_cost: int = Field(default=65536, ge=8)  # 64 MB
    argon2_parallelism: int = Field(default=4, ge=1, le=16)

    # Password lifecycle
    password_history_size: int = Field(default=5, ge=1, le=24)
    password_reset_token_expire_minutes: int = Field(default=60, ge=5, le=1440)

    # -------------------------------------------------------------------------
    # Database Configuration
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite+aiosqlite:///./backoffice.db",
        description="SQLAlchemy async URL (postgresql+asyncpg:// or sqlite+aiosqlite://)"
    )
    database_create_schema: bool = Field(
        default=False,
        description="Create tables and seed reference data on startup"
    )

    # Connection Pool Settings (ignored for SQLite)
    db_pool_size: int = Field(default=5, ge=1, le=50)
    db_max_overflow: int = Field(default=10, ge=0, le=100)
    db_pool_recycle: int = Field(default=3600, ge=300)  # Seconds
    db_pool_pre_ping: bool = Field(default=True)
    db_pool_timeout: int = Field(default=30, ge=1)

    # Bounded retry for idempotent reads on transient datastore failures
    transient_retry_attempts: int = Field(default=3, ge=1, le=10)
    transient_retry_base_delay: float = Field(default=0.05, ge=0)

    # -------------------------------------------------------------------------
    # CORS Settings
    # -------------------------------------------------------------------------
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="Comma-separated list of allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(default=True)

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_storage_uri: str = Field(
        default="memory://",
        description="slowapi storage backend, e.g. memory:// or redis://host:6379/0"
    )
    rate_limit_default: str = Field(default="1000/hour")
    rate_limit_login: str = Field(default="10/minute")
    rate_limit_password_change: str = Field(default="5/hour")
    rate_limit_token_refresh: str = Field(default="30/hour")

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")
    log_file_enabled: bool = Field(default=False)
    log_file_path: str = Field(default="logs/app.log")
    log_file_max_bytes: int = Field(default=10485760)  # 10 MB
    log_file_backup_count: int = Field(default=5)

    # -------------------------------------------------------------------------
    # Activity Recorder
    # -------------------------------------------------------------------------
    activity_enabled: bool = Field(default=True)
    activity_buffer_size: int = Field(default=1000, ge=1)
    activity_batch_size: int = Field(default=100, ge=1)
    activity_flush_interval_seconds: float = Field(default=0.5, gt=0)
    activity_drain_timeout_seconds: float = Field(default=5.0, gt=0)
    activity_fallback_path: str = Field(default="logs/activity_fallback.jsonl")

    @field_validator("database_url")
    @classmethod
    def check_async_driver(cls, v: str) -> str:
        """Reject synchronous driver URLs; the engine is always async."""
        if not (v.startswith("postgresql+asyncpg://") or v.startswith("sqlite+aiosqlite://")):
            raise ValueError(
                "database_url must use postgresql+asyncpg:// or sqlite+aiosqlite://"
            )
        return v

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured datastore is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get parsed CORS origins as list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def refresh_token_expire_minutes(self) -> int:
        """Refresh tokens live seven times as long as access tokens."""
        return self.access_token_expire_minutes * 7


# Singleton instance of settings
# Import this instance throughout the application
settings = Settings()
