"""
System settings service.

This module provides:
- Typed validation of setting values on write (string, number, boolean, json)
- Typed getters with defaults for runtime policy
- Named accessors for the policy keys the access core reads at use time
- Settings administration (list, get, create, update)

Reads go through retry_transient: they are idempotent and run on every
login, so a dropped connection should not fail the request outright.
"""

import json
import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.database import retry_transient
from src.core.security import MIN_PASSWORD_LENGTH
from src.exceptions import AlreadyExistsError, NotFoundError, ValidationError
from src.models.enums import SettingType
from src.models.system_setting import SystemSetting
from src.repositories.system_setting_repository import SystemSettingRepository
from src.schemas.system import SettingCreate, SettingUpdate

logger = logging.getLogger(__name__)

# Policy keys and their defaults when the row is missing or unparsable
MAX_LOGIN_ATTEMPTS = "max_login_attempts"
ACCOUNT_LOCK_DURATION_MINUTES = "account_lock_duration_minutes"
PASSWORD_MIN_LENGTH = "password_min_length"
SESSION_TIMEOUT_HOURS = "session_timeout_hours"
MAINTENANCE_MODE = "maintenance_mode"
APP_NAME = "app_name"
APP_VERSION = "app_version"

DEFAULT_MAX_LOGIN_ATTEMPTS = 5
DEFAULT_LOCK_DURATION_MINUTES = 30
DEFAULT_SESSION_TIMEOUT_HOURS = 24

# Upper bounds applied when policy values are read
MAX_LOGIN_ATTEMPTS_LIMIT = 1000
MAX_LOCK_DURATION_MINUTES = 60 * 24 * 365
MAX_PASSWORD_MIN_LENGTH = 128
MAX_SESSION_TIMEOUT_HOURS = 24 * 365

_TRUE_VALUES = frozenset({"1", "t", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "f", "false", "no", "off"})


def parse_bool(value: str) -> bool:
    """
    Parse a boolean setting value.

    Accepts 1/0, t/f, true/false, yes/no and on/off, ignoring case.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def parse_number(value: str) -> float:
    """
    Parse a number setting value.

    Raises:
        ValueError: If the value is not a finite number
    """
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"number is not finite: {value!r}")
    return number


def validate_setting_value(value: str, setting_type: SettingType | str) -> None:
    """
    Check that a stored string parses as its declared type.

    Args:
        value: Raw setting value
        setting_type: Declared type

    Raises:
        ValidationError: If the value does not parse
    """
    setting_type = SettingType(setting_type)
    try:
        if setting_type == SettingType.NUMBER:
            parse_number(value)
        elif setting_type == SettingType.BOOLEAN:
            parse_bool(value)
        elif setting_type == SettingType.JSON:
            json.loads(value)
    except ValueError:
        raise ValidationError(
            f"Value is not a valid {setting_type.value}",
            error_code="INVALID_SETTING_VALUE",
            details={"setting_type": setting_type.value, "value": value},
        )


class SystemSettingService:
    """
    Service for system settings.

    All typed getters fall back to their default, with a warning, when the
    key is missing, inactive or holds a value that no longer parses.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize SystemSettingService.

        Args:
            session: Async database session
        """
        self.session = session
        self.setting_repo = SystemSettingRepository(session)

    # -------------------------------------------------------------------------
    # Typed getters
    # -------------------------------------------------------------------------

    async def _raw(self, key: str) -> str | None:
        setting = await retry_transient(
            lambda: self.setting_repo.get_by_key(key),
            session=self.session,
            description=f"setting {key}",
        )
        return setting.setting_value if setting else None

    async def get_str(self, key: str, default: str = "") -> str:
        """Get a string setting."""
        raw = await self._raw(key)
        return raw if raw is not None else default

    async def get_int(self, key: str, default: int) -> int:
        """
        Get a number setting as an int.

        Example:
            >>> await settings_service.get_int("max_login_attempts", 5)
            5
        """
        raw = await self._raw(key)
        if raw is None:
            return default
        try:
            return int(parse_number(raw))
        except (ValueError, OverflowError):
            logger.warning(f"Setting {key} has non-numeric value {raw!r}, using {default}")
            return default

    async def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a boolean setting."""
        raw = await self._raw(key)
        if raw is None:
            return default
        try:
            return parse_bool(raw)
        except ValueError:
            logger.warning(f"Setting {key} has non-boolean value {raw!r}, using {default}")
            return default

    # -------------------------------------------------------------------------
    # Named policy accessors
    # -------------------------------------------------------------------------

    async def _bounded_int(self, key: str, default: int, low: int, high: int) -> int:
        value = await self.get_int(key, default)
        if value > high:
            logger.warning(f"Setting {key}={value} exceeds {high}, using {high}")
            return high
        return max(low, value)

    async def max_login_attempts(self) -> int:
        """Failed logins before lockout (1 to 1000)."""
        return await self._bounded_int(
            MAX_LOGIN_ATTEMPTS, DEFAULT_MAX_LOGIN_ATTEMPTS, 1, MAX_LOGIN_ATTEMPTS_LIMIT
        )

    async def account_lock_duration_minutes(self) -> int:
        """Lockout window in minutes (one minute to one year)."""
        return await self._bounded_int(
            ACCOUNT_LOCK_DURATION_MINUTES,
            DEFAULT_LOCK_DURATION_MINUTES,
            1,
            MAX_LOCK_DURATION_MINUTES,
        )

    async def password_min_length(self) -> int:
        """Minimum password length, never below the hard floor of 8."""
        return await self._bounded_int(
            PASSWORD_MIN_LENGTH, MIN_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH, MAX_PASSWORD_MIN_LENGTH
        )

    async def session_timeout_hours(self) -> int:
        """Lifetime of new sessions in hours (one hour to one year)."""
        return await self._bounded_int(
            SESSION_TIMEOUT_HOURS, DEFAULT_SESSION_TIMEOUT_HOURS, 1, MAX_SESSION_TIMEOUT_HOURS
        )

    async def maintenance_mode(self) -> bool:
        """Whether non-auth routes are closed."""
        return await self.get_bool(MAINTENANCE_MODE, False)

    async def app_identity(self) -> tuple[str, str]:
        """(app_name, app_version) as configured at runtime."""
        return (
            await self.get_str(APP_NAME, settings.app_name),
            await self.get_str(APP_VERSION, settings.version),
        )

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def list_settings(self, public_only: bool = False) -> list[SystemSetting]:
        """List active settings, optionally only public ones."""
        return await retry_transient(
            lambda: self.setting_repo.list_settings(public_only=public_only),
            session=self.session,
            description="settings list",
        )

    async def get_setting(self, key: str) -> SystemSetting:
        """
        Get one active setting.

        Raises:
            NotFoundError: If the key is unknown
        """
        setting = await self.setting_repo.get_by_key(key)
        if not setting:
            raise NotFoundError("Setting")
        return setting

    async def create_setting(self, data: SettingCreate, created_by: int) -> SystemSetting:
        """
        Create a setting after validating its value against its type.

        Raises:
            AlreadyExistsError: If the key is taken (active or not)
            ValidationError: If the value does not parse as setting_type
        """
        if await self.setting_repo.get_by_key(data.setting_key, include_inactive=True):
            raise AlreadyExistsError("Setting")

        validate_setting_value(data.setting_value, data.setting_type)

        setting = await self.setting_repo.add(
            SystemSetting(
                setting_key=data.setting_key,
                setting_value=data.setting_value,
                setting_type=data.setting_type.value,
                description=data.description,
                is_public=data.is_public,
                created_by=created_by,
                updated_by=created_by,
            )
        )
        await self.session.commit()

        logger.info(f"Setting {setting.setting_key} created by user {created_by}")
        return setting

    async def update_setting(
        self, key: str, data: SettingUpdate, updated_by: int
    ) -> SystemSetting:
        """
        Update a setting's value or metadata.

        The resulting (value, type) pair is validated before anything is
        written.

        Raises:
            NotFoundError: If the key is unknown
            ValidationError: If the value does not parse as the type
        """
        setting = await self.get_setting(key)

        new_type = data.setting_type.value if data.setting_type else setting.setting_type
        new_value = (
            data.setting_value if data.setting_value is not None else setting.setting_value
        )
        validate_setting_value(new_value, new_type)

        setting.setting_type = new_type
        setting.setting_value = new_value
        if data.description is not None:
            setting.description = data.description
        if data.is_public is not None:
            setting.is_public = data.is_public
        setting.updated_by = updated_by

        setting = await self.setting_repo.update(setting)
        await self.session.commit()

        logger.info(f"Setting {key} updated by user {updated_by}")
        return setting
