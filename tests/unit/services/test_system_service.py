"""
Unit tests for the system settings service.

Tests cover:
- Boolean parsing and value validation per declared type
- Typed getters and their fallbacks
- Policy accessors and their floors
- Settings administration
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import AlreadyExistsError, NotFoundError, ValidationError
from src.models.enums import SettingType
from src.schemas.system import SettingCreate, SettingUpdate
from src.services.system_service import (
    SystemSettingService,
    parse_bool,
    validate_setting_value,
)


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "t", "TRUE", "yes", " on "])
    def test_true_values(self, value: str):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "f", "False", "no", "off"])
    def test_false_values(self, value: str):
        assert parse_bool(value) is False

    def test_rejects_other_values(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestValidateSettingValue:
    @pytest.mark.parametrize(
        "value, setting_type",
        [
            ("anything", SettingType.STRING),
            ("12.5", SettingType.NUMBER),
            ("yes", SettingType.BOOLEAN),
            ('{"a": [1, 2]}', SettingType.JSON),
        ],
    )
    def test_valid_values(self, value: str, setting_type: SettingType):
        validate_setting_value(value, setting_type)

    @pytest.mark.parametrize(
        "value, setting_type",
        [
            ("ten", SettingType.NUMBER),
            ("maybe", SettingType.BOOLEAN),
            ("{not json", SettingType.JSON),
            ("inf", SettingType.NUMBER),
            ("nan", SettingType.NUMBER),
            ("1e400", SettingType.NUMBER),
        ],
    )
    def test_invalid_values(self, value: str, setting_type: SettingType):
        with pytest.raises(ValidationError) as exc_info:
            validate_setting_value(value, setting_type)

        assert exc_info.value.error_code == "INVALID_SETTING_VALUE"


class TestPolicyAccessors:
    @pytest.mark.asyncio
    async def test_seeded_defaults(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)

        assert await service.max_login_attempts() == 5
        assert await service.account_lock_duration_minutes() == 30
        assert await service.password_min_length() == 8
        assert await service.session_timeout_hours() == 24
        assert await service.maintenance_mode() is False

    @pytest.mark.asyncio
    async def test_missing_key_uses_default(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)

        assert await service.get_int("no_such_key", 42) == 42
        assert await service.get_bool("no_such_key", True) is True
        assert await service.get_str("no_such_key", "x") == "x"

    @pytest.mark.asyncio
    async def test_unparsable_value_uses_default(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        setting = await service.get_setting("max_login_attempts")
        setting.setting_value = "many"
        await db_session.commit()

        assert await service.max_login_attempts() == 5

    @pytest.mark.asyncio
    async def test_password_min_length_never_below_floor(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        await service.update_setting("password_min_length", SettingUpdate(setting_value="4"), 1)

        assert await service.password_min_length() == 8

    @pytest.mark.asyncio
    async def test_password_min_length_can_be_raised(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        await service.update_setting("password_min_length", SettingUpdate(setting_value="12"), 1)

        assert await service.password_min_length() == 12

    @pytest.mark.asyncio
    async def test_non_finite_stored_value_uses_default(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        setting = await service.get_setting("max_login_attempts")
        setting.setting_value = "inf"
        await db_session.commit()

        assert await service.max_login_attempts() == 5

    @pytest.mark.asyncio
    async def test_session_timeout_is_capped(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        await service.update_setting("session_timeout_hours", SettingUpdate(setting_value="1e12"), 1)

        assert await service.session_timeout_hours() == 24 * 365

    @pytest.mark.asyncio
    async def test_lock_duration_is_capped(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        await service.update_setting(
            "account_lock_duration_minutes", SettingUpdate(setting_value="99999999999"), 1
        )

        assert await service.account_lock_duration_minutes() == 60 * 24 * 365

    @pytest.mark.asyncio
    async def test_login_attempts_are_capped(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        await service.update_setting("max_login_attempts", SettingUpdate(setting_value="1e300"), 1)

        assert await service.max_login_attempts() == 1000


class TestSettingsAdministration:
    @pytest.mark.asyncio
    async def test_public_listing(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)

        keys = [s.setting_key for s in await service.list_settings(public_only=True)]

        assert keys == ["app_name", "app_version", "maintenance_mode"]

    @pytest.mark.asyncio
    async def test_create_validates_type(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)

        with pytest.raises(ValidationError):
            await service.create_setting(
                SettingCreate(
                    setting_key="report_limit",
                    setting_value="lots",
                    setting_type=SettingType.NUMBER,
                ),
                created_by=1,
            )

    @pytest.mark.asyncio
    async def test_create_and_duplicate(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)
        data = SettingCreate(
            setting_key="report_limit", setting_value="100", setting_type=SettingType.NUMBER
        )

        setting = await service.create_setting(data, created_by=1)
        assert setting.setting_type == "number"
        assert await service.get_int("report_limit", 0) == 100

        with pytest.raises(AlreadyExistsError):
            await service.create_setting(data, created_by=1)

    @pytest.mark.asyncio
    async def test_update_rejects_value_not_matching_type(self, db_session: AsyncSession):
        service = SystemSettingService(db_session)

        with pytest.raises(ValidationError):
            await service.update_setting(
                "maintenance_mode", SettingUpdate(setting_value="sometimes"), 1
            )

        assert await service.maintenance_mode() is False

    @pytest.mark.asyncio
    async def test_unknown_key(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await SystemSettingService(db_session).get_setting("nope")
