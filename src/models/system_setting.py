"""
SystemSetting model.

Runtime policy (lockout thresholds, session timeout, maintenance mode,
password length) lives here and is read at use time, so operators can
change it without restarting the process.
"""

from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base
from src.models.mixins import ActiveFlagMixin, AuditFieldsMixin, TimestampMixin


class SystemSetting(Base, TimestampMixin, ActiveFlagMixin, AuditFieldsMixin):
    """
    Typed key/value setting.

    Attributes:
        setting_key: Unique key (e.g. "max_login_attempts")
        setting_value: Value as a string, validated against setting_type on write
        setting_type: One of SettingType ("string", "number", "boolean", "json")
        description: Optional description
        is_public: Public settings are readable without authentication
    """

    __tablename__ = "system_settings"

    setting_key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    setting_value: Mapped[str] = mapped_column(Text, nullable=False)
    setting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="string")
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"SystemSetting(key={self.setting_key}, type={self.setting_type})"
