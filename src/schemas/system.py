"""
System settings and activity log Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.enums import SettingType


class SettingCreate(BaseModel):
    """
    Schema for creating a system setting.

    The value is validated against setting_type by the settings service.
    """

    setting_key: str = Field(min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    setting_value: str
    setting_type: SettingType = SettingType.STRING
    description: str | None = Field(default=None, max_length=255)
    is_public: bool = False


class SettingUpdate(BaseModel):
    """Schema for updating a system setting's value or metadata."""

    setting_value: str | None = None
    setting_type: SettingType | None = None
    description: str | None = Field(default=None, max_length=255)
    is_public: bool | None = None


class SettingResponse(BaseModel):
    """System setting as stored."""

    id: int
    setting_key: str
    setting_value: str
    setting_type: str
    description: str | None = None
    is_public: bool
    is_active: bool
    updated_at: datetime

    model_config = {"from_attributes": True}


class ActivityLogResponse(BaseModel):
    """Recorded user activity."""

    id: int
    user_id: int | None = None
    session_id: int | None = None
    action: str
    target_type: str | None = None
    target_id: str | None = None
    menu_name: str | None = None
    description: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_payload: dict[str, Any] | None = None
    response_status: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
