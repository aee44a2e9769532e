"""
Menu Pydantic schemas for API request/response handling.

This module provides:
- Menu create/update/reorder requests
- Flat menu responses
- Recursive tree node responses with access flags
"""

from datetime import datetime

from pydantic import BaseModel, Field


class MenuCreate(BaseModel):
    """Schema for creating a menu node."""

    menu_name: str = Field(min_length=1, max_length=100)
    menu_code: str = Field(min_length=1, max_length=50)
    parent_id: int | None = None
    icon: str | None = Field(default=None, max_length=100)
    route: str | None = Field(default=None, max_length=255)
    menu_order: int = Field(default=0, ge=0)
    is_visible: bool = True


class MenuUpdate(BaseModel):
    """
    Schema for updating a menu node.

    Only fields present in the request are applied; sending
    "parent_id": null explicitly moves the node to the root.
    """

    menu_name: str | None = Field(default=None, min_length=1, max_length=100)
    menu_code: str | None = Field(default=None, min_length=1, max_length=50)
    parent_id: int | None = None
    icon: str | None = Field(default=None, max_length=100)
    route: str | None = Field(default=None, max_length=255)
    menu_order: int | None = Field(default=None, ge=0)
    is_visible: bool | None = None


class MenuReorderItem(BaseModel):
    """New display order for one menu."""

    id: int
    menu_order: int = Field(ge=0)


class MenuReorderRequest(BaseModel):
    """Batch of display order changes."""

    items: list[MenuReorderItem] = Field(min_length=1)


class MenuResponse(BaseModel):
    """Flat menu row."""

    id: int
    menu_name: str
    menu_code: str
    parent_id: int | None = None
    icon: str | None = None
    route: str | None = None
    menu_order: int
    is_visible: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccessFlagsResponse(BaseModel):
    """Merged operation flags on a menu."""

    view: bool = False
    create: bool = False
    modify: bool = False
    delete: bool = False
    upload: bool = False
    download: bool = False

    model_config = {"from_attributes": True}


class MenuNodeResponse(BaseModel):
    """Node of a rendered menu forest."""

    id: int
    menu_name: str
    menu_code: str
    parent_id: int | None = None
    icon: str | None = None
    route: str | None = None
    menu_order: int
    access: AccessFlagsResponse | None = None
    children: list["MenuNodeResponse"] = Field(default_factory=list)

    model_config = {"from_attributes": True}
