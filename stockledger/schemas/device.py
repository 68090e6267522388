from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .device_log import DeviceLogOut
from .pagination import PageMeta


class DeviceOut(BaseModel):
    device_id: str
    name: str
    type: str
    description: Optional[str] = None
    image: Optional[str] = None
    qty_available: int
    qty_purchased: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class DeviceWithHistory(DeviceOut):
    device_logs: list[DeviceLogOut] = Field(default_factory=list)


class DeviceLogWithDevice(DeviceLogOut):
    # None once the device was retired while this log still references it.
    device: Optional[DeviceOut] = None


class DeviceUpdate(BaseModel):
    """Descriptive edits only; stock levels move through movements."""

    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None

    model_config = {"extra": "forbid"}


class DevicePage(BaseModel):
    devices: list[DeviceOut]
    meta: PageMeta
