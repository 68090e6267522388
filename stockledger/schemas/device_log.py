from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .pagination import PageMeta


def ensure_iso_date(value: Any) -> Any:
    """Accept an ISO-8601 date or datetime string; blank means unset."""

    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("date_of_purchase must be an ISO-8601 date or datetime string")
    text = value.strip()
    if not text:
        return None
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError("date_of_purchase must be an ISO-8601 date or datetime") from exc
    return text


class DeviceLogOut(BaseModel):
    devicelog_id: str
    device_id: str
    mode: str
    qty: int
    price: Optional[float] = None
    vendor: Optional[str] = None
    date_of_purchase: str
    remarks: Optional[str] = None
    author_id: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class DeviceLogUpdate(BaseModel):
    """Provenance edits. Mode, quantity and device cannot be changed."""

    price: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = None
    date_of_purchase: Optional[str] = None
    remarks: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("date_of_purchase", mode="before")
    @classmethod
    def _validate_purchase_date(cls, value: Any) -> Any:
        return ensure_iso_date(value)


class DeviceLogPage(BaseModel):
    device_logs: list[DeviceLogOut]
    meta: PageMeta
