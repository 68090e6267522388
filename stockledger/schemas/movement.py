from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.exceptions import StepOutcome
from ..models.device_log import MovementMode
from .device_log import ensure_iso_date

# Largest quantity a single movement may carry; fits a signed 32-bit column.
MAX_MOVEMENT_QTY = 2**31 - 1

# Wire values used by the first generation of clients.
MODE_ALIASES = {
    "stock_insert": MovementMode.INSERT,
    "stock_remove": MovementMode.REMOVE,
}


class MovementIntent(BaseModel):
    """A request to move stock in or out.

    Leaving out ``device_id`` on an insert creates a new device from ``name``,
    ``type``, ``description`` and ``image``. A removal always needs a target.
    """

    device_id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    qty: int = Field(gt=0, le=MAX_MOVEMENT_QTY)
    mode: MovementMode = MovementMode.INSERT
    description: Optional[str] = None
    image: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = None
    date_of_purchase: Optional[str] = None
    remarks: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "USB-C dock",
                "type": "peripheral",
                "qty": 10,
                "mode": "insert",
                "price": 89.5,
                "vendor": "Acme Supply",
            }
        }
    }

    @field_validator("mode", mode="before")
    @classmethod
    def accept_legacy_modes(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower()
            return MODE_ALIASES.get(normalized, normalized)
        return value

    @field_validator("device_id", mode="before")
    @classmethod
    def blank_device_id_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date_of_purchase", mode="before")
    @classmethod
    def _validate_purchase_date(cls, value: Any) -> Any:
        return ensure_iso_date(value)


class MovementOut(BaseModel):
    device_id: str
    devicelog_id: str
    device_created: bool = False
    negative_stock: bool = False
    qty_available: Optional[int] = None
    qty_purchased: Optional[int] = None
    steps: list[StepOutcome] = Field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [step.message for step in self.steps]


class ReversalOut(BaseModel):
    devicelog_id: str
    device_id: str
    device_deleted: bool = False
    qty_available: Optional[int] = None
    qty_purchased: Optional[int] = None
    steps: list[StepOutcome] = Field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [step.message for step in self.steps]
