"""SQLAlchemy model for device aggregates."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, Integer, Text

from ..db.session import Base


def new_device_id() -> str:
    return uuid4().hex


class Device(Base):
    """A distinct inventory item and its running stock totals.

    ``qty_available`` and ``qty_purchased`` are maintained by the ledger engine
    through atomic increments only. Descriptive columns may be edited freely.
    """

    __tablename__ = "devices"
    __table_args__ = (CheckConstraint("qty_purchased >= 0", name="ck_devices_qty_purchased_nonnegative"),)

    device_id = Column(Text, primary_key=True, default=new_device_id)
    name = Column(Text, nullable=False, index=True)
    type = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image = Column(Text, nullable=True)
    qty_available = Column(Integer, nullable=False, default=0)
    qty_purchased = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["Device", "new_device_id"]
