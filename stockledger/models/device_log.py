"""SQLAlchemy model for the stock movement history."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, Float, Integer, Text

from ..db.session import Base


class MovementMode(str, Enum):
    INSERT = "insert"
    REMOVE = "remove"


def new_devicelog_id() -> str:
    return uuid4().hex


class DeviceLog(Base):
    """One stock movement against a device.

    ``device_id``, ``mode`` and ``qty`` never change after insert. ``device_id``
    is a plain reference rather than a foreign key: reversing the last log of a
    device retires the device while any other logs still point at it.
    """

    __tablename__ = "device_logs"
    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_device_logs_qty_positive"),
        CheckConstraint("mode IN ('insert', 'remove')", name="ck_device_logs_mode"),
    )

    devicelog_id = Column(Text, primary_key=True, default=new_devicelog_id)
    device_id = Column(Text, nullable=False, index=True)
    mode = Column(Text, nullable=False, default=MovementMode.INSERT.value)
    qty = Column(Integer, nullable=False)
    price = Column(Float, nullable=True)
    vendor = Column(Text, nullable=True)
    date_of_purchase = Column(Text, nullable=False)
    remarks = Column(Text, nullable=True)
    author_id = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["DeviceLog", "MovementMode", "new_devicelog_id"]
