"""Device store: keyed access to device aggregates.

Quantity columns are only ever changed through ``apply_delta`` and
``delete_if_depleted``, both single SQL statements, so concurrent movements
on the same device cannot lose each other's updates.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, desc, func, or_, select, update
from sqlalchemy.orm import Session

from ..models.device import Device

DESCRIPTIVE_FIELDS = ("name", "type", "description", "image")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def list_devices(
    db: Session, *, page: int = 1, limit: int = 10, search: str | None = None
) -> tuple[list[Device], int]:
    """Return one page of devices (newest first) and the total match count."""

    stmt = select(Device)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(Device.name.ilike(pattern), Device.type.ilike(pattern), Device.description.ilike(pattern))
        )
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    stmt = stmt.order_by(desc(Device.created_at), Device.device_id).offset((page - 1) * limit).limit(limit)
    return list(db.execute(stmt).scalars().all()), total


def get_device(db: Session, device_id: str) -> Device | None:
    return db.get(Device, device_id, populate_existing=True)


def create_device(
    db: Session,
    *,
    name: str,
    type: str,
    qty: int,
    description: str | None = None,
    image: str | None = None,
) -> Device:
    """Insert a brand-new device whose opening stock is ``qty``."""

    now = _utcnow()
    device = Device(
        name=name.strip(),
        type=type.strip(),
        description=(description or "").strip() or None,
        image=(image or "").strip() or None,
        qty_available=qty,
        qty_purchased=qty,
        created_at=now,
        updated_at=now,
    )
    db.add(device)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(device)
    return device


def apply_delta(
    db: Session,
    device_id: str,
    *,
    available: int,
    purchased: int = 0,
    floor: int | None = None,
) -> Device | None:
    """Increment the device quantities in place.

    With ``floor`` set, the increment only happens if ``qty_available`` stays
    at or above it. Returns the device as it reads right after the increment,
    or ``None`` when no row was updated.
    """

    conditions = [Device.device_id == device_id]
    if floor is not None:
        conditions.append(Device.qty_available + available >= floor)
    stmt = (
        update(Device)
        .where(*conditions)
        .values(
            qty_available=Device.qty_available + available,
            qty_purchased=Device.qty_purchased + purchased,
            updated_at=_utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    if not result.rowcount:
        return None
    return get_device(db, device_id)


def delete_if_depleted(db: Session, device_id: str) -> bool:
    """Delete the device only if its available stock is zero or below."""

    stmt = delete(Device).where(Device.device_id == device_id, Device.qty_available <= 0)
    try:
        result = db.execute(stmt.execution_options(synchronize_session=False))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return bool(result.rowcount)


def update_device_details(db: Session, device: Device, payload: dict) -> Device:
    """Apply descriptive edits. Quantity keys in ``payload`` are ignored."""

    for key in DESCRIPTIVE_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, str):
            value = value.strip()
        if key in ("name", "type") and not value:
            raise ValueError(f"{key} cannot be blank")
        setattr(device, key, value or None)
    device.updated_at = _utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(device)
    return device


def delete_device(db: Session, device: Device) -> None:
    db.delete(device)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
