"""Device log store: append, look up and remove movement records.

Only the provenance columns of a stored log are ever updated; the quantity,
mode and device reference are fixed at insert.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.orm import Session

from ..models.device_log import DeviceLog

PROVENANCE_FIELDS = ("price", "vendor", "date_of_purchase", "remarks")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def list_device_logs(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    device_id: str | None = None,
) -> tuple[list[DeviceLog], int]:
    stmt = select(DeviceLog)
    if device_id:
        stmt = stmt.where(DeviceLog.device_id == device_id)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(or_(DeviceLog.vendor.ilike(pattern), DeviceLog.remarks.ilike(pattern)))
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    stmt = stmt.order_by(desc(DeviceLog.created_at), DeviceLog.devicelog_id).offset((page - 1) * limit).limit(limit)
    return list(db.execute(stmt).scalars().all()), total


def list_logs_for_device(db: Session, device_id: str) -> list[DeviceLog]:
    """Full movement history of one device, oldest first."""

    stmt = (
        select(DeviceLog)
        .where(DeviceLog.device_id == device_id)
        .order_by(DeviceLog.created_at, DeviceLog.devicelog_id)
    )
    return list(db.execute(stmt).scalars().all())


def get_device_log(db: Session, devicelog_id: str) -> DeviceLog | None:
    return db.get(DeviceLog, devicelog_id, populate_existing=True)


def create_device_log(
    db: Session,
    *,
    device_id: str,
    mode: str,
    qty: int,
    author_id: str,
    price: float | None = None,
    vendor: str | None = None,
    date_of_purchase: str | None = None,
    remarks: str | None = None,
) -> DeviceLog:
    now = _utcnow()
    log = DeviceLog(
        device_id=device_id,
        mode=mode,
        qty=qty,
        author_id=author_id,
        price=price,
        vendor=(vendor or "").strip() or None,
        date_of_purchase=date_of_purchase or now,
        remarks=(remarks or "").strip() or None,
        created_at=now,
        updated_at=now,
    )
    db.add(log)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(log)
    return log


def pop_device_log(db: Session, devicelog_id: str) -> DeviceLog | None:
    """Delete a log and hand back a detached copy of what was removed.

    Returns ``None`` when the log does not exist or a concurrent caller
    removed it first, so each log is reversed at most once.
    """

    existing = get_device_log(db, devicelog_id)
    if existing is None:
        return None
    snapshot = {column.name: getattr(existing, column.name) for column in DeviceLog.__table__.columns}
    db.expunge(existing)

    stmt = delete(DeviceLog).where(DeviceLog.devicelog_id == devicelog_id)
    try:
        result = db.execute(stmt.execution_options(synchronize_session=False))
        db.commit()
    except Exception:
        db.rollback()
        raise
    if not result.rowcount:
        return None
    return DeviceLog(**snapshot)


def update_provenance(db: Session, log: DeviceLog, payload: dict) -> DeviceLog:
    """Edit price, vendor, purchase date or remarks; other keys are ignored."""

    for key in PROVENANCE_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if isinstance(value, str):
            value = value.strip() or None
        if key == "date_of_purchase" and value is None:
            continue
        setattr(log, key, value)
    log.updated_at = _utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(log)
    return log
