"""Ledger engine: keeps device stock totals in step with the movement log.

Recording a movement touches two rows that are committed separately: the
device aggregate (created, or incremented in place) and the new log entry.
Reversing a movement deletes the log entry, applies the inverse increment and
retires the device when its available stock ends at zero or below. No step is
rolled back when a later one fails; instead each error carries the list of
steps that did and did not land so an operator can reconcile by hand.

Authorization is the caller's job. Nothing in here checks capabilities.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AggregateWriteFailed,
    CascadeDeleteFailed,
    InvalidRequest,
    LogWriteFailed,
    NotFound,
    StepOutcome,
)
from ..crud import device_logs as log_store
from ..crud import devices as device_store
from ..models.device_log import DeviceLog, MovementMode
from ..schemas.device import DeviceLogWithDevice, DeviceOut, DeviceWithHistory
from ..schemas.device_log import DeviceLogOut
from ..schemas.movement import MovementIntent, MovementOut, ReversalOut

logger = logging.getLogger(__name__)

STEP_DEVICE = "device"
STEP_DEVICE_LOG = "device_log"
STEP_CASCADE = "device_cascade"


def _ok(step: str, message: str) -> StepOutcome:
    return StepOutcome(step=step, ok=True, message=message)


def _failed(step: str, message: str) -> StepOutcome:
    return StepOutcome(step=step, ok=False, message=message)


def movement_delta(mode: MovementMode | str, qty: int) -> tuple[int, int]:
    """Return ``(available, purchased)`` increments for recording a movement."""

    if MovementMode(mode) is MovementMode.INSERT:
        return qty, qty
    return -qty, 0


def reversal_delta(mode: MovementMode | str, qty: int) -> tuple[int, int]:
    """Increments that exactly cancel ``movement_delta`` for the same log."""

    available, purchased = movement_delta(mode, qty)
    return -available, -purchased


def _log_extra(**data) -> dict:
    return {"extra_data": {key: value for key, value in data.items() if value is not None}}


# ---------- recording ----------


def _create_device_for(db: Session, intent: MovementIntent):
    name = (intent.name or "").strip()
    kind = (intent.type or "").strip()
    if not name or not kind:
        raise InvalidRequest("name and type are required to create a new device")
    try:
        return device_store.create_device(
            db,
            name=name,
            type=kind,
            qty=intent.qty,
            description=intent.description,
            image=intent.image,
        )
    except SQLAlchemyError as exc:
        logger.error("ledger.device.create_failed", exc_info=True, extra=_log_extra(name=name))
        raise AggregateWriteFailed(
            "Error creating device",
            steps=[_failed(STEP_DEVICE, "Error creating device"), _failed(STEP_DEVICE_LOG, "Device log not created")],
        ) from exc


def _increment_device_for(db: Session, intent: MovementIntent, mode: MovementMode):
    device_id = intent.device_id
    available, purchased = movement_delta(mode, intent.qty)
    # A floor is only enforced when negative stock has been switched off.
    floor = 0 if mode is MovementMode.REMOVE and not settings.ALLOW_NEGATIVE_STOCK else None
    try:
        device = device_store.apply_delta(db, device_id, available=available, purchased=purchased, floor=floor)
    except SQLAlchemyError as exc:
        logger.error("ledger.device.update_failed", exc_info=True, extra=_log_extra(device_id=device_id))
        raise AggregateWriteFailed(
            "Error updating device",
            steps=[_failed(STEP_DEVICE, "Error updating device"), _failed(STEP_DEVICE_LOG, "Device log not created")],
            device_id=device_id,
        ) from exc
    if device is not None:
        return device

    current = device_store.get_device(db, device_id)
    if current is None:
        raise NotFound(
            f"Device {device_id} not found",
            steps=[_failed(STEP_DEVICE, "Device not found")],
            device_id=device_id,
        )
    raise InvalidRequest(
        f"Insufficient stock: requested {intent.qty}, available {current.qty_available}",
        steps=[_failed(STEP_DEVICE, "Insufficient stock")],
        device_id=device_id,
    )


def record_movement(db: Session, intent: MovementIntent, *, actor: str) -> MovementOut:
    """Apply one stock movement and append it to the log.

    Raises ``InvalidRequest`` before touching anything when a removal has no
    target device. ``LogWriteFailed`` means the aggregate change is already
    committed and the log row is missing.
    """

    mode = MovementMode(intent.mode)
    if not actor:
        raise InvalidRequest("an acting principal is required to record a movement")
    if intent.device_id is None and mode is MovementMode.REMOVE:
        raise InvalidRequest("Device ID is required for stock removal")

    steps: list[StepOutcome] = []
    if intent.device_id is None:
        device = _create_device_for(db, intent)
        steps.append(_ok(STEP_DEVICE, "Device created successfully"))
    else:
        device = _increment_device_for(db, intent, mode)
        steps.append(_ok(STEP_DEVICE, "Device updated successfully"))

    device_id = device.device_id
    qty_available, qty_purchased = device.qty_available, device.qty_purchased
    negative = qty_available < 0
    if negative:
        logger.warning(
            "ledger.stock.negative",
            extra=_log_extra(device_id=device_id, qty_available=qty_available, qty=intent.qty),
        )

    try:
        log = log_store.create_device_log(
            db,
            device_id=device_id,
            mode=mode.value,
            qty=intent.qty,
            author_id=actor,
            price=intent.price,
            vendor=intent.vendor,
            date_of_purchase=intent.date_of_purchase,
            remarks=intent.remarks,
        )
    except SQLAlchemyError as exc:
        steps.append(_failed(STEP_DEVICE_LOG, "Error creating device log"))
        logger.error(
            "ledger.movement.partial",
            exc_info=True,
            extra=_log_extra(device_id=device_id, mode=mode.value, qty=intent.qty, author_id=actor),
        )
        raise LogWriteFailed(
            "Device log could not be written; the device change was kept",
            steps=steps,
            device_id=device_id,
        ) from exc
    steps.append(_ok(STEP_DEVICE_LOG, "Device log created successfully"))

    logger.info(
        "ledger.movement.recorded",
        extra=_log_extra(
            device_id=device_id,
            devicelog_id=log.devicelog_id,
            mode=mode.value,
            qty=intent.qty,
            author_id=actor,
        ),
    )
    return MovementOut(
        device_id=device_id,
        devicelog_id=log.devicelog_id,
        device_created=intent.device_id is None,
        negative_stock=negative,
        qty_available=qty_available,
        qty_purchased=qty_purchased,
        steps=steps,
    )


# ---------- reversal ----------


def reverse_movement(db: Session, devicelog_id: str) -> ReversalOut:
    """Delete a log entry and undo its effect on the device.

    When the device ends with ``qty_available <= 0`` it is deleted as well.
    """

    try:
        log = log_store.pop_device_log(db, devicelog_id)
    except SQLAlchemyError as exc:
        logger.error("ledger.log.delete_failed", exc_info=True, extra=_log_extra(devicelog_id=devicelog_id))
        raise LogWriteFailed(
            "Error deleting device log",
            steps=[_failed(STEP_DEVICE_LOG, "Error deleting device log"), _failed(STEP_DEVICE, "Device not updated")],
            devicelog_id=devicelog_id,
        ) from exc
    if log is None:
        raise NotFound(
            f"Device log {devicelog_id} not found",
            steps=[_failed(STEP_DEVICE_LOG, "Device log not found")],
            devicelog_id=devicelog_id,
        )
    steps = [_ok(STEP_DEVICE_LOG, "Device log deleted successfully")]
    device_id = log.device_id

    available, purchased = reversal_delta(log.mode, log.qty)
    try:
        device = device_store.apply_delta(db, device_id, available=available, purchased=purchased)
    except SQLAlchemyError as exc:
        steps.append(_failed(STEP_DEVICE, "Error updating device"))
        logger.error(
            "ledger.reversal.partial",
            exc_info=True,
            extra=_log_extra(device_id=device_id, devicelog_id=devicelog_id, mode=log.mode, qty=log.qty),
        )
        raise AggregateWriteFailed(
            "Device log deleted but the device could not be updated",
            steps=steps,
            device_id=device_id,
            devicelog_id=devicelog_id,
        ) from exc
    if device is None:
        steps.append(_failed(STEP_DEVICE, "Device not found"))
        logger.warning(
            "ledger.reversal.orphaned_log",
            extra=_log_extra(device_id=device_id, devicelog_id=devicelog_id),
        )
        raise AggregateWriteFailed(
            "Device log deleted but its device no longer exists",
            steps=steps,
            device_id=device_id,
            devicelog_id=devicelog_id,
        )
    steps.append(_ok(STEP_DEVICE, "Device updated successfully"))
    qty_available, qty_purchased = device.qty_available, device.qty_purchased

    deleted = False
    if qty_available <= 0:
        try:
            deleted = device_store.delete_if_depleted(db, device_id)
        except SQLAlchemyError as exc:
            steps.append(_failed(STEP_CASCADE, "Error deleting device"))
            logger.error(
                "ledger.device.cascade_failed",
                exc_info=True,
                extra=_log_extra(device_id=device_id, devicelog_id=devicelog_id),
            )
            raise CascadeDeleteFailed(
                "Device log reversed but the emptied device could not be deleted",
                steps=steps,
                device_id=device_id,
                devicelog_id=devicelog_id,
            ) from exc
        if deleted:
            steps.append(_ok(STEP_CASCADE, "Device deleted successfully"))
            logger.info(
                "ledger.device.cascade_deleted",
                extra=_log_extra(device_id=device_id, devicelog_id=devicelog_id, qty_available=qty_available),
            )

    logger.info(
        "ledger.movement.reversed",
        extra=_log_extra(device_id=device_id, devicelog_id=devicelog_id, mode=log.mode, qty=log.qty),
    )
    return ReversalOut(
        devicelog_id=devicelog_id,
        device_id=device_id,
        device_deleted=deleted,
        qty_available=None if deleted else qty_available,
        qty_purchased=None if deleted else qty_purchased,
        steps=steps,
    )


# ---------- queries ----------


def get_log_author(db: Session, devicelog_id: str) -> str:
    """Return the actor that recorded the log, for ownership checks."""

    log = log_store.get_device_log(db, devicelog_id)
    if log is None:
        raise NotFound(f"Device log {devicelog_id} not found", devicelog_id=devicelog_id)
    return log.author_id


def get_device_with_history(db: Session, device_id: str) -> DeviceWithHistory:
    device = device_store.get_device(db, device_id)
    if device is None:
        raise NotFound(f"Device {device_id} not found", device_id=device_id)
    history = log_store.list_logs_for_device(db, device_id)
    return DeviceWithHistory(
        **DeviceOut.model_validate(device).model_dump(),
        device_logs=[DeviceLogOut.model_validate(entry) for entry in history],
    )


def get_log_with_device(db: Session, devicelog_id: str) -> DeviceLogWithDevice:
    log = log_store.get_device_log(db, devicelog_id)
    if log is None:
        raise NotFound(f"Device log {devicelog_id} not found", devicelog_id=devicelog_id)
    device = device_store.get_device(db, log.device_id)
    return DeviceLogWithDevice(
        **DeviceLogOut.model_validate(log).model_dump(),
        device=DeviceOut.model_validate(device) if device is not None else None,
    )


# ---------- direct edits ----------


def edit_device_details(db: Session, device_id: str, changes: dict):
    """Descriptive edits; quantity fields can only move through movements."""

    device = device_store.get_device(db, device_id)
    if device is None:
        raise NotFound(f"Device {device_id} not found", device_id=device_id)
    try:
        return device_store.update_device_details(db, device, changes)
    except ValueError as exc:
        raise InvalidRequest(str(exc), device_id=device_id) from exc


def edit_log_provenance(db: Session, devicelog_id: str, changes: dict) -> DeviceLog:
    log = log_store.get_device_log(db, devicelog_id)
    if log is None:
        raise NotFound(f"Device log {devicelog_id} not found", devicelog_id=devicelog_id)
    return log_store.update_provenance(db, log, changes)


def retire_device(db: Session, device_id: str) -> int:
    """Administratively delete a device regardless of its stock.

    Its logs are left in place and now point at a missing device. Returns how
    many logs were left behind.
    """

    device = device_store.get_device(db, device_id)
    if device is None:
        raise NotFound(f"Device {device_id} not found", device_id=device_id)
    orphaned = len(log_store.list_logs_for_device(db, device_id))
    device_store.delete_device(db, device)
    logger.info("ledger.device.retired", extra=_log_extra(device_id=device_id, orphaned_logs=orphaned))
    return orphaned
