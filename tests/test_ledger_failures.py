"""Partial failures of the two-step writes are reported, never rolled back."""

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.exceptions import (
    AggregateWriteFailed,
    CascadeDeleteFailed,
    LogWriteFailed,
)
from stockledger.crud.devices import get_device
from stockledger.db.session import Base
from stockledger.models.device import Device
from stockledger.models.device_log import DeviceLog
from stockledger.schemas.movement import MovementIntent
from stockledger.services import ledger


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _boom(*args, **kwargs):
    raise SQLAlchemyError("disk I/O error")


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _seed(db, qty: int = 10):
    intent = MovementIntent(name="Monitor", type="display", qty=qty)
    return ledger.record_movement(db, intent, actor="seed")


def test_log_failure_keeps_aggregate_update(db_session, monkeypatch):
    seeded = _seed(db_session)
    monkeypatch.setattr(ledger.log_store, "create_device_log", _boom)

    with pytest.raises(LogWriteFailed) as excinfo:
        ledger.record_movement(
            db_session,
            MovementIntent(device_id=seeded.device_id, qty=3, mode="insert"),
            actor="user-1",
        )

    err = excinfo.value
    assert err.messages == ["Device updated successfully", "Error creating device log"]
    assert err.device_id == seeded.device_id
    assert [step.ok for step in err.steps] == [True, False]
    device = get_device(db_session, seeded.device_id)
    assert (device.qty_available, device.qty_purchased) == (13, 13)
    assert _count(db_session, DeviceLog) == 1


def test_log_failure_after_device_creation(db_session, monkeypatch):
    monkeypatch.setattr(ledger.log_store, "create_device_log", _boom)

    with pytest.raises(LogWriteFailed) as excinfo:
        _seed(db_session, qty=4)

    assert excinfo.value.messages == ["Device created successfully", "Error creating device log"]
    assert _count(db_session, Device) == 1
    assert _count(db_session, DeviceLog) == 0


def test_device_creation_failure_writes_no_log(db_session, monkeypatch):
    monkeypatch.setattr(ledger.device_store, "create_device", _boom)

    with pytest.raises(AggregateWriteFailed) as excinfo:
        _seed(db_session)

    assert excinfo.value.messages == ["Error creating device", "Device log not created"]
    assert _count(db_session, DeviceLog) == 0


def test_aggregate_failure_on_movement_writes_no_log(db_session, monkeypatch):
    seeded = _seed(db_session)
    monkeypatch.setattr(ledger.device_store, "apply_delta", _boom)

    with pytest.raises(AggregateWriteFailed) as excinfo:
        ledger.record_movement(
            db_session,
            MovementIntent(device_id=seeded.device_id, qty=3, mode="remove"),
            actor="user-1",
        )

    assert excinfo.value.messages == ["Error updating device", "Device log not created"]
    assert _count(db_session, DeviceLog) == 1


def test_reversal_reports_aggregate_failure_after_log_delete(db_session, monkeypatch):
    seeded = _seed(db_session)
    monkeypatch.setattr(ledger.device_store, "apply_delta", _boom)

    with pytest.raises(AggregateWriteFailed) as excinfo:
        ledger.reverse_movement(db_session, seeded.devicelog_id)

    err = excinfo.value
    assert err.messages == ["Device log deleted successfully", "Error updating device"]
    assert err.devicelog_id == seeded.devicelog_id
    assert _count(db_session, DeviceLog) == 0
    monkeypatch.undo()
    device = get_device(db_session, seeded.device_id)
    assert device.qty_available == 10


def test_reversal_reports_log_delete_failure(db_session, monkeypatch):
    seeded = _seed(db_session)
    monkeypatch.setattr(ledger.log_store, "pop_device_log", _boom)

    with pytest.raises(LogWriteFailed) as excinfo:
        ledger.reverse_movement(db_session, seeded.devicelog_id)

    assert excinfo.value.messages == ["Error deleting device log", "Device not updated"]
    assert get_device(db_session, seeded.device_id).qty_available == 10


def test_cascade_failure_is_reported_separately(db_session, monkeypatch):
    seeded = _seed(db_session, qty=5)
    monkeypatch.setattr(ledger.device_store, "delete_if_depleted", _boom)

    with pytest.raises(CascadeDeleteFailed) as excinfo:
        ledger.reverse_movement(db_session, seeded.devicelog_id)

    assert excinfo.value.messages == [
        "Device log deleted successfully",
        "Device updated successfully",
        "Error deleting device",
    ]
    monkeypatch.undo()
    device = get_device(db_session, seeded.device_id)
    assert device is not None
    assert (device.qty_available, device.qty_purchased) == (0, 0)


def test_error_details_serialize_steps(db_session, monkeypatch):
    seeded = _seed(db_session)
    monkeypatch.setattr(ledger.log_store, "create_device_log", _boom)

    with pytest.raises(LogWriteFailed) as excinfo:
        ledger.record_movement(
            db_session,
            MovementIntent(device_id=seeded.device_id, qty=1, mode="remove"),
            actor="user-1",
        )

    details = excinfo.value.details()
    assert details["device_id"] == seeded.device_id
    assert details["steps"][1] == {"step": "device_log", "ok": False, "message": "Error creating device log"}


def test_failed_device_insert_rolls_back_session(db_session, monkeypatch):
    monkeypatch.setattr(db_session, "commit", _boom)

    with pytest.raises(AggregateWriteFailed):
        _seed(db_session)

    monkeypatch.undo()
    assert _count(db_session, Device) == 0
    recovered = _seed(db_session, qty=2)
    assert get_device(db_session, recovered.device_id).qty_available == 2


def test_failed_provenance_commit_rolls_back_session(db_session, monkeypatch):
    seeded = _seed(db_session, qty=4)
    rollbacks = []
    real_rollback = db_session.rollback

    def tracking_rollback():
        rollbacks.append(True)
        real_rollback()

    monkeypatch.setattr(db_session, "commit", _boom)
    monkeypatch.setattr(db_session, "rollback", tracking_rollback)

    with pytest.raises(SQLAlchemyError):
        ledger.edit_log_provenance(db_session, seeded.devicelog_id, {"remarks": "never saved"})

    monkeypatch.undo()
    assert rollbacks == [True]
    assert db_session.get(DeviceLog, seeded.devicelog_id).remarks is None
    edited = ledger.edit_log_provenance(db_session, seeded.devicelog_id, {"remarks": "saved"})
    assert edited.remarks == "saved"


def test_failed_device_edit_rolls_back_session(db_session, monkeypatch):
    seeded = _seed(db_session, qty=4)
    monkeypatch.setattr(db_session, "commit", _boom)

    with pytest.raises(SQLAlchemyError):
        ledger.edit_device_details(db_session, seeded.device_id, {"name": "Renamed"})

    monkeypatch.undo()
    assert get_device(db_session, seeded.device_id).name == "Monitor"
