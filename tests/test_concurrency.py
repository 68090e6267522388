"""Concurrent movements on one device must sum, whatever the interleaving."""

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.crud.device_logs import list_logs_for_device
from stockledger.crud.devices import get_device
from stockledger.db.session import Base
from stockledger.schemas.movement import MovementIntent
from stockledger.services import ledger


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        engine.dispose()


def _seed(factory, qty: int) -> str:
    with factory() as db:
        result = ledger.record_movement(db, MovementIntent(name="Router", type="network", qty=qty), actor="seed")
        return result.device_id


def test_concurrent_inserts_converge(session_factory):
    device_id = _seed(session_factory, 5)
    barrier = threading.Barrier(2)

    def insert(qty: int):
        barrier.wait(timeout=10)
        with session_factory() as db:
            return ledger.record_movement(
                db, MovementIntent(device_id=device_id, qty=qty, mode="insert"), actor=f"worker-{qty}"
            )

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(insert, [3, 7]))

    assert all(result.devicelog_id for result in results)
    with session_factory() as db:
        device = get_device(db, device_id)
        assert (device.qty_available, device.qty_purchased) == (15, 15)
        assert len(list_logs_for_device(db, device_id)) == 3


def test_concurrent_movement_and_reversal_commute(session_factory):
    device_id = _seed(session_factory, 10)
    with session_factory() as db:
        removal = ledger.record_movement(
            db, MovementIntent(device_id=device_id, qty=4, mode="remove"), actor="seed"
        )
    barrier = threading.Barrier(2)

    def insert_more():
        barrier.wait(timeout=10)
        with session_factory() as db:
            ledger.record_movement(db, MovementIntent(device_id=device_id, qty=2, mode="insert"), actor="a")

    def undo_removal():
        barrier.wait(timeout=10)
        with session_factory() as db:
            ledger.reverse_movement(db, removal.devicelog_id)

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(insert_more), pool.submit(undo_removal)]
        for future in futures:
            future.result()

    with session_factory() as db:
        device = get_device(db, device_id)
        assert (device.qty_available, device.qty_purchased) == (12, 12)


@pytest.mark.parametrize("order", [(3, 7), (7, 3)])
def test_insert_order_does_not_matter(session_factory, order):
    device_id = _seed(session_factory, 1)
    for qty in order:
        with session_factory() as db:
            ledger.record_movement(db, MovementIntent(device_id=device_id, qty=qty, mode="insert"), actor="u")

    with session_factory() as db:
        device = get_device(db, device_id)
        assert device.qty_available == 11
