from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.capabilities import DEVICE_DESTROY, DEVICE_LOG_DESTROY, DEVICE_WRITE, OWN_DEVICE_LOG_WRITE, Principal
from ..crud.devices import list_devices
from ..db.session import get_db
from ..deps.access import require_capabilities
from ..schemas.device import DeviceOut, DevicePage, DeviceUpdate, DeviceWithHistory
from ..schemas.movement import MovementIntent, MovementOut
from ..schemas.pagination import PageMeta
from ..services import ledger
from .pagination import PageParams

router = APIRouter(prefix="/api/v1/stock/devices", tags=["devices"])


@router.get("", response_model=DevicePage)
def api_list_devices(params: PageParams = Depends(), db: Session = Depends(get_db)):
    devices, total = list_devices(db, page=params.page, limit=params.limit, search=params.search)
    return DevicePage(
        devices=[DeviceOut.model_validate(device) for device in devices],
        meta=PageMeta.build(page=params.page, limit=params.limit, total=total, search=params.search),
    )


@router.get("/{device_id}", response_model=DeviceWithHistory)
def api_get_device(device_id: str, db: Session = Depends(get_db)):
    return ledger.get_device_with_history(db, device_id)


@router.post("", response_model=MovementOut, status_code=201)
def api_record_movement(
    payload: MovementIntent,
    principal: Principal = Depends(require_capabilities(DEVICE_WRITE, OWN_DEVICE_LOG_WRITE)),
    db: Session = Depends(get_db),
):
    return ledger.record_movement(db, payload, actor=principal.id)


@router.patch("/{device_id}", response_model=DeviceOut)
def api_update_device(
    device_id: str,
    payload: DeviceUpdate,
    principal: Principal = Depends(require_capabilities(DEVICE_WRITE)),
    db: Session = Depends(get_db),
):
    return ledger.edit_device_details(db, device_id, payload.model_dump(exclude_unset=True))


@router.delete("/{device_id}")
def api_retire_device(
    device_id: str,
    principal: Principal = Depends(require_capabilities(DEVICE_DESTROY, DEVICE_LOG_DESTROY)),
    db: Session = Depends(get_db),
):
    orphaned = ledger.retire_device(db, device_id)
    return {"status": "deleted", "device_id": device_id, "orphaned_logs": orphaned}
