from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..core.capabilities import (
    DEVICE_DESTROY,
    DEVICE_LOG_DESTROY,
    DEVICE_LOG_READ,
    DEVICE_LOG_WRITE,
    OWN_DEVICE_LOG_WRITE,
    Principal,
)
from ..crud.device_logs import list_device_logs
from ..db.session import get_db
from ..deps.access import can_edit_log, require_capabilities
from ..schemas.device import DeviceLogWithDevice
from ..schemas.device_log import DeviceLogOut, DeviceLogPage, DeviceLogUpdate
from ..schemas.movement import ReversalOut
from ..schemas.pagination import PageMeta
from ..services import ledger
from .pagination import PageParams

router = APIRouter(prefix="/api/v1/stock/device_logs", tags=["device_logs"])


@router.get("", response_model=DeviceLogPage, dependencies=[Depends(require_capabilities(DEVICE_LOG_READ))])
def api_list_device_logs(
    params: PageParams = Depends(),
    device_id: str | None = Query(None),
    db: Session = Depends(get_db),
):
    logs, total = list_device_logs(
        db, page=params.page, limit=params.limit, search=params.search, device_id=device_id
    )
    return DeviceLogPage(
        device_logs=[DeviceLogOut.model_validate(log) for log in logs],
        meta=PageMeta.build(page=params.page, limit=params.limit, total=total, search=params.search),
    )


@router.get(
    "/{devicelog_id}",
    response_model=DeviceLogWithDevice,
    dependencies=[Depends(require_capabilities(DEVICE_LOG_READ))],
)
def api_get_device_log(devicelog_id: str, db: Session = Depends(get_db)):
    return ledger.get_log_with_device(db, devicelog_id)


@router.patch("/{devicelog_id}", response_model=DeviceLogOut)
def api_update_device_log(
    devicelog_id: str,
    payload: DeviceLogUpdate,
    principal: Principal = Depends(require_capabilities(OWN_DEVICE_LOG_WRITE, DEVICE_LOG_WRITE, mode="any")),
    db: Session = Depends(get_db),
):
    author_id = ledger.get_log_author(db, devicelog_id)
    if not can_edit_log(principal, author_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This device log does not belong to you",
        )
    return ledger.edit_log_provenance(db, devicelog_id, payload.model_dump(exclude_unset=True))


@router.delete("/{devicelog_id}", response_model=ReversalOut)
def api_reverse_device_log(
    devicelog_id: str,
    principal: Principal = Depends(require_capabilities(DEVICE_DESTROY, DEVICE_LOG_DESTROY, mode="any")),
    db: Session = Depends(get_db),
):
    return ledger.reverse_movement(db, devicelog_id)
