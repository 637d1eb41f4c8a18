from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.enums import DeviceCategory, DeviceStatus
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.schemas.devices import (
    DeviceRead,
    OutwardCreate,
    OutwardRead,
    ScrapRequest,
    StockMovementRead,
)
from refurb_api.services.events import EventBus
from refurb_api.services.outward import OutwardService

router = APIRouter(tags=["Devices"])


# PUBLIC_INTERFACE
@router.get(
    "/devices",
    response_model=List[DeviceRead],
    summary="List devices",
    description="List devices, newest first, optionally filtered by status, category or batch.",
    dependencies=[Depends(get_current_principal)],
)
async def list_devices(
    session: AsyncSession = Depends(get_session),
    status: Optional[DeviceStatus] = Query(None, description="Filter by lifecycle status"),
    category: Optional[DeviceCategory] = Query(None, description="Filter by category"),
    batch_id: Optional[UUID] = Query(None, description="Filter by inward batch"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[DeviceRead]:
    repo = DeviceRepository(session)
    rows = await repo.list_devices(
        status=status.value if status else None,
        category=category.value if category else None,
        batch_id=batch_id,
        limit=limit,
        offset=offset,
    )
    return [DeviceRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.get(
    "/devices/{device_id}",
    response_model=DeviceRead,
    summary="Get device",
    dependencies=[Depends(get_current_principal)],
)
async def get_device(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
) -> DeviceRead:
    device = await DeviceRepository(session).get_device(device_id)
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.get(
    "/devices/{device_id}/movements",
    response_model=List[StockMovementRead],
    summary="Device stock movements",
    dependencies=[Depends(get_current_principal)],
)
async def list_movements(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
) -> List[StockMovementRead]:
    rows = await DeviceRepository(session).list_movements(device_id)
    return [StockMovementRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/outward",
    response_model=OutwardRead,
    status_code=201,
    summary="Dispatch devices",
    description="Dispatch READY_FOR_STOCK devices as a sale or rental. All listed devices move or none do.",
)
async def dispatch_outward(
    payload: OutwardCreate,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)),
) -> OutwardRead:
    record = await OutwardService(session, events=events).dispatch(payload, principal)
    return OutwardRead.model_validate(record)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/scrap",
    response_model=DeviceRead,
    summary="Scrap device",
    description="Scrap a device at any stage before it leaves stock; its open repair job is closed.",
)
async def scrap_device(
    payload: ScrapRequest,
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.WAREHOUSE_MANAGER)),
) -> DeviceRead:
    device = await OutwardService(session, events=events).scrap(device_id, payload.reason, principal)
    return DeviceRead.model_validate(device)
