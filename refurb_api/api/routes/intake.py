from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.procurement import InwardBatchRepository, PurchaseOrderRepository
from refurb_api.schemas.devices import (
    DeviceCreate,
    DeviceRead,
    InwardBatchCreate,
    InwardBatchRead,
    PurchaseOrderCreate,
    PurchaseOrderRead,
)
from refurb_api.schemas.verification import OverrideRequest, VerificationResult
from refurb_api.services.events import EventBus
from refurb_api.services.intake import IntakeService
from refurb_api.services.verification import VerificationService

router = APIRouter(tags=["Intake"])

_WAREHOUSE = (Role.WAREHOUSE_MANAGER, Role.MIS_WAREHOUSE_EXECUTIVE)


# PUBLIC_INTERFACE
@router.get(
    "/purchase-orders",
    response_model=List[PurchaseOrderRead],
    summary="List purchase orders",
    description="Return purchase orders with their expected lines, newest first.",
    dependencies=[Depends(require_roles(*_WAREHOUSE))],
)
async def list_purchase_orders(
    session: AsyncSession = Depends(get_session),
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[PurchaseOrderRead]:
    repo = PurchaseOrderRepository(session)
    rows = await repo.list_pos(status=status, limit=limit, offset=offset)
    return [PurchaseOrderRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/purchase-orders",
    response_model=PurchaseOrderRead,
    status_code=201,
    summary="Create purchase order",
    description="Create a purchase order with the lines a shipment is expected to contain.",
)
async def create_purchase_order(
    payload: PurchaseOrderCreate,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_WAREHOUSE)),
) -> PurchaseOrderRead:
    po = await IntakeService(session, events=events).create_purchase_order(payload, principal)
    return PurchaseOrderRead.model_validate(po)


# PUBLIC_INTERFACE
@router.get(
    "/purchase-orders/{po_id}",
    response_model=PurchaseOrderRead,
    summary="Get purchase order",
    dependencies=[Depends(require_roles(*_WAREHOUSE))],
)
async def get_purchase_order(
    po_id: UUID = Path(..., description="Purchase order id"),
    session: AsyncSession = Depends(get_session),
) -> PurchaseOrderRead:
    po = await PurchaseOrderRepository(session).get_po(po_id)
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return PurchaseOrderRead.model_validate(po)


# PUBLIC_INTERFACE
@router.get(
    "/inward/batches",
    response_model=List[InwardBatchRead],
    summary="List inward batches",
    dependencies=[Depends(require_roles(*_WAREHOUSE))],
)
async def list_batches(
    session: AsyncSession = Depends(get_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[InwardBatchRead]:
    rows = await InwardBatchRepository(session).list_batches(limit=limit, offset=offset)
    return [InwardBatchRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/inward/batches",
    response_model=InwardBatchRead,
    status_code=201,
    summary="Open inward batch",
    description="Open a batch for a received shipment, optionally linked to a purchase order.",
)
async def create_batch(
    payload: InwardBatchCreate,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_WAREHOUSE)),
) -> InwardBatchRead:
    batch = await IntakeService(session, events=events).create_batch(payload, principal)
    return InwardBatchRead.model_validate(batch)


# PUBLIC_INTERFACE
@router.get(
    "/inward/batches/{batch_id}",
    response_model=InwardBatchRead,
    summary="Get inward batch",
    dependencies=[Depends(require_roles(*_WAREHOUSE))],
)
async def get_batch(
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
) -> InwardBatchRead:
    batch = await InwardBatchRepository(session).get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Inward batch not found")
    return InwardBatchRead.model_validate(batch)


# PUBLIC_INTERFACE
@router.get(
    "/inward/batches/{batch_id}/devices",
    response_model=List[DeviceRead],
    summary="List devices in a batch",
    dependencies=[Depends(require_roles(*_WAREHOUSE))],
)
async def list_batch_devices(
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
) -> List[DeviceRead]:
    rows = await DeviceRepository(session).list_for_batch(batch_id)
    return [DeviceRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/inward/batches/{batch_id}/devices",
    response_model=DeviceRead,
    status_code=201,
    summary="Receive device",
    description=(
        "Receive one device into the batch. A barcode is generated when none is given. "
        "Verified or skipped batches are locked and reject new devices."
    ),
)
async def add_device(
    payload: DeviceCreate,
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_WAREHOUSE)),
) -> DeviceRead:
    device = await IntakeService(session, events=events).add_device(batch_id, payload, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.post(
    "/inward/batches/{batch_id}/verify",
    response_model=VerificationResult,
    summary="Verify shipment",
    description="Match the batch's devices against its purchase order and store the result on the batch.",
)
async def verify_shipment(
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_WAREHOUSE)),
) -> VerificationResult:
    return await VerificationService(session, events=events).verify_shipment(batch_id, principal)


# PUBLIC_INTERFACE
@router.post(
    "/inward/batches/{batch_id}/verification/override",
    response_model=InwardBatchRead,
    summary="Skip shipment verification",
    description="Manager override: mark the batch SKIPPED with a reason of at least 10 characters.",
)
async def override_verification(
    payload: OverrideRequest,
    batch_id: UUID = Path(..., description="Batch id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.WAREHOUSE_MANAGER)),
) -> InwardBatchRead:
    batch = await VerificationService(session, events=events).override_verification(
        batch_id, payload.reason, principal
    )
    return InwardBatchRead.model_validate(batch)
