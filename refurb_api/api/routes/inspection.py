from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.enums import DeviceCategory
from refurb_api.repositories.quality import ChecklistRepository
from refurb_api.schemas.devices import DeviceRead
from refurb_api.schemas.inspection import (
    ChecklistItemDefinitionRead,
    ChecklistRowRead,
    InspectionOutcome,
    InspectionSubmission,
)
from refurb_api.services import checklist
from refurb_api.services.events import EventBus
from refurb_api.services.inspection import InspectionService

router = APIRouter(tags=["Inspection"])


# PUBLIC_INTERFACE
@router.get(
    "/checklists/{category}",
    response_model=List[ChecklistItemDefinitionRead],
    summary="Checklist catalog",
    description="The inspection checklist for a device category, in item order.",
    dependencies=[Depends(get_current_principal)],
)
async def get_checklist(
    category: DeviceCategory = Path(..., description="Device category"),
) -> List[ChecklistItemDefinitionRead]:
    return [ChecklistItemDefinitionRead.model_validate(x) for x in checklist.get_checklist(category)]


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/inspection/start",
    response_model=DeviceRead,
    summary="Start inspection",
    description="Move a RECEIVED device into PENDING_INSPECTION.",
)
async def start_inspection(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(
        require_roles(Role.INSPECTION_ENGINEER, Role.MIS_WAREHOUSE_EXECUTIVE)
    ),
) -> DeviceRead:
    device = await InspectionService(session, events=events).start_inspection(device_id, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/inspection",
    response_model=InspectionOutcome,
    summary="Submit inspection",
    description=(
        "Record the completed checklist and route the device: failed items or spares open a "
        "repair job (WAITING_FOR_SPARES when spares are listed, otherwise READY_FOR_REPAIR); "
        "a clean device goes to AWAITING_QC."
    ),
)
async def submit_inspection(
    payload: InspectionSubmission,
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.INSPECTION_ENGINEER)),
) -> InspectionOutcome:
    return await InspectionService(session, events=events).route_after_inspection(
        device_id, payload, principal
    )


# PUBLIC_INTERFACE
@router.get(
    "/devices/{device_id}/checklist",
    response_model=List[ChecklistRowRead],
    summary="Recorded checklist",
    description="Every checklist row recorded for the device, inspection rows before QC re-checks.",
    dependencies=[Depends(get_current_principal)],
)
async def list_checklist_rows(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
) -> List[ChecklistRowRead]:
    rows = await ChecklistRepository(session).list_for_device(device_id)
    return [ChecklistRowRead.model_validate(x) for x in rows]
