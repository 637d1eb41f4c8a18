from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.repositories.quality import QCRecordRepository
from refurb_api.schemas.inspection import ChecklistRowRead
from refurb_api.schemas.qc import QCChecklistUpdate, QCOutcome, QCRecordRead, QCSubmission
from refurb_api.services.events import EventBus
from refurb_api.services.qc import QCService

router = APIRouter(tags=["Quality"])


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/qc",
    response_model=QCOutcome,
    summary="Submit QC result",
    description=(
        "Pass (with grade A or B) moves the device to READY_FOR_STOCK and closes the repair job. "
        "Fail (with remarks) reopens the repair job for rework."
    ),
)
async def submit_qc(
    payload: QCSubmission,
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.QC_ENGINEER)),
) -> QCOutcome:
    return await QCService(session, events=events).submit_qc(device_id, payload, principal)


# PUBLIC_INTERFACE
@router.patch(
    "/devices/{device_id}/qc/checklist/{item_index}",
    response_model=ChecklistRowRead,
    summary="Re-check a checklist item during QC",
)
async def update_qc_checklist_item(
    payload: QCChecklistUpdate,
    device_id: UUID = Path(..., description="Device id"),
    item_index: int = Path(..., ge=1, description="Checklist item number"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.QC_ENGINEER)),
) -> ChecklistRowRead:
    row = await QCService(session, events=events).update_qc_checklist_item(
        device_id, item_index, payload.status, payload.notes, principal
    )
    return ChecklistRowRead.model_validate(row)


# PUBLIC_INTERFACE
@router.get(
    "/devices/{device_id}/qc",
    response_model=List[QCRecordRead],
    summary="QC history",
    dependencies=[Depends(get_current_principal)],
)
async def list_qc_records(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
) -> List[QCRecordRead]:
    rows = await QCRecordRepository(session).list_for_device(device_id)
    return [QCRecordRead.model_validate(x) for x in rows]
