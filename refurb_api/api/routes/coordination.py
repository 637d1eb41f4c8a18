from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.deps import get_current_principal, get_event_bus, get_session, require_roles
from refurb_api.core.security import Principal, Role
from refurb_api.db.models.enums import PanelStatus, RepairJobStatus, SubJobStatus, Track
from refurb_api.repositories.repair import RepairJobRepository, SubJobRepository
from refurb_api.schemas.coordination import (
    DispatchResult,
    PaintPanelRead,
    PanelAdvance,
    RepairJobRead,
    SparesRequest,
    SubJobComplete,
    SubJobRead,
    TrackPayload,
)
from refurb_api.schemas.devices import DeviceRead
from refurb_api.services.coordination import TRACKS, CoordinationService
from refurb_api.services.events import EventBus

router = APIRouter(tags=["Repair"])

_COORDINATOR = require_roles(Role.L2_ENGINEER)
_SPECIALISTS = (Role.DISPLAY_TECHNICIAN, Role.BATTERY_TECHNICIAN, Role.L3_ENGINEER)


# PUBLIC_INTERFACE
@router.get(
    "/repair-jobs",
    response_model=List[RepairJobRead],
    summary="List repair jobs",
    dependencies=[Depends(get_current_principal)],
)
async def list_repair_jobs(
    session: AsyncSession = Depends(get_session),
    status: Optional[RepairJobStatus] = Query(None, description="Filter by job status"),
    coordinator_id: Optional[UUID] = Query(None, description="Filter by coordinating engineer"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[RepairJobRead]:
    rows = await RepairJobRepository(session).list_jobs(
        status=status.value if status else None,
        coordinator_id=coordinator_id,
        limit=limit,
        offset=offset,
    )
    return [RepairJobRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.get(
    "/repair-jobs/{job_id}",
    response_model=RepairJobRead,
    summary="Get repair job",
    dependencies=[Depends(get_current_principal)],
)
async def get_repair_job(
    job_id: UUID = Path(..., description="Repair job id"),
    session: AsyncSession = Depends(get_session),
) -> RepairJobRead:
    job = await RepairJobRepository(session).get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Repair job not found")
    return RepairJobRead.model_validate(job)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/claim",
    response_model=RepairJobRead,
    summary="Claim repair job",
    description="Become the coordinator of the device's open repair job; only one engineer can succeed.",
)
async def claim_device(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> RepairJobRead:
    job_id = await CoordinationService(session, events=events).claim_for_coordination(device_id, principal)
    job = await RepairJobRepository(session).get_job(job_id)
    return RepairJobRead.model_validate(job)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/tracks/{track}/dispatch",
    response_model=DispatchResult,
    summary="Dispatch a repair track",
    description="Hand a track (DISPLAY, BATTERY, L3 or PAINT) to its specialists.",
)
async def dispatch_track(
    device_id: UUID = Path(..., description="Device id"),
    track: Track = Path(..., description="Track"),
    payload: Optional[TrackPayload] = None,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DispatchResult:
    return await CoordinationService(session, events=events).dispatch_track(
        device_id, track, payload or TrackPayload(), principal
    )


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/tracks/{track}/complete",
    response_model=DispatchResult,
    summary="Complete a track personally",
    description="Record that the coordinator did the track's work; the track is complete immediately.",
)
async def complete_track_self(
    device_id: UUID = Path(..., description="Device id"),
    track: Track = Path(..., description="Track"),
    payload: Optional[TrackPayload] = None,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DispatchResult:
    return await CoordinationService(session, events=events).complete_track_self(
        device_id, track, payload or TrackPayload(), principal
    )


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/tracks/{track}/collect",
    response_model=DeviceRead,
    summary="Collect finished track work",
)
async def collect_track(
    device_id: UUID = Path(..., description="Device id"),
    track: Track = Path(..., description="Track"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DeviceRead:
    device = await CoordinationService(session, events=events).collect_track(device_id, track, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/tracks/{track}/cancel",
    response_model=DeviceRead,
    summary="Cancel outstanding track work",
    description="Cancel the outstanding sub-job or panels; the track is no longer required.",
)
async def cancel_track(
    device_id: UUID = Path(..., description="Device id"),
    track: Track = Path(..., description="Track"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DeviceRead:
    device = await CoordinationService(session, events=events).cancel_track(device_id, track, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/send-to-qc",
    response_model=DeviceRead,
    summary="Send device to QC",
    description="Fails with the list of incomplete tracks unless every required track is complete.",
)
async def send_to_qc(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DeviceRead:
    device = await CoordinationService(session, events=events).send_to_qc(device_id, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/spares-request",
    response_model=RepairJobRead,
    summary="Request spares mid-repair",
)
async def request_spares(
    payload: SparesRequest,
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> RepairJobRead:
    job = await CoordinationService(session, events=events).request_spares(
        device_id, payload.spares, payload.notes, principal
    )
    return RepairJobRead.model_validate(job)


# PUBLIC_INTERFACE
@router.post(
    "/devices/{device_id}/resume",
    response_model=DeviceRead,
    summary="Resume repair after spares",
)
async def resume_repair(
    device_id: UUID = Path(..., description="Device id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(_COORDINATOR),
) -> DeviceRead:
    device = await CoordinationService(session, events=events).resume_repair(device_id, principal)
    return DeviceRead.model_validate(device)


# PUBLIC_INTERFACE
@router.get(
    "/work/{track}",
    response_model=List[SubJobRead],
    summary="Specialist work queue",
    description="Outstanding sub-jobs for a specialist track, oldest first.",
    dependencies=[Depends(require_roles(Role.L2_ENGINEER, *_SPECIALISTS))],
)
async def list_work_queue(
    track: Track = Path(..., description="DISPLAY, BATTERY or L3"),
    status: Optional[SubJobStatus] = Query(None, description="Filter by sub-job status"),
    session: AsyncSession = Depends(get_session),
) -> List[SubJobRead]:
    info = TRACKS[track]
    if info.model is None:
        raise HTTPException(status_code=404, detail="Paint work is tracked per panel")
    rows = await SubJobRepository(session).list_queue(info.model, status.value if status else None)
    return [SubJobRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/work/{track}/{sub_job_id}/start",
    response_model=SubJobRead,
    summary="Start a sub-job",
)
async def start_sub_job(
    track: Track = Path(..., description="DISPLAY, BATTERY or L3"),
    sub_job_id: UUID = Path(..., description="Sub-job id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_SPECIALISTS)),
) -> SubJobRead:
    sub_job = await CoordinationService(session, events=events).start_sub_job(track, sub_job_id, principal)
    return SubJobRead.model_validate(sub_job)


# PUBLIC_INTERFACE
@router.post(
    "/work/{track}/{sub_job_id}/complete",
    response_model=SubJobRead,
    summary="Complete a sub-job",
    description="Only the technician who started the sub-job can complete it; the coordinator is notified.",
)
async def complete_sub_job(
    track: Track = Path(..., description="DISPLAY, BATTERY or L3"),
    sub_job_id: UUID = Path(..., description="Sub-job id"),
    payload: Optional[SubJobComplete] = None,
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(*_SPECIALISTS)),
) -> SubJobRead:
    sub_job = await CoordinationService(session, events=events).complete_sub_job(
        track, sub_job_id, payload or SubJobComplete(), principal
    )
    return SubJobRead.model_validate(sub_job)


# PUBLIC_INTERFACE
@router.get(
    "/paint/panels",
    response_model=List[PaintPanelRead],
    summary="Paint shop queue",
    dependencies=[Depends(require_roles(Role.PAINT_SHOP, Role.L2_ENGINEER))],
)
async def list_paint_panels(
    status: Optional[PanelStatus] = Query(None, description="Filter by panel status"),
    session: AsyncSession = Depends(get_session),
) -> List[PaintPanelRead]:
    rows = await SubJobRepository(session).list_panels(status.value if status else None)
    return [PaintPanelRead.model_validate(x) for x in rows]


# PUBLIC_INTERFACE
@router.post(
    "/paint/panels/{panel_id}/advance",
    response_model=PaintPanelRead,
    summary="Advance a paint panel",
    description="AWAITING_PAINT -> IN_PAINT -> READY_FOR_COLLECTION.",
)
async def advance_paint_panel(
    payload: PanelAdvance,
    panel_id: UUID = Path(..., description="Panel id"),
    session: AsyncSession = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    principal: Principal = Depends(require_roles(Role.PAINT_SHOP)),
) -> PaintPanelRead:
    panel = await CoordinationService(session, events=events).advance_paint_panel(
        panel_id, payload.target, principal
    )
    return PaintPanelRead.model_validate(panel)
