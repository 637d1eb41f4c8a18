"""
Parallel work coordination for repairs.

A level-2 engineer claims a repair job and becomes its coordinator. From
there they fan work out to specialist tracks (display, battery, L3, paint),
or do it themselves, collect the finished work, and finally send the device
to QC once every required track is complete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import (
    IncompleteParallelWork,
    NotClaimable,
    NotFound,
    NotJobOwner,
    PreconditionFailed,
    ValidationFailed,
)
from refurb_api.core.security import Principal, Role
from refurb_api.db.base import utcnow
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import (
    PANEL_TYPES,
    DeviceStatus,
    PanelStatus,
    RepairJobStatus,
    SubJobStatus,
    Track,
)
from refurb_api.db.models.repair import (
    BatteryBoostJob,
    DisplayRepairJob,
    L3RepairJob,
    PaintPanel,
    RepairJob,
)
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.repair import OUTSTANDING_PANEL, RepairJobRepository, SubJobRepository
from refurb_api.schemas.coordination import DispatchResult, SubJobComplete, TrackPayload
from refurb_api.services.base import BaseService
from refurb_api.services.lifecycle import Lifecycle
from refurb_api.services.spares import append_text, parse_spares
from refurb_api.services.tat import tat_due

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackInfo:
    label: str
    model: Optional[Type]
    required_attr: str
    completed_attr: str
    missing_message: str
    specialist_role: Role


TRACKS: Dict[Track, TrackInfo] = {
    Track.DISPLAY: TrackInfo(
        "Display repair", DisplayRepairJob, "display_repair_required", "display_repair_completed",
        "Display repair not completed", Role.DISPLAY_TECHNICIAN,
    ),
    Track.BATTERY: TrackInfo(
        "Battery boost", BatteryBoostJob, "battery_boost_required", "battery_boost_completed",
        "Battery boost not completed", Role.BATTERY_TECHNICIAN,
    ),
    Track.L3: TrackInfo(
        "L3 repair", L3RepairJob, "l3_repair_required", "l3_repair_completed",
        "L3 repair not completed", Role.L3_ENGINEER,
    ),
    Track.PAINT: TrackInfo(
        "Paint work", None, "paint_required", "paint_completed",
        "Paint work not completed", Role.PAINT_SHOP,
    ),
}

# Statuses in which the coordinator may still work on a claimed device.
COORDINATOR_STATUSES = (
    DeviceStatus.UNDER_REPAIR.value,
    DeviceStatus.WAITING_FOR_SPARES.value,
    DeviceStatus.READY_FOR_REPAIR.value,
)
CLAIMABLE_STATUSES = (DeviceStatus.READY_FOR_REPAIR.value, DeviceStatus.WAITING_FOR_SPARES.value)
COLLECTABLE_PANEL = (PanelStatus.READY_FOR_COLLECTION.value, PanelStatus.FITTED.value)
PANEL_MOVES = {
    PanelStatus.AWAITING_PAINT: PanelStatus.IN_PAINT,
    PanelStatus.IN_PAINT: PanelStatus.READY_FOR_COLLECTION,
}


# PUBLIC_INTERFACE
def missing_tracks(device: Device) -> List[str]:
    """Messages for every required track not yet completed, in fixed track order."""
    return [
        info.missing_message
        for info in TRACKS.values()
        if getattr(device, info.required_attr) and not getattr(device, info.completed_attr)
    ]


def _set_track_flags(device: Device, info: TrackInfo, *, required: bool, completed: bool) -> None:
    setattr(device, info.required_attr, required)
    setattr(device, info.completed_attr, completed)


class CoordinationService(BaseService):
    """Coordinator and specialist operations on repair tracks."""

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.devices = DeviceRepository(session)
        self.jobs = RepairJobRepository(session)
        self.sub_jobs = SubJobRepository(session)
        self.lifecycle = Lifecycle(session)

    # ------------------------------------------------------------------ coordinator

    # PUBLIC_INTERFACE
    async def claim_for_coordination(self, device_id: UUID, principal: Principal) -> UUID:
        """
        Make the caller the coordinator of the device's open repair job.

        The coordinator is written with a conditional update so that of two
        concurrent claimants exactly one succeeds.
        """
        self.require_role(principal, Role.L2_ENGINEER)
        async with self.unit_of_work():
            device = await self._device(device_id)
            job = await self.jobs.active_for_device(device.id, for_update=True)
            if job is None:
                raise NotClaimable(f"Device {device.barcode} has no open repair job")
            if job.l2_engineer_id is not None:
                raise NotClaimable(f"Job {job.job_code} is already claimed")
            if device.status not in CLAIMABLE_STATUSES:
                raise NotClaimable(f"Device {device.barcode} cannot be claimed in status {device.status}")

            now = utcnow()
            await self.session.flush()
            claimed = await self.jobs.claim(
                job.id,
                principal.id,
                started_at=now,
                tat_due=tat_due(now, self.settings.TAT_DAYS),
            )
            if not claimed:
                raise NotClaimable(f"Job {job.job_code} is already claimed")
            await self.session.refresh(job)

            await self.lifecycle.transition(device, DeviceStatus.UNDER_REPAIR, job)
            self.record_event(
                "job.claimed",
                f"{job.job_code} claimed for {device.barcode}",
                actor=principal,
                device_id=device.id,
                job_id=str(job.id),
            )
        return job.id

    # PUBLIC_INTERFACE
    async def dispatch_track(
        self, device_id: UUID, track: Track, payload: TrackPayload, principal: Principal
    ) -> DispatchResult:
        """Send a track to its specialists; returns the created sub-job (or panel) ids."""
        info = TRACKS[track]
        async with self.unit_of_work():
            device, job = await self._owned(device_id, principal)
            await self._reject_outstanding(device, track)

            if track is Track.PAINT:
                panels = self._panels(payload)
                created = [
                    PaintPanel(device_id=device.id, repair_job_id=job.id, panel_type=p) for p in panels
                ]
            else:
                created = [self._new_sub_job(track, device, job, payload)]
            self.session.add_all(created)
            _set_track_flags(device, info, required=True, completed=False)
            await self.session.flush()

            self.record_event(
                "track.dispatched",
                f"{info.label} dispatched for {device.barcode}",
                actor=principal,
                device_id=device.id,
                recipient_roles=[info.specialist_role.value],
                track=track.value,
            )
        return DispatchResult(track=track, sub_job_ids=[c.id for c in created])

    # PUBLIC_INTERFACE
    async def complete_track_self(
        self, device_id: UUID, track: Track, payload: TrackPayload, principal: Principal
    ) -> DispatchResult:
        """Record that the coordinator did the track's work personally."""
        info = TRACKS[track]
        async with self.unit_of_work():
            device, job = await self._owned(device_id, principal)
            await self._reject_outstanding(device, track)
            now = utcnow()

            if track is Track.PAINT:
                created = [
                    PaintPanel(
                        device_id=device.id,
                        repair_job_id=job.id,
                        panel_type=p,
                        status=PanelStatus.FITTED.value,
                        assigned_to_id=principal.id,
                        completed_by_l2=True,
                    )
                    for p in self._panels(payload)
                ]
            else:
                sub_job = self._new_sub_job(track, device, job, payload)
                sub_job.status = SubJobStatus.COMPLETED.value
                sub_job.assigned_to_id = principal.id
                sub_job.started_at = now
                sub_job.completed_at = now
                sub_job.completed_by_l2 = True
                if track is Track.BATTERY:
                    sub_job.final_capacity = payload.final_capacity
                if track is Track.L3:
                    sub_job.resolution = payload.resolution
                created = [sub_job]
            self.session.add_all(created)
            _set_track_flags(device, info, required=True, completed=True)
            await self.session.flush()

            self.record_event(
                "track.completed",
                f"{info.label} completed by coordinator for {device.barcode}",
                actor=principal,
                device_id=device.id,
                track=track.value,
            )
        return DispatchResult(track=track, sub_job_ids=[c.id for c in created])

    # PUBLIC_INTERFACE
    async def collect_track(self, device_id: UUID, track: Track, principal: Principal) -> Device:
        """Accept finished specialist work back into the device."""
        info = TRACKS[track]
        async with self.unit_of_work():
            device, _job = await self._owned(device_id, principal)
            if getattr(device, info.completed_attr):
                raise PreconditionFailed(f"{info.label} already collected")
            if not getattr(device, info.required_attr):
                raise PreconditionFailed(f"Nothing to collect for {info.label.lower()}")

            if track is Track.PAINT:
                panels = await self.sub_jobs.panels_for_device(device.id)
                if not panels:
                    raise PreconditionFailed("Nothing to collect for paint work")
                waiting = [p.panel_type for p in panels if p.status not in COLLECTABLE_PANEL]
                if waiting:
                    raise PreconditionFailed(
                        "Paint panels not ready for collection: " + ", ".join(waiting),
                        details={"panels": waiting},
                    )
                for panel in panels:
                    panel.status = PanelStatus.FITTED.value
            else:
                latest = await self.sub_jobs.latest(info.model, device.id)
                if latest is None:
                    raise PreconditionFailed(f"Nothing to collect for {info.label.lower()}")
                if latest.status != SubJobStatus.COMPLETED.value:
                    raise PreconditionFailed(f"{info.label} is not completed yet (status {latest.status})")

            setattr(device, info.completed_attr, True)
            self.record_event(
                "track.collected",
                f"{info.label} collected for {device.barcode}",
                actor=principal,
                device_id=device.id,
                track=track.value,
            )
        return device

    # PUBLIC_INTERFACE
    async def cancel_track(self, device_id: UUID, track: Track, principal: Principal) -> Device:
        """Withdraw outstanding work on a track; the track is no longer required."""
        info = TRACKS[track]
        async with self.unit_of_work():
            device, _job = await self._owned(device_id, principal)
            if track is Track.PAINT:
                outstanding = [
                    p for p in await self.sub_jobs.panels_for_device(device.id)
                    if p.status in OUTSTANDING_PANEL
                ]
            else:
                outstanding = await self.sub_jobs.outstanding(info.model, device.id)
            if not outstanding:
                raise PreconditionFailed(f"No outstanding {info.label.lower()} to cancel")
            for item in outstanding:
                item.status = (
                    PanelStatus.CANCELLED.value if track is Track.PAINT else SubJobStatus.CANCELLED.value
                )
            _set_track_flags(device, info, required=False, completed=False)
            self.record_event(
                "track.cancelled",
                f"{info.label} cancelled for {device.barcode}",
                actor=principal,
                device_id=device.id,
                track=track.value,
            )
        return device

    # PUBLIC_INTERFACE
    async def send_to_qc(self, device_id: UUID, principal: Principal) -> Device:
        """Finish the repair and queue the device for QC once every required track is done."""
        async with self.unit_of_work():
            device, job = await self._owned(device_id, principal)
            if device.status != DeviceStatus.UNDER_REPAIR.value:
                raise PreconditionFailed(
                    f"Device {device.barcode} must be UNDER_REPAIR to send to QC (status {device.status})"
                )
            missing = missing_tracks(device)
            if missing:
                raise IncompleteParallelWork(missing)

            device.repair_completed = True
            job.repair_end_date = utcnow()
            await self.lifecycle.transition(device, DeviceStatus.AWAITING_QC, job)
            self.record_event(
                "device.sent_to_qc",
                f"{device.barcode} sent to QC ({job.job_code})",
                actor=principal,
                device_id=device.id,
                recipient_roles=[Role.QC_ENGINEER.value],
            )
        return device

    # PUBLIC_INTERFACE
    async def request_spares(
        self, device_id: UUID, spares_text: str, notes: Optional[str], principal: Principal
    ) -> RepairJob:
        """Ask the warehouse for more parts mid-repair; the device waits for them."""
        async with self.unit_of_work():
            device, job = await self._owned(device_id, principal)
            lines, errors = parse_spares(spares_text)
            if errors:
                raise ValidationFailed("; ".join(errors), details={"errors": errors})
            if not lines:
                raise ValidationFailed("No spare parts specified")

            text = spares_text.strip()
            job.spares_required = append_text(job.spares_required, text)
            if notes and notes.strip():
                job.notes = append_text(job.notes, notes.strip(), sep="\n")
            if device.status == DeviceStatus.WAITING_FOR_SPARES.value:
                job.status = RepairJobStatus.WAITING_FOR_SPARES.value
            else:
                await self.lifecycle.transition(device, DeviceStatus.WAITING_FOR_SPARES, job)

            self.record_event(
                "spares.requested",
                f"Spares requested for {device.barcode} ({job.job_code}): {text}",
                actor=principal,
                device_id=device.id,
                recipient_roles=[Role.MIS_WAREHOUSE_EXECUTIVE.value, Role.WAREHOUSE_MANAGER.value],
                job_id=str(job.id),
                spares=text,
            )
        return job

    # PUBLIC_INTERFACE
    async def resume_repair(self, device_id: UUID, principal: Principal) -> Device:
        """Pick a claimed device back up once its spares have been issued."""
        async with self.unit_of_work():
            device, job = await self._owned(device_id, principal)
            if device.status != DeviceStatus.READY_FOR_REPAIR.value:
                raise PreconditionFailed(
                    f"Device {device.barcode} cannot resume from {device.status}; spares must be issued first"
                )
            await self.lifecycle.transition(device, DeviceStatus.UNDER_REPAIR, job)
        return device

    # ------------------------------------------------------------------ specialists

    # PUBLIC_INTERFACE
    async def start_sub_job(self, track: Track, sub_job_id: UUID, principal: Principal):
        """Specialist takes a pending sub-job."""
        info = self._specialist_track(track, principal)
        async with self.unit_of_work():
            sub_job = await self._sub_job(info, sub_job_id)
            if sub_job.status != SubJobStatus.PENDING.value:
                raise PreconditionFailed("Job is not in pending status")
            sub_job.status = SubJobStatus.IN_PROGRESS.value
            sub_job.assigned_to_id = principal.id
            sub_job.started_at = utcnow()
        return sub_job

    # PUBLIC_INTERFACE
    async def complete_sub_job(
        self, track: Track, sub_job_id: UUID, data: SubJobComplete, principal: Principal
    ):
        """Specialist finishes their sub-job; the coordinator is notified to collect."""
        info = self._specialist_track(track, principal)
        async with self.unit_of_work():
            sub_job = await self._sub_job(info, sub_job_id)
            if sub_job.status != SubJobStatus.IN_PROGRESS.value:
                raise PreconditionFailed("Job is not in progress")
            if sub_job.assigned_to_id != principal.id:
                raise NotJobOwner("Job is assigned to another technician")

            sub_job.status = SubJobStatus.COMPLETED.value
            sub_job.completed_at = utcnow()
            if data.notes:
                sub_job.notes = append_text(sub_job.notes, data.notes, sep="\n")
            if track is Track.BATTERY:
                sub_job.final_capacity = data.final_capacity
            if track is Track.L3:
                sub_job.resolution = data.resolution

            coordinator = await self._coordinator_of(sub_job.repair_job_id)
            self.record_event(
                "track.ready",
                f"{info.label} finished; ready for collection",
                actor=principal,
                device_id=sub_job.device_id,
                recipient_ids=[coordinator] if coordinator else [],
                track=track.value,
            )
        return sub_job

    # PUBLIC_INTERFACE
    async def advance_paint_panel(self, panel_id: UUID, target: PanelStatus, principal: Principal) -> PaintPanel:
        """Paint shop moves a panel AWAITING_PAINT -> IN_PAINT -> READY_FOR_COLLECTION."""
        self.require_role(principal, Role.PAINT_SHOP)
        async with self.unit_of_work():
            panel = await self.sub_jobs.get_panel(panel_id, for_update=True)
            if panel is None:
                raise NotFound(f"Paint panel {panel_id} not found")
            current = PanelStatus(panel.status)
            if PANEL_MOVES.get(current) is not target:
                raise PreconditionFailed(f"Cannot move panel from {current.value} to {target.value}")

            panel.status = target.value
            if target is PanelStatus.IN_PAINT:
                panel.assigned_to_id = principal.id
            await self.session.flush()

            if target is PanelStatus.READY_FOR_COLLECTION:
                panels = await self.sub_jobs.panels_for_device(panel.device_id)
                if all(p.status in COLLECTABLE_PANEL for p in panels):
                    coordinator = await self._coordinator_of(panel.repair_job_id)
                    self.record_event(
                        "paint.ready",
                        "All paint panels are ready for collection",
                        actor=principal,
                        device_id=panel.device_id,
                        recipient_ids=[coordinator] if coordinator else [],
                        panels=[p.panel_type for p in panels],
                    )
        return panel

    # ------------------------------------------------------------------ helpers

    async def _device(self, device_id: UUID) -> Device:
        device = await self.devices.get_device(device_id, for_update=True)
        if device is None:
            raise NotFound(f"Device {device_id} not found")
        return device

    async def _owned(self, device_id: UUID, principal: Principal) -> Tuple[Device, RepairJob]:
        """Load a device and its open job, checking the caller coordinates it."""
        device = await self._device(device_id)
        job = await self.jobs.active_for_device(device.id, for_update=True)
        if job is None or job.l2_engineer_id is None:
            raise PreconditionFailed(f"Device {device.barcode} has no claimed repair job")
        if job.l2_engineer_id != principal.id:
            raise NotJobOwner(f"Job {job.job_code} is coordinated by another engineer")
        if device.status not in COORDINATOR_STATUSES:
            raise PreconditionFailed(
                f"Device {device.barcode} is not in repair (status {device.status})"
            )
        return device, job

    async def _reject_outstanding(self, device: Device, track: Track) -> None:
        info = TRACKS[track]
        if track is Track.PAINT:
            busy = [
                p for p in await self.sub_jobs.panels_for_device(device.id)
                if p.status in OUTSTANDING_PANEL
            ]
        else:
            busy = await self.sub_jobs.outstanding(info.model, device.id)
        if busy:
            raise PreconditionFailed(f"{info.label} already in progress for {device.barcode}")

    @staticmethod
    def _panels(payload: TrackPayload) -> List[str]:
        if not payload.panels:
            raise ValidationFailed("At least one panel must be selected")
        unknown = [p for p in payload.panels if p not in PANEL_TYPES]
        if unknown:
            raise ValidationFailed(
                "Unknown paint panel type(s): " + ", ".join(unknown),
                details={"allowed": list(PANEL_TYPES)},
            )
        return list(dict.fromkeys(payload.panels))

    @staticmethod
    def _new_sub_job(track: Track, device: Device, job: RepairJob, payload: TrackPayload):
        common = dict(device_id=device.id, repair_job_id=job.id, notes=payload.notes)
        if track is Track.DISPLAY:
            return DisplayRepairJob(reported_issues=payload.reported_issues, **common)
        if track is Track.BATTERY:
            return BatteryBoostJob(
                initial_capacity=payload.initial_capacity,
                target_capacity=payload.target_capacity,
                **common,
            )
        if payload.issue_type is None:
            raise ValidationFailed("issue_type is required for L3 repair")
        return L3RepairJob(
            issue_type=payload.issue_type.value,
            description=payload.description,
            **common,
        )

    def _specialist_track(self, track: Track, principal: Principal) -> TrackInfo:
        if track is Track.PAINT:
            raise ValidationFailed("Paint work is tracked per panel")
        info = TRACKS[track]
        self.require_role(principal, info.specialist_role)
        return info

    async def _sub_job(self, info: TrackInfo, sub_job_id: UUID):
        sub_job = await self.sub_jobs.get_sub_job(info.model, sub_job_id, for_update=True)
        if sub_job is None:
            raise NotFound(f"{info.label} job {sub_job_id} not found")
        return sub_job

    async def _coordinator_of(self, job_id: Optional[UUID]) -> Optional[UUID]:
        if job_id is None:
            return None
        job = await self.jobs.get_job(job_id)
        return job.l2_engineer_id if job else None
