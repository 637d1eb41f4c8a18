from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import NotFound, PreconditionFailed, ValidationFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.base import utcnow
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import (
    PANEL_TYPES,
    ChecklistResult,
    ChecklistStage,
    DeviceStatus,
)
from refurb_api.db.models.quality import InspectionChecklistItem
from refurb_api.db.models.repair import RepairJob
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.inspection import InspectionOutcome, InspectionSubmission
from refurb_api.services import checklist
from refurb_api.services.base import BaseService
from refurb_api.services.lifecycle import Lifecycle
from refurb_api.services.spares import parse_spares

logger = logging.getLogger(__name__)


class InspectionService(BaseService):
    """
    Routes a device after its inspection checklist.

    Any failed item or requested spare opens a repair job; requested paint
    panels alone also open one. A clean device goes straight to QC.
    """

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.devices = DeviceRepository(session)
        self.jobs = RepairJobRepository(session)
        self.lifecycle = Lifecycle(session)

    # PUBLIC_INTERFACE
    async def start_inspection(self, device_id: UUID, principal: Principal) -> Device:
        """Move a received device into the inspection queue."""
        self.require_role(principal, Role.INSPECTION_ENGINEER, Role.MIS_WAREHOUSE_EXECUTIVE)
        async with self.unit_of_work():
            device = await self._load(device_id)
            await self.lifecycle.transition(device, DeviceStatus.PENDING_INSPECTION)
        return device

    # PUBLIC_INTERFACE
    async def route_after_inspection(
        self, device_id: UUID, submission: InspectionSubmission, principal: Principal
    ) -> InspectionOutcome:
        """
        Record the checklist and move the device to its next status.

        Returns the next status and, when repair or paint is needed, the new
        repair job id.
        """
        self.require_role(principal, Role.INSPECTION_ENGINEER)
        async with self.unit_of_work():
            device = await self._load(device_id)
            if device.status not in (DeviceStatus.RECEIVED.value, DeviceStatus.PENDING_INSPECTION.value):
                raise PreconditionFailed(
                    f"Device {device.barcode} is not awaiting inspection (status {device.status})"
                )
            if await self.jobs.active_for_device(device.id) is not None:
                raise PreconditionFailed(f"Device {device.barcode} already has an open repair job")

            catalog = checklist.validate_results(device.category, [r.item_index for r in submission.checklist])
            unknown_panels = [p for p in submission.paint_panels if p not in PANEL_TYPES]
            if unknown_panels:
                raise ValidationFailed(
                    "Unknown paint panel type(s): " + ", ".join(unknown_panels),
                    details={"allowed": list(PANEL_TYPES)},
                )
            spares_text = (submission.spares_required or "").strip()
            spare_lines, spare_errors = parse_spares(spares_text)
            if spare_errors:
                raise ValidationFailed("; ".join(spare_errors), details={"errors": spare_errors})

            if device.status == DeviceStatus.RECEIVED.value:
                await self.lifecycle.transition(device, DeviceStatus.PENDING_INSPECTION)

            now = utcnow()
            failed: List[str] = []
            for result in sorted(submission.checklist, key=lambda r: r.item_index):
                item = catalog[result.item_index]
                self.session.add(
                    InspectionChecklistItem(
                        device_id=device.id,
                        item_index=item.index,
                        item_text=item.text,
                        status=result.status.value,
                        notes=result.notes,
                        checked_by_id=principal.id,
                        checked_at_stage=ChecklistStage.INSPECTION.value,
                        checked_at=now,
                    )
                )
                if checklist.is_failure(result.status):
                    failed.append(checklist.format_item(item, result.notes))

            has_spares = bool(spare_lines)
            repair_needed = bool(failed) or has_spares
            paint_needed = bool(submission.paint_panels)

            job: Optional[RepairJob] = None
            if repair_needed or paint_needed:
                job = RepairJob(
                    job_code=await self.jobs.next_job_code(),
                    device_id=device.id,
                    inspection_eng_id=principal.id,
                    reported_issues={
                        "functional": "\n".join(failed),
                        "cosmetic": (submission.cosmetic_issues or "").strip(),
                        "failed_items": failed,
                    },
                    spares_required=spares_text or None,
                    recommended_paint_panels=list(submission.paint_panels),
                )
                self.session.add(job)
                device.repair_required = True
                device.repair_completed = False
                target = DeviceStatus.WAITING_FOR_SPARES if has_spares else DeviceStatus.READY_FOR_REPAIR
            else:
                target = DeviceStatus.AWAITING_QC

            await self.lifecycle.transition(device, target, job)

            if has_spares and job is not None:
                self.record_event(
                    "spares.requested",
                    f"Spares requested for {device.barcode} ({job.job_code}): {spares_text}",
                    actor=principal,
                    device_id=device.id,
                    recipient_roles=[Role.MIS_WAREHOUSE_EXECUTIVE.value, Role.WAREHOUSE_MANAGER.value],
                    job_id=str(job.id),
                    spares=spares_text,
                )
            self.record_event(
                "device.inspected",
                f"{device.barcode} inspected: {len(failed)} failed item(s), next {target.value}",
                actor=principal,
                device_id=device.id,
            )
            logger.info("Inspection routed device %s to %s", device.barcode, target.value)

        return InspectionOutcome(next_status=target.value, repair_job_id=job.id if job else None)

    async def _load(self, device_id: UUID) -> Device:
        device = await self.devices.get_device(device_id, for_update=True)
        if device is None:
            raise NotFound(f"Device {device_id} not found")
        return device
