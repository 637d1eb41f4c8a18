from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from refurb_api.core.errors import NotFound, NotReadyForQC, ValidationFailed
from refurb_api.core.security import Principal, Role
from refurb_api.db.base import utcnow
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import (
    ChecklistResult,
    ChecklistStage,
    DeviceStatus,
    QCStatus,
)
from refurb_api.db.models.quality import InspectionChecklistItem, QCRecord
from refurb_api.db.models.repair import RepairJob
from refurb_api.repositories.devices import DeviceRepository
from refurb_api.repositories.quality import ChecklistRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.qc import QCOutcome, QCSubmission
from refurb_api.services import checklist
from refurb_api.services.base import BaseService
from refurb_api.services.lifecycle import Lifecycle
from refurb_api.services.spares import append_text

logger = logging.getLogger(__name__)


def qc_blockers(device: Device) -> List[str]:
    """Reasons the device cannot be QC'd yet; empty when it can."""
    blockers: List[str] = []
    if device.status != DeviceStatus.AWAITING_QC.value:
        blockers.append(f"Device is not awaiting QC (status {device.status})")
    if device.repair_required and not device.repair_completed:
        blockers.append("Repair not completed")
    if device.paint_required and not device.paint_completed:
        blockers.append("Paint work not completed")
    return blockers


def rework_notes(remarks: str, snapshot: List[dict]) -> str:
    failed = [
        f"[{row['item_index']}] {row['item_text']}" + (f": {row['notes']}" if row.get("notes") else "")
        for row in snapshot
        if row["status"] == ChecklistResult.FAIL.value
    ]
    summary = "; ".join(failed) if failed else "no failed items recorded"
    return f"QC FAILED - REWORK REQUIRED\nQC Remarks: {remarks}\nChecklist: {summary}"


class QCService(BaseService):
    """
    Final quality gate before stock.

    Pass grades the device and closes the repair; fail sends it back for
    rework with the QC remarks appended to the repair job.
    """

    def __init__(self, session: AsyncSession, **kwargs) -> None:
        super().__init__(session, **kwargs)
        self.devices = DeviceRepository(session)
        self.jobs = RepairJobRepository(session)
        self.checklists = ChecklistRepository(session)
        self.lifecycle = Lifecycle(session)

    # PUBLIC_INTERFACE
    async def submit_qc(self, device_id: UUID, submission: QCSubmission, principal: Principal) -> QCOutcome:
        """Record a QC verdict and move the device on (stock or rework)."""
        self.require_role(principal, Role.QC_ENGINEER)
        async with self.unit_of_work():
            device = await self._device(device_id)
            blockers = qc_blockers(device)
            if blockers:
                raise NotReadyForQC("; ".join(blockers), details={"reasons": blockers})

            remarks = (submission.remarks or "").strip()
            if submission.passed and submission.grade is None:
                raise ValidationFailed("A grade (A or B) is required to pass QC")
            if not submission.passed and not remarks:
                raise ValidationFailed("Remarks are required when QC fails")

            snapshot = await self._snapshot(device.id)
            record = QCRecord(
                device_id=device.id,
                qc_eng_id=principal.id,
                status=(QCStatus.PASSED if submission.passed else QCStatus.FAILED_REWORK).value,
                grade=submission.grade.value if submission.grade else None,
                remarks=remarks or None,
                checklist_snapshot=snapshot,
            )
            self.session.add(record)
            job = await self.jobs.latest_for_device(device.id, for_update=True)

            if submission.passed:
                device.grade = submission.grade.value
                await self.lifecycle.transition(device, DeviceStatus.READY_FOR_STOCK, job)
                self.record_event(
                    "qc.passed",
                    f"{device.barcode} passed QC with grade {device.grade}",
                    actor=principal,
                    device_id=device.id,
                )
            else:
                job = await self._reopen(device, job, rework_notes(remarks, snapshot), principal)
            await self.session.flush()

        return QCOutcome(qc_record_id=record.id, device_status=device.status, repair_job_id=job.id if job else None)

    # PUBLIC_INTERFACE
    async def update_qc_checklist_item(
        self,
        device_id: UUID,
        item_index: int,
        status: ChecklistResult,
        notes: Optional[str],
        principal: Principal,
    ) -> InspectionChecklistItem:
        """Re-check one checklist item during QC; the latest result per item wins."""
        self.require_role(principal, Role.QC_ENGINEER)
        async with self.unit_of_work():
            device = await self._device(device_id)
            if device.status != DeviceStatus.AWAITING_QC.value:
                raise NotReadyForQC(f"Device is not awaiting QC (status {device.status})")
            catalog = {item.index: item for item in checklist.get_checklist(device.category)}
            if item_index not in catalog:
                raise NotFound(f"Checklist item {item_index} does not exist for {device.category}")
            row = InspectionChecklistItem(
                device_id=device.id,
                item_index=item_index,
                item_text=catalog[item_index].text,
                status=status.value,
                notes=notes,
                checked_by_id=principal.id,
                checked_at_stage=ChecklistStage.QC.value,
                checked_at=utcnow(),
            )
            self.session.add(row)
            await self.session.flush()
        return row

    async def _reopen(
        self, device: Device, job: Optional[RepairJob], notes: str, principal: Principal
    ) -> RepairJob:
        device.repair_completed = False
        if device.paint_required:
            device.paint_completed = False

        previous_coordinator = None
        if job is None:
            job = RepairJob(
                job_code=await self.jobs.next_job_code(),
                device_id=device.id,
                inspection_eng_id=principal.id,
                reported_issues={"functional": "", "cosmetic": "", "failed_items": []},
                notes=notes,
            )
            self.session.add(job)
            device.repair_required = True
        else:
            previous_coordinator = job.l2_engineer_id
            job.notes = append_text(job.notes, notes, sep="\n\n")
            job.l2_engineer_id = None
            job.repair_end_date = None

        await self.lifecycle.transition(device, DeviceStatus.READY_FOR_REPAIR, job)
        self.record_event(
            "qc.failed",
            f"{device.barcode} failed QC and needs rework ({job.job_code})",
            actor=principal,
            device_id=device.id,
            recipient_ids=[previous_coordinator] if previous_coordinator else [],
            recipient_roles=[] if previous_coordinator else [Role.L2_ENGINEER.value],
            job_id=str(job.id),
        )
        logger.info("QC failed for %s; job %s reopened", device.barcode, job.job_code)
        return job

    async def _snapshot(self, device_id: UUID) -> List[dict]:
        rows = await self.checklists.latest_per_index(device_id)
        return [
            {
                "item_index": row.item_index,
                "item_text": row.item_text,
                "status": row.status,
                "notes": row.notes,
                "stage": row.checked_at_stage,
            }
            for _, row in sorted(rows.items())
        ]

    async def _device(self, device_id: UUID) -> Device:
        device = await self.devices.get_device(device_id, for_update=True)
        if device is None:
            raise NotFound(f"Device {device_id} not found")
        return device
