import pytest

from refurb_api.core.errors import NotFound, NotReadyForQC, PermissionDenied, ValidationFailed
from refurb_api.core.security import Role
from refurb_api.db.models.enums import ChecklistResult, Grade
from refurb_api.repositories.quality import ChecklistRepository, QCRecordRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.qc import QCSubmission
from refurb_api.services.coordination import CoordinationService
from refurb_api.services.qc import QCService, rework_notes


def test_rework_notes_lists_failed_items():
    snapshot = [
        {"item_index": 2, "item_text": "Dead pixel test", "status": "FAIL", "notes": "3 pixels"},
        {"item_index": 3, "item_text": "Brightness", "status": "PASS", "notes": None},
    ]
    assert rework_notes("Screen fault", snapshot) == (
        "QC FAILED - REWORK REQUIRED\nQC Remarks: Screen fault\nChecklist: [2] Dead pixel test: 3 pixels"
    )
    assert rework_notes("x", []).endswith("Checklist: no failed items recorded")


async def test_pass_grades_and_closes_job(session, bus, workflow, qc_engineer):
    device = await workflow.awaiting_qc()

    outcome = await QCService(session, events=bus).submit_qc(
        device.id, QCSubmission(passed=True, grade=Grade.A), qc_engineer
    )

    assert outcome.device_status == "READY_FOR_STOCK"
    assert device.grade == "A"
    assert device.location == "REA-01"
    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job.status == "REPAIR_CLOSED"
    records = await QCRecordRepository(session).list_for_device(device.id)
    assert [r.status for r in records] == ["PASSED"]
    assert len(records[0].checklist_snapshot) == 20


async def test_clean_device_passes_without_a_job(session, bus, workflow, qc_engineer):
    device = await workflow.inspected(failures={})
    outcome = await QCService(session, events=bus).submit_qc(
        device.id, QCSubmission(passed=True, grade=Grade.B), qc_engineer
    )
    assert outcome.repair_job_id is None
    assert device.status == "READY_FOR_STOCK"


async def test_fail_reopens_job_for_any_coordinator(session, bus, workflow, qc_engineer, principal):
    device = await workflow.awaiting_qc(failures={2: "3 pixels"})
    coordinator = workflow.l2

    outcome = await QCService(session, events=bus).submit_qc(
        device.id, QCSubmission(passed=False, remarks="Pixels still dead"), qc_engineer
    )

    assert outcome.device_status == "READY_FOR_REPAIR"
    assert not device.repair_completed
    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job.status == "READY_FOR_REPAIR"
    assert job.l2_engineer_id is None
    assert job.repair_end_date is None
    assert job.notes.startswith("QC FAILED - REWORK REQUIRED\nQC Remarks: Pixels still dead")
    assert "[2] Dead pixel test: 0 dead/stuck pixels found: 3 pixels" in job.notes

    failed = next(e for e in bus.drain() if e.type == "qc.failed")
    assert failed.recipient_ids == [coordinator.id]

    other = principal(Role.L2_ENGINEER)
    await CoordinationService(session, events=bus).claim_for_coordination(device.id, other)
    assert device.status == "UNDER_REPAIR"


async def test_fail_on_clean_device_creates_job(session, bus, workflow, qc_engineer):
    device = await workflow.inspected(failures={})

    outcome = await QCService(session, events=bus).submit_qc(
        device.id, QCSubmission(passed=False, remarks="Hinge loose"), qc_engineer
    )

    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job is not None
    assert device.repair_required
    failed = next(e for e in bus.drain() if e.type == "qc.failed")
    assert failed.recipient_roles == ["L2_ENGINEER"]


async def test_verdict_validation(session, bus, workflow, qc_engineer):
    device = await workflow.awaiting_qc()
    device_id = device.id
    svc = QCService(session, events=bus)
    with pytest.raises(ValidationFailed):
        await svc.submit_qc(device_id, QCSubmission(passed=True), qc_engineer)
    with pytest.raises(ValidationFailed):
        await svc.submit_qc(device_id, QCSubmission(passed=False, remarks="  "), qc_engineer)


async def test_device_in_repair_is_not_ready(session, bus, workflow, qc_engineer):
    device = await workflow.claimed()
    with pytest.raises(NotReadyForQC) as exc:
        await QCService(session, events=bus).submit_qc(
            device.id, QCSubmission(passed=True, grade=Grade.A), qc_engineer
        )
    assert "Repair not completed" in exc.value.details["reasons"]


async def test_qc_recheck_supersedes_inspection_row(session, bus, workflow, qc_engineer):
    device = await workflow.awaiting_qc(failures={2: "3 pixels"})
    svc = QCService(session, events=bus)

    row = await svc.update_qc_checklist_item(device.id, 2, ChecklistResult.PASS, "fixed", qc_engineer)
    assert row.checked_at_stage == "QC"

    latest = await ChecklistRepository(session).latest_per_index(device.id)
    assert latest[2].status == "PASS"
    assert latest[2].notes == "fixed"

    with pytest.raises(NotFound):
        await svc.update_qc_checklist_item(device.id, 21, ChecklistResult.PASS, None, qc_engineer)


async def test_qc_requires_qc_role(session, bus, workflow):
    device = await workflow.awaiting_qc()
    with pytest.raises(PermissionDenied):
        await QCService(session, events=bus).submit_qc(
            device.id, QCSubmission(passed=True, grade=Grade.A), workflow.l2
        )
