import pytest

from refurb_api.core.errors import PermissionDenied, PreconditionFailed, ValidationFailed
from refurb_api.db.models.enums import ChecklistResult
from refurb_api.repositories.quality import ChecklistRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.schemas.inspection import ChecklistItemResult, InspectionSubmission
from refurb_api.services.inspection import InspectionService

from .conftest import checklist_results


async def _route(session, bus, device, inspector, **submission):
    submission.setdefault("checklist", checklist_results())
    return await InspectionService(session, events=bus).route_after_inspection(
        device.id, InspectionSubmission(**submission), inspector
    )


async def test_failed_battery_item_opens_repair_job(session, bus, workflow, inspector):
    device = await workflow.received()

    outcome = await _route(
        session, bus, device, inspector, checklist=checklist_results(failures={8: "45% capacity"})
    )

    assert outcome.next_status == "READY_FOR_REPAIR"
    assert device.status == "READY_FOR_REPAIR"
    assert device.repair_required and not device.repair_completed
    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job.status == "READY_FOR_REPAIR"
    assert job.inspection_eng_id == inspector.id
    assert job.reported_issues["functional"] == (
        "[8] Battery health check (minimum 70% acceptable): 45% capacity"
    )
    assert job.job_code.startswith("JOB-")


async def test_clean_device_goes_straight_to_qc(session, bus, workflow, inspector):
    device = await workflow.received()
    results = checklist_results()
    results[4] = ChecklistItemResult(item_index=5, status=ChecklistResult.NOT_APPLICABLE)

    outcome = await _route(session, bus, device, inspector, checklist=results)

    assert outcome.next_status == "AWAITING_QC"
    assert outcome.repair_job_id is None
    assert device.location == "AWA-01"
    rows = await ChecklistRepository(session).list_for_device(device.id)
    assert len(rows) == 20
    assert {r.checked_at_stage for r in rows} == {"INSPECTION"}


async def test_requested_spares_wait_for_warehouse(session, bus, workflow, inspector):
    device = await workflow.received()

    outcome = await _route(session, bus, device, inspector, spares_required="RAM-001:2, SSD-002")

    assert outcome.next_status == "WAITING_FOR_SPARES"
    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job.status == "WAITING_FOR_SPARES"
    assert job.spares_required == "RAM-001:2, SSD-002"
    types = [e.type for e in bus.drain()]
    assert "spares.requested" in types
    assert types[-1] == "device.inspected"


async def test_paint_panels_alone_open_a_job(session, bus, workflow, inspector):
    device = await workflow.received()

    outcome = await _route(
        session, bus, device, inspector, paint_panels=["Top Cover"], cosmetic_issues="Scuffed lid"
    )

    assert outcome.next_status == "READY_FOR_REPAIR"
    job = await RepairJobRepository(session).get_job(outcome.repair_job_id)
    assert job.recommended_paint_panels == ["Top Cover"]
    assert job.reported_issues["cosmetic"] == "Scuffed lid"
    # advisory only; the coordinator decides whether paint is dispatched
    assert not device.paint_required


async def test_incomplete_checklist_is_rejected_without_side_effects(session, bus, workflow, inspector):
    device = await workflow.received()

    with pytest.raises(ValidationFailed) as exc:
        await _route(session, bus, device, inspector, checklist=checklist_results()[:19])
    assert exc.value.details["missing"] == [20]

    await session.refresh(device)
    assert device.status == "RECEIVED"
    assert await ChecklistRepository(session).list_for_device(device.id) == []


async def test_unknown_panel_type_is_rejected(session, bus, workflow, inspector):
    device = await workflow.received()
    with pytest.raises(ValidationFailed):
        await _route(session, bus, device, inspector, paint_panels=["Keyboard Deck"])


async def test_bad_spares_quantity_is_rejected(session, bus, workflow, inspector):
    device = await workflow.received()
    with pytest.raises(ValidationFailed):
        await _route(session, bus, device, inspector, spares_required="RAM-001:0")


async def test_device_can_only_be_inspected_once(session, bus, workflow, inspector):
    device = await workflow.inspected()
    with pytest.raises(PreconditionFailed):
        await _route(session, bus, device, inspector)


async def test_start_inspection_moves_device_to_queue(session, bus, workflow, inspector):
    device = await workflow.received()
    await InspectionService(session, events=bus).start_inspection(device.id, inspector)
    assert device.status == "PENDING_INSPECTION"


async def test_inspection_requires_inspector_role(session, bus, workflow, l2):
    device = await workflow.received()
    with pytest.raises(PermissionDenied):
        await _route(session, bus, device, l2)
