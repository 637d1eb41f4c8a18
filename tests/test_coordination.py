from datetime import timedelta

import pytest

from refurb_api.core.errors import (
    IncompleteParallelWork,
    NotClaimable,
    NotJobOwner,
    PermissionDenied,
    PreconditionFailed,
    ValidationFailed,
)
from refurb_api.core.security import Role
from refurb_api.db.base import as_utc, utcnow
from refurb_api.db.models.enums import L3IssueType, PanelStatus, Track
from refurb_api.repositories.repair import RepairJobRepository, SubJobRepository
from refurb_api.schemas.coordination import SubJobComplete, TrackPayload
from refurb_api.services.coordination import TRACKS, CoordinationService, missing_tracks
from refurb_api.services.spares import SparesService


def _svc(session, bus):
    return CoordinationService(session, events=bus)


async def test_claim_sets_coordinator_and_tat(session, bus, workflow, l2):
    device = await workflow.inspected()

    job_id = await _svc(session, bus).claim_for_coordination(device.id, l2)

    job = await RepairJobRepository(session).get_job(job_id)
    assert job.l2_engineer_id == l2.id
    assert job.status == "UNDER_REPAIR"
    assert as_utc(job.tat_due_date) - as_utc(job.repair_start_date) == timedelta(days=5)
    assert device.status == "UNDER_REPAIR"
    assert device.location == "UND-01"


async def test_second_claim_is_rejected(session, bus, workflow, principal):
    device = await workflow.inspected()
    await _svc(session, bus).claim_for_coordination(device.id, principal(Role.L2_ENGINEER))

    with pytest.raises(NotClaimable):
        await _svc(session, bus).claim_for_coordination(device.id, principal(Role.L2_ENGINEER))


async def test_conditional_claim_has_one_winner(session, bus, workflow, principal):
    device = await workflow.inspected()
    jobs = RepairJobRepository(session)
    job = await jobs.active_for_device(device.id)
    now = utcnow()

    first = await jobs.claim(job.id, principal(Role.L2_ENGINEER).id, started_at=now, tat_due=now)
    second = await jobs.claim(job.id, principal(Role.L2_ENGINEER).id, started_at=now, tat_due=now)

    assert (first, second) == (True, False)


async def test_claim_needs_open_job(session, bus, workflow, l2):
    device = await workflow.inspected(failures={})
    with pytest.raises(NotClaimable):
        await _svc(session, bus).claim_for_coordination(device.id, l2)


async def test_display_only_flow_to_qc(session, bus, workflow, principal):
    device = await workflow.claimed()
    device_id = device.id
    l2 = workflow.l2
    tech = principal(Role.DISPLAY_TECHNICIAN)
    svc = _svc(session, bus)

    dispatched = await svc.dispatch_track(device_id, Track.DISPLAY, TrackPayload(reported_issues="Flicker"), l2)
    assert device.display_repair_required and not device.display_repair_completed

    with pytest.raises(IncompleteParallelWork) as exc:
        await svc.send_to_qc(device_id, l2)
    assert exc.value.missing_tracks == ["Display repair not completed"]

    sub_job_id = dispatched.sub_job_ids[0]
    await svc.start_sub_job(Track.DISPLAY, sub_job_id, tech)
    with pytest.raises(PreconditionFailed):
        await svc.collect_track(device_id, Track.DISPLAY, l2)
    await svc.complete_sub_job(Track.DISPLAY, sub_job_id, SubJobComplete(notes="Panel replaced"), tech)
    await svc.collect_track(device_id, Track.DISPLAY, l2)
    assert device.display_repair_completed

    await svc.send_to_qc(device_id, l2)
    assert device.status == "AWAITING_QC"
    assert device.repair_completed
    job = await RepairJobRepository(session).active_for_device(device_id)
    assert job.status == "AWAITING_QC"
    assert job.repair_end_date is not None

    events = bus.drain()
    ready = next(e for e in events if e.type == "track.ready")
    assert ready.recipient_ids == [l2.id]


async def test_only_coordinator_can_dispatch(session, bus, workflow, principal):
    device = await workflow.claimed()
    with pytest.raises(NotJobOwner):
        await _svc(session, bus).dispatch_track(
            device.id, Track.DISPLAY, TrackPayload(), principal(Role.L2_ENGINEER)
        )


async def test_track_cannot_be_dispatched_twice_while_outstanding(session, bus, workflow):
    device = await workflow.claimed()
    svc = _svc(session, bus)
    await svc.dispatch_track(device.id, Track.BATTERY, TrackPayload(initial_capacity=40, target_capacity=80), workflow.l2)
    with pytest.raises(PreconditionFailed):
        await svc.dispatch_track(device.id, Track.BATTERY, TrackPayload(), workflow.l2)


async def test_self_completion_needs_no_collection(session, bus, workflow):
    device = await workflow.claimed()
    svc = _svc(session, bus)

    result = await svc.complete_track_self(
        device.id, Track.L3, TrackPayload(issue_type=L3IssueType.BIOS_LOCK, resolution="Cleared"), workflow.l2
    )

    assert device.l3_repair_required and device.l3_repair_completed
    sub_job = await SubJobRepository(session).latest(TRACKS[Track.L3].model, device.id)
    assert sub_job.id == result.sub_job_ids[0]
    assert sub_job.completed_by_l2
    assert sub_job.resolution == "Cleared"
    assert missing_tracks(device) == []


async def test_l3_requires_issue_type(session, bus, workflow):
    device = await workflow.claimed()
    with pytest.raises(ValidationFailed):
        await _svc(session, bus).dispatch_track(device.id, Track.L3, TrackPayload(), workflow.l2)


async def test_cancel_track_drops_requirement(session, bus, workflow):
    device = await workflow.claimed()
    svc = _svc(session, bus)
    await svc.dispatch_track(device.id, Track.DISPLAY, TrackPayload(), workflow.l2)

    await svc.cancel_track(device.id, Track.DISPLAY, workflow.l2)

    assert not device.display_repair_required
    await svc.send_to_qc(device.id, workflow.l2)
    assert device.status == "AWAITING_QC"


async def test_paint_panels_flow(session, bus, workflow, principal):
    device = await workflow.claimed()
    device_id = device.id
    svc = _svc(session, bus)
    painter = principal(Role.PAINT_SHOP)

    result = await svc.dispatch_track(
        device_id, Track.PAINT, TrackPayload(panels=["Top Cover", "Palmrest", "Top Cover"]), workflow.l2
    )
    assert len(result.sub_job_ids) == 2

    with pytest.raises(IncompleteParallelWork):
        await svc.send_to_qc(device_id, workflow.l2)

    for panel_id in result.sub_job_ids:
        await svc.advance_paint_panel(panel_id, PanelStatus.IN_PAINT, painter)
    with pytest.raises(PreconditionFailed):
        await svc.collect_track(device_id, Track.PAINT, workflow.l2)
    for panel_id in result.sub_job_ids:
        await svc.advance_paint_panel(panel_id, PanelStatus.READY_FOR_COLLECTION, painter)

    await svc.collect_track(device_id, Track.PAINT, workflow.l2)
    assert device.paint_completed
    panels = await SubJobRepository(session).panels_for_device(device_id)
    assert {p.status for p in panels} == {"FITTED"}

    paint_ready = [e for e in bus.drain() if e.type == "paint.ready"]
    assert len(paint_ready) == 1
    assert paint_ready[0].recipient_ids == [workflow.l2.id]


async def test_panel_cannot_skip_a_step(session, bus, workflow, principal):
    device = await workflow.claimed()
    svc = _svc(session, bus)
    result = await svc.dispatch_track(device.id, Track.PAINT, TrackPayload(panels=["Bezel"]), workflow.l2)
    with pytest.raises(PreconditionFailed):
        await svc.advance_paint_panel(result.sub_job_ids[0], PanelStatus.READY_FOR_COLLECTION, principal(Role.PAINT_SHOP))


async def test_specialist_role_is_checked(session, bus, workflow, principal):
    device = await workflow.claimed()
    svc = _svc(session, bus)
    result = await svc.dispatch_track(device.id, Track.BATTERY, TrackPayload(), workflow.l2)
    with pytest.raises(PermissionDenied):
        await svc.start_sub_job(Track.BATTERY, result.sub_job_ids[0], principal(Role.DISPLAY_TECHNICIAN))


async def test_only_assignee_completes_sub_job(session, bus, workflow, principal):
    device = await workflow.claimed()
    svc = _svc(session, bus)
    result = await svc.dispatch_track(device.id, Track.BATTERY, TrackPayload(), workflow.l2)
    await svc.start_sub_job(Track.BATTERY, result.sub_job_ids[0], principal(Role.BATTERY_TECHNICIAN))
    with pytest.raises(NotJobOwner):
        await svc.complete_sub_job(
            Track.BATTERY, result.sub_job_ids[0], SubJobComplete(final_capacity=85), principal(Role.BATTERY_TECHNICIAN)
        )


async def test_mid_repair_spares_request_and_resume(session, bus, workflow, spare_parts, warehouse):
    device = await workflow.claimed()
    device_id = device.id
    svc = _svc(session, bus)

    job = await svc.request_spares(device_id, "RAM-001", "Second stick faulty", workflow.l2)
    job_id = job.id

    assert device.status == "WAITING_FOR_SPARES"
    assert job.status == "WAITING_FOR_SPARES"
    assert job.spares_required == "RAM-001"
    assert job.l2_engineer_id == workflow.l2.id

    with pytest.raises(PreconditionFailed):
        await svc.send_to_qc(device_id, workflow.l2)
    with pytest.raises(PreconditionFailed):
        await svc.resume_repair(device_id, workflow.l2)
    await session.refresh(job)
    assert job.status == "WAITING_FOR_SPARES"

    await SparesService(session, events=bus).issue_spares(job_id, None, warehouse)
    resumed = await svc.resume_repair(device_id, workflow.l2)

    assert resumed.status == "UNDER_REPAIR"
    await session.refresh(job)
    assert job.status == "UNDER_REPAIR"
    assert job.spares_issued == "RAM-001:1"


async def test_send_to_qc_rejection_is_repeatable(session, bus, workflow):
    device = await workflow.claimed()
    device_id = device.id
    svc = _svc(session, bus)
    await svc.dispatch_track(device_id, Track.BATTERY, TrackPayload(), workflow.l2)
    await svc.dispatch_track(device_id, Track.DISPLAY, TrackPayload(), workflow.l2)

    seen = []
    for _ in range(2):
        with pytest.raises(IncompleteParallelWork) as exc:
            await svc.send_to_qc(device_id, workflow.l2)
        seen.append(exc.value.missing_tracks)

    assert seen[0] == seen[1] == ["Display repair not completed", "Battery boost not completed"]
    await session.refresh(device)
    assert device.status == "UNDER_REPAIR"
