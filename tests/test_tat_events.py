import logging
from datetime import timedelta

from refurb_api.db.base import utcnow
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.services.events import ActivityLogger, EventBus, NotificationGateway, WorkflowEvent, build_event_bus
from refurb_api.services.tat import TatMonitor


async def _claimed_job(session, workflow):
    device = await workflow.claimed()
    return device, await RepairJobRepository(session).active_for_device(device.id)


async def test_scan_classifies_breached_and_approaching(session, bus, workflow):
    _, late = await _claimed_job(session, workflow)
    _, soon = await _claimed_job(session, workflow)
    _, fine = await _claimed_job(session, workflow)
    now = utcnow()
    late.tat_due_date = now - timedelta(days=1, hours=2)
    soon.tat_due_date = now + timedelta(hours=5, minutes=10)
    fine.tat_due_date = now + timedelta(days=3)
    await session.commit()

    report = await TatMonitor(session, events=bus).scan(now=now)

    assert [e.job_code for e in report.breached] == [late.job_code]
    assert report.breached[0].days_overdue == 2
    assert [e.job_code for e in report.approaching] == [soon.job_code]
    assert report.approaching[0].hours_remaining == 6

    events = {e.type: e for e in bus.drain()}
    assert events["tat.breached"].recipient_ids == [workflow.l2.id]
    assert events["tat.breached"].recipient_roles == ["WAREHOUSE_MANAGER"]
    assert events["tat.approaching"].data["hours_remaining"] == 6


async def test_scan_ignores_jobs_outside_repair(session, bus, workflow):
    await workflow.inspected()
    report = await TatMonitor(session, events=bus).scan()
    assert report.breached == [] and report.approaching == []


async def test_events_are_dropped_when_operation_fails(session, bus, workflow):
    from refurb_api.services.base import BaseService

    svc = BaseService(session, events=bus)
    try:
        async with svc.unit_of_work():
            svc.record_event("device.scrapped", "never delivered")
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert bus.drain() == []


async def test_failing_handler_does_not_stop_delivery(caplog):
    bus = EventBus()
    seen = []

    async def broken(event):
        raise ValueError("handler down")

    async def recorder(event):
        seen.append(event.type)

    bus.subscribe(broken)
    bus.subscribe(recorder)
    with caplog.at_level(logging.ERROR, logger="refurb_api.services.events"):
        await bus.deliver(WorkflowEvent(type="qc.passed", message="ok"))

    assert seen == ["qc.passed"]
    assert "Event handler failed" in caplog.text


async def test_background_consumer_notifies_recipients():
    sent = []

    class Gateway(NotificationGateway):
        async def send(self, *, title, message, user_ids, roles, data=None):
            sent.append((title, roles))

    logged = []

    class Activity(ActivityLogger):
        async def log(self, action, details, user_id=None, metadata=None):
            logged.append(action)

    bus = build_event_bus(Gateway(), Activity())
    bus.start()
    bus.emit(WorkflowEvent(type="qc.failed", message="rework", recipient_roles=["L2_ENGINEER"]))
    bus.emit(WorkflowEvent(type="device.received", message="in"))
    await bus.stop()

    assert sent == [("QC failed - rework required", ["L2_ENGINEER"])]
    assert logged == ["qc.failed", "device.received"]
