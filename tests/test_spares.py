import pytest

from refurb_api.core.errors import InsufficientStock, PartNotFound, PreconditionFailed, ValidationFailed
from refurb_api.core.security import Role
from refurb_api.repositories.inventory import SparePartRepository
from refurb_api.repositories.repair import RepairJobRepository
from refurb_api.services.coordination import CoordinationService
from refurb_api.services.spares import SparesService, outstanding_spares, parse_spares


def test_parse_spares_formats_and_merging():
    lines, errors = parse_spares("RAM-001:2, SSD-002, fan-01 x3, ram-001 : 1, ")
    assert errors == []
    assert [(l.part_code, l.quantity) for l in lines] == [("RAM-001", 3), ("SSD-002", 1), ("fan-01", 3)]


def test_parse_spares_rejects_non_positive_quantities():
    lines, errors = parse_spares("RAM-001:0, SSD-002:-1, KBD-004")
    assert [l.part_code for l in lines] == ["KBD-004"]
    assert errors == ["Invalid quantity for RAM-001: 0", "Invalid quantity for SSD-002: -1"]


def test_parse_empty_text():
    assert parse_spares(None) == ([], [])
    assert parse_spares("  ,  ") == ([], [])


async def test_validate_reports_each_shortfall(session, spare_parts):
    result = await SparesService(session).validate_spares("RAM-001:2, SSD-002")

    assert not result.valid
    assert result.errors == ["Insufficient stock for RAM-001: requested 2, available 1"]
    assert [(i.part_code, i.available) for i in result.items] == [("RAM-001", 1), ("SSD-002", 5)]


async def test_validate_unknown_part_and_empty_request(session, spare_parts):
    unknown = await SparesService(session).validate_spares("GPU-999")
    assert unknown.errors == ["Part GPU-999 not found"]

    empty = await SparesService(session).validate_spares("")
    assert empty.errors == ["No spare parts specified"]


async def test_issue_is_all_or_nothing(session, bus, workflow, spare_parts, principal):
    device = await workflow.inspected(spares="RAM-001:2, SSD-002")
    job = await RepairJobRepository(session).active_for_device(device.id)
    svc = SparesService(session, events=bus)

    with pytest.raises(InsufficientStock) as exc:
        await svc.issue_spares(job.id, None, principal(Role.MIS_WAREHOUSE_EXECUTIVE))
    assert len(exc.value.errors) == 1

    ram, ssd = spare_parts
    await session.refresh(ram)
    await session.refresh(ssd)
    assert (ram.current_stock, ssd.current_stock) == (1, 5)


async def test_issue_takes_stock_and_releases_job(session, bus, workflow, spare_parts, principal):
    device = await workflow.inspected(spares="ram-001, SSD-002:2")
    job = await RepairJobRepository(session).active_for_device(device.id)

    result = await SparesService(session, events=bus).issue_spares(
        job.id, None, principal(Role.MIS_WAREHOUSE_EXECUTIVE)
    )

    assert result.valid
    ram, ssd = spare_parts
    assert (ram.current_stock, ssd.current_stock) == (0, 3)
    await session.refresh(job)
    assert job.spares_issued == "RAM-001:1, SSD-002:2"
    assert job.status == "READY_FOR_REPAIR"
    await session.refresh(device)
    assert device.status == "READY_FOR_REPAIR"
    assert "spares.issued" in [e.type for e in bus.drain()]


async def test_unknown_part_blocks_issue(session, bus, workflow, spare_parts, principal):
    device = await workflow.inspected(spares="GPU-999")
    job = await RepairJobRepository(session).active_for_device(device.id)
    with pytest.raises(PartNotFound):
        await SparesService(session, events=bus).issue_spares(job.id, None, principal(Role.WAREHOUSE_MANAGER))


async def test_issue_needs_a_waiting_job(session, bus, workflow, spare_parts, principal):
    device = await workflow.inspected()
    job = await RepairJobRepository(session).active_for_device(device.id)
    with pytest.raises(PreconditionFailed):
        await SparesService(session, events=bus).issue_spares(job.id, "SSD-002", principal(Role.WAREHOUSE_MANAGER))


def test_outstanding_spares_subtracts_what_was_issued():
    owed = outstanding_spares("SSD-002, RAM-001:2, ram-001", "SSD-002:1, RAM-001:1")
    assert [(l.part_code, l.quantity) for l in owed] == [("RAM-001", 2)]
    assert outstanding_spares("SSD-002", "SSD-002:1") == []
    assert [(l.part_code, l.quantity) for l in outstanding_spares("KBD-004", None)] == [("KBD-004", 1)]


async def test_second_issue_takes_only_the_new_request(session, bus, workflow, spare_parts, warehouse):
    device = await workflow.inspected(spares="SSD-002")
    job = await RepairJobRepository(session).active_for_device(device.id)
    job_id = job.id
    svc = SparesService(session, events=bus)

    await svc.issue_spares(job_id, None, warehouse)
    coordination = CoordinationService(session, events=bus)
    await coordination.claim_for_coordination(device.id, workflow.l2)
    await coordination.request_spares(device.id, "RAM-001", None, workflow.l2)
    await svc.issue_spares(job_id, None, warehouse)

    ram, ssd = spare_parts
    await session.refresh(ram)
    await session.refresh(ssd)
    assert (ram.current_stock, ssd.current_stock) == (0, 4)
    await session.refresh(job)
    assert job.spares_required == "SSD-002, RAM-001"
    assert job.spares_issued == "SSD-002:1, RAM-001:1"


async def test_issue_with_nothing_owed_is_rejected(session, bus, workflow, spare_parts, warehouse):
    device = await workflow.inspected(spares="SSD-002")
    job = await RepairJobRepository(session).active_for_device(device.id)
    job.spares_issued = "SSD-002:1"
    await session.commit()

    with pytest.raises(ValidationFailed):
        await SparesService(session, events=bus).issue_spares(job.id, None, warehouse)
    _, ssd = spare_parts
    await session.refresh(ssd)
    assert ssd.current_stock == 5


async def test_stock_never_goes_negative_across_jobs(session, bus, workflow, spare_parts, warehouse):
    first = await workflow.inspected(spares="RAM-001")
    second = await workflow.inspected(spares="RAM-001")
    jobs = RepairJobRepository(session)
    first_job_id = (await jobs.active_for_device(first.id)).id
    second_job_id = (await jobs.active_for_device(second.id)).id
    svc = SparesService(session, events=bus)

    await svc.issue_spares(first_job_id, None, warehouse)
    with pytest.raises(InsufficientStock) as exc:
        await svc.issue_spares(second_job_id, None, warehouse)

    assert exc.value.errors == ["Insufficient stock for RAM-001: requested 1, available 0"]
    ram, _ = spare_parts
    await session.refresh(ram)
    assert ram.current_stock == 0
    second_job = await jobs.get_job(second_job_id)
    assert second_job.status == "WAITING_FOR_SPARES"
    assert second_job.spares_issued is None


async def test_decrement_refuses_to_overdraw(session, spare_parts):
    ram, _ = spare_parts
    parts = SparePartRepository(session)

    assert not await parts.decrement_stock(ram.id, 2)
    assert await parts.decrement_stock(ram.id, 1)
    assert not await parts.decrement_stock(ram.id, 1)
    await session.commit()
    await session.refresh(ram)
    assert ram.current_stock == 0
