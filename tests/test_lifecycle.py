import pytest

from refurb_api.core.errors import InvalidTransition
from refurb_api.db.models.device import Device
from refurb_api.db.models.enums import DeviceStatus, RepairJobStatus
from refurb_api.db.models.repair import RepairJob
from refurb_api.services.lifecycle import Lifecycle, can_transition, is_terminal

S = DeviceStatus


@pytest.mark.parametrize(
    "current,target",
    [
        (S.RECEIVED, S.PENDING_INSPECTION),
        (S.PENDING_INSPECTION, S.AWAITING_QC),
        (S.WAITING_FOR_SPARES, S.READY_FOR_REPAIR),
        (S.UNDER_REPAIR, S.WAITING_FOR_SPARES),
        (S.AWAITING_QC, S.READY_FOR_REPAIR),
        (S.READY_FOR_STOCK, S.STOCK_OUT_RENTAL),
        (S.UNDER_REPAIR, S.SCRAPPED),
    ],
)
def test_legal_edges(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (S.RECEIVED, S.UNDER_REPAIR),
        (S.READY_FOR_REPAIR, S.AWAITING_QC),
        (S.AWAITING_QC, S.STOCK_OUT_SOLD),
        (S.STOCK_OUT_SOLD, S.SCRAPPED),
        (S.SCRAPPED, S.RECEIVED),
    ],
)
def test_illegal_edges(current, target):
    assert not can_transition(current, target)


def test_terminal_statuses():
    assert is_terminal("SCRAPPED")
    assert is_terminal(S.STOCK_OUT_SOLD)
    assert not is_terminal(S.READY_FOR_STOCK)


async def test_transition_updates_job_and_rack(session, racks):
    device = Device(barcode="L-DEL-0001", category="LAPTOP", brand="Dell", model="Latitude", status=S.READY_FOR_REPAIR.value)
    job = RepairJob(job_code="JOB-X-0001", device_id=None, status=RepairJobStatus.READY_FOR_REPAIR.value)
    session.add(device)
    await session.flush()
    job.device_id = device.id
    session.add(job)

    await Lifecycle(session).transition(device, S.UNDER_REPAIR, job)

    assert device.status == "UNDER_REPAIR"
    assert job.status == "UNDER_REPAIR"
    assert device.location == "UND-01"


async def test_illegal_transition_leaves_device_untouched(session, racks):
    device = Device(barcode="L-DEL-0002", category="LAPTOP", brand="Dell", model="Latitude", status=S.RECEIVED.value)
    session.add(device)
    await session.flush()

    with pytest.raises(InvalidTransition) as exc:
        await Lifecycle(session).transition(device, S.READY_FOR_STOCK)
    assert exc.value.details == {"from": "RECEIVED", "to": "READY_FOR_STOCK"}
    assert device.status == "RECEIVED"


async def test_leaving_stock_clears_location(session, racks):
    device = Device(barcode="L-DEL-0003", category="LAPTOP", brand="Dell", model="Latitude", status=S.READY_FOR_STOCK.value)
    session.add(device)
    lifecycle = Lifecycle(session)
    await lifecycle.racks.place(device)
    assert device.location == "REA-01"

    await lifecycle.transition(device, S.STOCK_OUT_SOLD)
    assert device.rack_id is None
    assert device.location is None
