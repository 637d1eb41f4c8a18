import pytest

from refurb_api.core.errors import BatchLocked, PermissionDenied, PreconditionFailed, ValidationFailed
from refurb_api.core.security import Role
from refurb_api.db.models.enums import DeviceCategory, InwardType
from refurb_api.schemas.devices import (
    DeviceCreate,
    InwardBatchCreate,
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
)
from refurb_api.schemas.verification import ExpectedLine, ReceivedDevice
from refurb_api.services.intake import IntakeService
from refurb_api.services.verification import VerificationService, match_shipment


def _rx(barcode, model, category="LAPTOP", brand="Dell"):
    return ReceivedDevice(barcode=barcode, category=category, brand=brand, model=model)


def test_partial_shipment_with_extra_and_missing():
    received = [_rx("A1", "Latitude 7490"), _rx("A2", "latitude 7490 "), _rx("A3", "Latitude 7490")]
    expected = [
        ExpectedLine(category="LAPTOP", brand="Dell", model="Latitude 7490", quantity=2),
        ExpectedLine(category="DESKTOP", brand="HP", model="EliteDesk 800", quantity=1),
    ]

    result = match_shipment(received, expected)

    assert result.status == "PARTIAL"
    assert result.match_percentage == 66.7
    assert result.total_expected == 3
    assert [d.barcode for d in result.matched] == ["A1", "A2"]
    assert [d.barcode for d in result.extra] == ["A3"]
    assert len(result.missing) == 1
    assert result.shortfalls[0].missing == 1
    assert result.discrepancies == [
        "Missing 1 x DESKTOP HP EliteDesk 800",
        "Unexpected LAPTOP Dell Latitude 7490 (barcode A3)",
    ]


def test_three_latitudes_against_two_and_an_elitedesk():
    received = [
        _rx("B1", "Latitude7490"),
        _rx("B2", "Latitude7490"),
        _rx("B3", "EliteDesk 800", category="DESKTOP", brand="HP"),
    ]
    expected = [ExpectedLine(category="LAPTOP", brand="Dell", model="Latitude7490", quantity=3)]

    result = match_shipment(received, expected)

    assert result.status == "PARTIAL"
    assert result.match_percentage == 66.7
    assert [(m.category, m.brand, m.model) for m in result.missing] == [("LAPTOP", "Dell", "Latitude7490")]
    assert [(d.barcode, d.model) for d in result.extra] == [("B3", "EliteDesk 800")]


@pytest.mark.parametrize(
    "expected_qty, received_count",
    [(3, 1), (3, 0), (5, 2), (2, 2), (4, 6)],
)
def test_matched_plus_missing_equals_expected(expected_qty, received_count):
    received = [_rx(f"X{i}", "X1") for i in range(received_count)]
    expected = [
        ExpectedLine(category="LAPTOP", brand="Dell", model="X1", quantity=expected_qty),
        ExpectedLine(category="MONITOR", brand="LG", model="27UK850", quantity=2),
    ]

    result = match_shipment(received, expected)

    assert len(result.matched) + len(result.missing) == result.total_expected == expected_qty + 2
    assert sum(s.missing for s in result.shortfalls) == len(result.missing)
    assert len(result.extra) == max(received_count - expected_qty, 0)


def test_exact_shipment_is_verified():
    result = match_shipment(
        [_rx("A1", "X1"), _rx("A2", "X1")],
        [ExpectedLine(category="laptop", brand="DELL", model="x1", quantity=2)],
    )
    assert result.status == "VERIFIED"
    assert result.match_percentage == 100.0


def test_extra_tolerance():
    received = [_rx("A1", "X1"), _rx("A2", "X2")]
    expected = [ExpectedLine(category="LAPTOP", brand="Dell", model="X1", quantity=1)]
    assert match_shipment(received, expected).status == "PARTIAL"
    assert match_shipment(received, expected, extra_tolerance=1).status == "VERIFIED"


def test_nothing_expected_is_never_verified():
    result = match_shipment([_rx("A1", "X1")], [])
    assert result.status == "PARTIAL"
    assert result.match_percentage == 0.0


async def _batch_with_po(session, bus, warehouse, models):
    intake = IntakeService(session, events=bus)
    po = await intake.create_purchase_order(
        PurchaseOrderCreate(
            po_number="PO-100",
            supplier="Acme Remarketing",
            items=[
                PurchaseOrderItemCreate(category=DeviceCategory.LAPTOP, brand="Dell", model="Latitude 7490", quantity=2),
                PurchaseOrderItemCreate(category=DeviceCategory.DESKTOP, brand="HP", model="EliteDesk 800", quantity=1),
            ],
        ),
        warehouse,
    )
    batch = await intake.create_batch(
        InwardBatchCreate(inward_type=InwardType.PURCHASE, purchase_order_id=po.id), warehouse
    )
    for category, brand, model in models:
        await intake.add_device(batch.id, DeviceCreate(category=category, brand=brand, model=model), warehouse)
    return batch


async def test_verify_stores_result_on_batch(session, bus, racks, warehouse):
    batch = await _batch_with_po(
        session,
        bus,
        warehouse,
        [(DeviceCategory.LAPTOP, "Dell", "Latitude 7490")] * 3,
    )

    result = await VerificationService(session, events=bus).verify_shipment(batch.id, warehouse)

    assert result.status == "PARTIAL"
    assert result.match_percentage == 66.7
    assert batch.verification_status == "PARTIAL"
    assert batch.verification_result["matched_count"] == 2
    assert batch.verified_by_id == warehouse.id
    assert not batch.is_locked
    assert "batch.verified" in [e.type for e in bus.drain()]


async def test_verified_batch_is_locked(session, bus, racks, warehouse):
    batch = await _batch_with_po(
        session,
        bus,
        warehouse,
        [
            (DeviceCategory.LAPTOP, "Dell", "Latitude 7490"),
            (DeviceCategory.LAPTOP, "Dell", "Latitude 7490"),
            (DeviceCategory.DESKTOP, "HP", "EliteDesk 800"),
        ],
    )
    batch_id = batch.id
    svc = VerificationService(session, events=bus)
    assert (await svc.verify_shipment(batch_id, warehouse)).status == "VERIFIED"

    with pytest.raises(BatchLocked):
        await svc.verify_shipment(batch_id, warehouse)
    with pytest.raises(BatchLocked):
        await IntakeService(session, events=bus).add_device(
            batch_id, DeviceCreate(category=DeviceCategory.LAPTOP, brand="Dell", model="Latitude 7490"), warehouse
        )


async def test_batch_without_po_cannot_be_verified(session, bus, warehouse):
    batch = await IntakeService(session, events=bus).create_batch(
        InwardBatchCreate(inward_type=InwardType.RENTAL_RETURN, customer="Globex"), warehouse
    )
    with pytest.raises(PreconditionFailed):
        await VerificationService(session, events=bus).verify_shipment(batch.id, warehouse)


async def test_override_needs_reason_and_manager(session, bus, warehouse, principal):
    batch = await IntakeService(session, events=bus).create_batch(
        InwardBatchCreate(inward_type=InwardType.CUSTOMER_RETURN, customer="Initech"), warehouse
    )
    svc = VerificationService(session, events=bus)

    with pytest.raises(PermissionDenied):
        await svc.override_verification(batch.id, "Paperwork lost in transit", principal(Role.MIS_WAREHOUSE_EXECUTIVE))
    with pytest.raises(ValidationFailed):
        await svc.override_verification(batch.id, "   too short  ", warehouse)

    skipped = await svc.override_verification(batch.id, "Paperwork lost in transit", warehouse)
    assert skipped.verification_status == "SKIPPED"
    assert skipped.override_reason == "Paperwork lost in transit"
    assert skipped.is_locked
    with pytest.raises(BatchLocked):
        await svc.override_verification(batch.id, "Paperwork lost in transit", warehouse)
