from uuid import uuid4

import pytest

from refurb_api.core.security import Role


@pytest.fixture
def manager(auth_headers):
    return auth_headers(Role.WAREHOUSE_MANAGER)


def _checklist(failures=()):
    return [
        {"item_index": i, "status": "FAIL" if i in failures else "PASS", "notes": "faulty" if i in failures else None}
        for i in range(1, 21)
    ]


async def _receive(client, manager, **device):
    batch = await client.post("/api/v1/inward/batches", json={"inward_type": "PURCHASE"}, headers=manager)
    assert batch.status_code == 201
    body = {"category": "LAPTOP", "brand": "Lenovo", "model": "T480", **device}
    resp = await client.post(f"/api/v1/inward/batches/{batch.json()['id']}/devices", json=body, headers=manager)
    assert resp.status_code == 201
    return resp.json()


async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Healthy"


async def test_missing_token_is_rejected(client):
    resp = await client.get("/api/v1/devices")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["type"] == "http_error"
    assert body["path"] == "/api/v1/devices"
    assert body["method"] == "GET"


async def test_garbage_token_is_rejected(client):
    resp = await client.get("/api/v1/devices", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_wrong_role_is_forbidden(client, auth_headers):
    resp = await client.post(
        "/api/v1/racks",
        json={"rack_code": "X-01", "stage": "RECEIVED", "capacity": 5},
        headers=auth_headers(Role.L2_ENGINEER),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Insufficient role"


async def test_request_validation_envelope(client, manager):
    resp = await client.post(
        "/api/v1/purchase-orders", json={"po_number": "PO-9", "items": [{"quantity": 0}]}, headers=manager
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "validation_error"


async def test_purchase_order_round(client, manager):
    created = await client.post(
        "/api/v1/purchase-orders",
        json={
            "po_number": "PO-2001",
            "supplier": "Acme Remarketing",
            "items": [{"category": "LAPTOP", "brand": "Lenovo", "model": "T480", "quantity": 2}],
        },
        headers=manager,
    )
    assert created.status_code == 201
    fetched = await client.get(f"/api/v1/purchase-orders/{created.json()['id']}", headers=manager)
    assert fetched.json()["po_number"] == "PO-2001"

    duplicate = await client.post("/api/v1/purchase-orders", json={"po_number": "PO-2001"}, headers=manager)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["type"] == "precondition_failed"

    missing = await client.get(f"/api/v1/purchase-orders/{uuid4()}", headers=manager)
    assert missing.status_code == 404


async def test_checklist_catalog(client, auth_headers):
    resp = await client.get("/api/v1/checklists/LAPTOP", headers=auth_headers(Role.INSPECTION_ENGINEER))
    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 20
    assert items[0]["index"] == 1


async def test_device_goes_from_intake_to_dispatch(client, racks, manager, auth_headers):
    inspector = auth_headers(Role.INSPECTION_ENGINEER)
    l2 = auth_headers(Role.L2_ENGINEER, user_id=uuid4())
    qc = auth_headers(Role.QC_ENGINEER)

    device = await _receive(client, manager)
    assert device["status"] == "RECEIVED"
    assert device["location"] == "REC-01"
    device_id = device["id"]

    started = await client.post(f"/api/v1/devices/{device_id}/inspection/start", headers=inspector)
    assert started.json()["status"] == "PENDING_INSPECTION"

    outcome = await client.post(
        f"/api/v1/devices/{device_id}/inspection",
        json={"checklist": _checklist(failures=(1,))},
        headers=inspector,
    )
    assert outcome.status_code == 200
    assert outcome.json()["next_status"] == "READY_FOR_REPAIR"

    claimed = await client.post(f"/api/v1/devices/{device_id}/claim", headers=l2)
    assert claimed.status_code == 200
    assert claimed.json()["status"] == "UNDER_REPAIR"

    again = await client.post(f"/api/v1/devices/{device_id}/claim", headers=auth_headers(Role.L2_ENGINEER))
    assert again.status_code == 409
    assert again.json()["error"]["type"] == "not_claimable"

    sent = await client.post(f"/api/v1/devices/{device_id}/send-to-qc", headers=l2)
    assert sent.json()["status"] == "AWAITING_QC"

    graded = await client.post(f"/api/v1/devices/{device_id}/qc", json={"passed": True, "grade": "A"}, headers=qc)
    assert graded.json()["device_status"] == "READY_FOR_STOCK"

    outward = await client.post(
        "/api/v1/outward",
        json={"outward_type": "SALES", "customer": "Globex", "reference": "INV-1", "device_ids": [device_id]},
        headers=manager,
    )
    assert outward.status_code == 201

    final = await client.get(f"/api/v1/devices/{device_id}", headers=manager)
    assert final.json()["status"] == "STOCK_OUT_SOLD"
    movements = await client.get(f"/api/v1/devices/{device_id}/movements", headers=manager)
    assert [m["movement_type"] for m in movements.json()][-1] == "SALES_OUTWARD"


async def test_send_to_qc_lists_open_tracks(client, racks, manager, auth_headers):
    inspector = auth_headers(Role.INSPECTION_ENGINEER)
    l2 = auth_headers(Role.L2_ENGINEER, user_id=uuid4())
    device_id = (await _receive(client, manager))["id"]

    await client.post(
        f"/api/v1/devices/{device_id}/inspection", json={"checklist": _checklist(failures=(2,))}, headers=inspector
    )
    await client.post(f"/api/v1/devices/{device_id}/claim", headers=l2)
    dispatched = await client.post(
        f"/api/v1/devices/{device_id}/tracks/DISPLAY/dispatch", json={"reported_issues": "Flicker"}, headers=l2
    )
    assert dispatched.status_code == 200
    resp = await client.post(f"/api/v1/devices/{device_id}/send-to-qc", headers=l2)

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["type"] == "incomplete_parallel_work"
    assert error["details"]["missing"] == ["Display repair not completed"]


async def test_illegal_transition_over_http(client, racks, manager, auth_headers):
    device_id = (await _receive(client, manager))["id"]
    resp = await client.post(
        f"/api/v1/devices/{device_id}/qc",
        json={"passed": True, "grade": "A"},
        headers=auth_headers(Role.QC_ENGINEER),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["type"] == "not_ready_for_qc"
    assert resp.json()["correlation_id"]


async def test_rack_utilisation(client, racks, manager):
    await _receive(client, manager)
    resp = await client.get("/api/v1/racks/utilisation", headers=manager)
    summary = {row["stage"]: row for row in resp.json()}
    assert summary["RECEIVED"]["used"] == 1
    assert summary["RECEIVED"]["capacity"] == 10


async def test_spares_validation(client, spare_parts, manager):
    resp = await client.post("/api/v1/spares/validate", json={"spares": "RAM-001:2, SSD-002"}, headers=manager)
    body = resp.json()
    assert body["valid"] is False
    assert len(body["errors"]) == 1

    parts = await client.get("/api/v1/spares/parts", headers=manager)
    statuses = {p["part_code"]: p["stock_status"] for p in parts.json()}
    assert statuses["RAM-001"] == "LOW"


async def test_tat_scan_requires_manager(client, auth_headers, manager):
    denied = await client.post("/api/v1/tat/scan", headers=auth_headers(Role.L2_ENGINEER))
    assert denied.status_code == 403
    resp = await client.post("/api/v1/tat/scan", headers=manager)
    assert resp.status_code == 200
    assert resp.json()["breached"] == []


async def test_inventory_report_csv(client, racks, manager):
    device = await _receive(client, manager)
    resp = await client.get("/api/v1/reports/inventory", headers=manager)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert device["barcode"] in resp.text


async def test_verification_report_pdf(client, racks, manager):
    po = await client.post(
        "/api/v1/purchase-orders",
        json={"po_number": "PO-77", "items": [{"category": "LAPTOP", "brand": "Lenovo", "model": "T480", "quantity": 1}]},
        headers=manager,
    )
    batch = await client.post(
        "/api/v1/inward/batches",
        json={"inward_type": "PURCHASE", "purchase_order_id": po.json()["id"]},
        headers=manager,
    )
    batch_id = batch.json()["id"]
    await client.post(
        f"/api/v1/inward/batches/{batch_id}/devices",
        json={"category": "LAPTOP", "brand": "Lenovo", "model": "T480"},
        headers=manager,
    )
    verified = await client.post(f"/api/v1/inward/batches/{batch_id}/verify", headers=manager)
    assert verified.json()["status"] == "VERIFIED"

    locked = await client.post(
        f"/api/v1/inward/batches/{batch_id}/devices",
        json={"category": "LAPTOP", "brand": "Lenovo", "model": "T480"},
        headers=manager,
    )
    assert locked.status_code == 409
    assert locked.json()["error"]["type"] == "batch_locked"

    sheet = await client.get(f"/api/v1/reports/inward/{batch_id}/verification", headers=manager)
    assert sheet.status_code == 200
    assert sheet.headers["content-type"] == "application/pdf"
    assert sheet.content.startswith(b"%PDF")
