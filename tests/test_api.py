"""HTTP surface: routing, envelopes and the API key gate."""

import pytest
from fastapi.testclient import TestClient

from equiptrack.core.config import settings
from equiptrack.core.errors import IneligibleStateError
from equiptrack.db.session import get_db
from equiptrack.main import create_app


@pytest.fixture()
def client(engine, session_factory):
    app = create_app(bind=engine, metrics=False)

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client


def _create(client, item_id, **fields):
    payload = {"id": item_id, "name": fields.pop("name", item_id), "category": fields.pop("category", "Transducer")}
    payload.update(fields)
    response = client.post("/api/v1/equipment", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Request-ID"]


def test_create_get_and_list(client):
    created = _create(client, "eg1616", system_color="Blue")
    assert created["id"] == "EG1616"
    assert created["effective_system_color"] == "Blue"
    assert created["due_status"] == "none"

    assert client.get("/api/v1/equipment/EG1616").json()["name"] == "eg1616"
    listed = client.get("/api/v1/equipment", params={"system_color": "Blue"}).json()
    assert [i["id"] for i in listed] == ["EG1616"]


def test_error_envelopes(client):
    _create(client, "EG1")

    missing = client.get("/api/v1/equipment/NOPE")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"

    duplicate = client.post("/api/v1/equipment", json={"id": "EG1", "name": "x", "category": "y"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "ALREADY_EXISTS"

    blank = client.patch("/api/v1/equipment/EG1", json={"name": "  "})
    assert blank.status_code == 400
    assert blank.json()["code"] == "VALIDATION_ERROR"

    malformed = client.post("/api/v1/equipment", json={"id": "EG2"})
    assert malformed.status_code == 422
    assert malformed.json()["code"] == "REQUEST_VALIDATION_ERROR"


def test_ineligible_state_maps_to_422(client):
    _create(client, "EQ-1", system_color="Blue", status="broken")
    _create(client, "EQ-2", category="DAQ")

    mismatch = client.post(
        "/api/v1/equipment/swap",
        json={"broken_id": "EQ-1", "replacement_id": "EQ-2", "context": "broken"},
    )
    assert mismatch.status_code == 422
    assert mismatch.json()["code"] == "INVALID_CATEGORY"
    assert IneligibleStateError.status_code == 422


def test_swap_checkout_and_work_order_checkin(client):
    _create(client, "EQ-1", system_color="Blue")
    _create(client, "EQ-2")

    out = client.post("/api/v1/equipment/EQ-1/checkout", json={"work_order": "WO-100", "tech_name": "Ana"})
    assert out.json()["status"] == "checked_out"

    swapped = client.post(
        "/api/v1/equipment/swap",
        json={"broken_id": "EQ-1", "replacement_id": "EQ-2", "context": "checked_out", "reason": "seal failed"},
    )
    assert swapped.status_code == 200, swapped.text
    assert swapped.json()["replacement"]["temporary_system_color"] == "Blue"
    assert [i["id"] for i in client.get("/api/v1/equipment/workorder/WO-100").json()] == ["EQ-2"]

    checked_in = client.post(
        "/api/v1/equipment/checkin/workorder",
        json={"work_order": "WO-100", "item_reports": {"EQ-2": {"is_broken": False, "notes": ""}}},
    )
    assert checked_in.status_code == 200, checked_in.text
    assert checked_in.json()[0]["swapped_from_id"] is None
    assert client.get("/api/v1/equipment/EQ-1").json()["replacement_id"] is None

    again = client.post("/api/v1/equipment/checkin/workorder", json={"work_order": "WO-100"})
    assert again.status_code == 404
    assert again.json()["code"] == "NO_MATCH"


def test_group_checkout_conflict(client):
    _create(client, "PC-1", category="Computer", system_color="Blue")
    _create(client, "EG1", system_color="Blue")
    client.post("/api/v1/equipment/EG1/checkout", json={"work_order": "WO-1", "tech_name": "Bo"})

    response = client.post(
        "/api/v1/equipment/checkout-group",
        json={"system_color": "Blue", "equipment_ids": ["PC-1", "EG1"], "work_order": "WO-2", "tech_name": "Ana"},
    )

    assert response.status_code == 409
    assert response.json()["details"]["items"] == [{"id": "EG1", "reason": "checked_out"}]
    assert client.get("/api/v1/equipment/PC-1").json()["status"] == "available"


def test_repair_flow_and_history(client):
    _create(client, "EG1", status="broken")

    sent = client.post("/api/v1/repair/EG1", json={"location": "Waiting on Repair"})
    assert sent.json()["location"] == "Waiting on Repair"

    due = client.post("/api/v1/repair/due-date", json={"category": "Transducer", "amount": 1, "unit": "years"})
    assert due.status_code == 200
    assert due.json()[0]["due_status"] == "green"

    back = client.post("/api/v1/repair/return", json={"equipment_ids": ["EG1"]})
    assert back.json()[0]["location"] == "Shop"

    history = client.get("/api/v1/equipment/EG1/history").json()
    assert [h["action"] for h in history] == ["create", "maintenance", "maintenance", "maintenance"]
    recent = client.get("/api/v1/history", params={"limit": 1}).json()
    assert recent[0]["equipment_id"] == "EG1"


def test_delete_and_systems(client):
    _create(client, "EG1")
    assert client.delete("/api/v1/equipment/EG1").status_code == 204
    assert client.get("/api/v1/equipment/EG1").status_code == 404

    system = client.post("/api/v1/systems", json={"name": "Blue System", "color": "Blue"}).json()
    renamed = client.patch(f"/api/v1/systems/{system['id']}", json={"name": "Blue Rig"})
    assert renamed.json()["name"] == "Blue Rig"
    assert [s["name"] for s in client.get("/api/v1/systems").json()] == ["Blue Rig"]
    assert client.delete(f"/api/v1/systems/{system['id']}").status_code == 204


def test_bulk_and_planning(client):
    result = client.post(
        "/api/v1/bulk/import",
        json={
            "rows": [
                {"id": "PC-1", "name": "Laptop", "category": "Computer", "system_color": "Blue"},
                {"id": "EG1", "name": "Transducer", "category": "Transducer", "system_color": "Blue"},
                {"id": "EG2", "category": "DAQ"},
            ]
        },
    ).json()
    assert result["succeeded"] == 2
    assert result["errors"][0]["id"] == "EG2"

    updated = client.post("/api/v1/bulk/update", json={"equipment_ids": ["EG1"], "patch": {"notes": "checked"}})
    assert updated.json() == {"succeeded": 1, "errors": []}

    assert client.get("/api/v1/planning/computers").json() == ["Blue"]
    plan = client.get("/api/v1/planning/group/Blue").json()
    assert plan["ready_ids"] == ["PC-1", "EG1"]


def test_api_key_gate(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "s3cret")

    assert client.get("/api/v1/equipment").status_code == 401
    assert client.get("/api/v1/equipment", headers={"X-API-Key": "nope"}).json()["code"] == "HTTP_ERROR"
    assert client.get("/api/v1/equipment", headers={"X-API-Key": "s3cret"}).status_code == 200
    assert client.get("/health").status_code == 200
