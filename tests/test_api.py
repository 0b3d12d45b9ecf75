# tests/test_api.py
from hms_ledger.models import AppointmentStatus

API = "/api/v1"


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_requests_without_token_are_rejected(client, make_encounter):
    encounter = make_encounter()
    res = client.get(f"{API}/billing/{encounter.id}/summary", headers={"Authorization": ""})
    assert res.status_code == 401

    res = client.get(f"{API}/billing/{encounter.id}/summary", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_consultation_charge_then_summary(client, reference, make_encounter):
    encounter = make_encounter(encounter_id=42)

    res = client.post(
        f"{API}/billing/42/charges/consultation",
        json={"physician_id": "PHY001", "consultation_type": "OPD"},
    )
    assert res.status_code == 201, res.text
    item = res.json()
    assert item["item_type"] == "consultation"
    assert item["amount"] == "500.00"
    assert item["status"] == "unpaid"

    res = client.get(f"{API}/billing/{encounter.id}/summary")
    assert res.status_code == 200
    body = res.json()
    assert body["account_exists"] is True
    assert body["account_no"] == "BA000042"
    assert body["total_amount"] == "500.00"
    assert body["items_count"] == 1

    res = client.post(
        f"{API}/billing/42/charges/consultation",
        json={"physician_id": "PHY001", "consultation_type": "OPD"},
    )
    assert res.status_code == 409
    assert res.json()["code"] == "DUPLICATE_CHARGE"


def test_unknown_service_maps_to_404(client, reference, make_encounter):
    encounter = make_encounter()

    res = client.post(f"{API}/billing/{encounter.id}/charges/procedure", json={"procedure_name": "Appendectomy"})

    assert res.status_code == 404
    body = res.json()
    assert body["code"] == "SERVICE_NOT_FOUND"
    assert body["context"]["keyword"] == "Appendectomy"
    assert client.get(f"{API}/billing/{encounter.id}/items").json() == []


def test_insufficient_stock_returns_422_with_context(client, make_encounter, make_drug, db):
    encounter = make_encounter()
    drug = make_drug(stock=3, reorder_level=1)
    db.commit()

    res = client.post(
        f"{API}/prescriptions",
        json={
            "encounter_id": encounter.id,
            "drug_id": drug.id,
            "dosage": "1 tab",
            "frequency": "OD",
            "duration": 5,
            "quantity": 5,
            "instant_dispensing": True,
        },
    )

    assert res.status_code == 422
    body = res.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["context"]["available"] == 3
    assert body["context"]["requested"] == 5
    assert client.get(f"{API}/prescriptions/encounter/{encounter.id}").json() == []


def test_prescription_lifecycle_over_http(client, reference, make_encounter):
    encounter = make_encounter()
    paracetamol_id = reference["drugs"]["Paracetamol"].id

    res = client.post(
        f"{API}/prescriptions",
        json={
            "encounter_id": encounter.id,
            "drug_id": paracetamol_id,
            "dosage": "500mg",
            "frequency": "TID",
            "duration": 3,
            "quantity": 9,
            "instant_dispensing": True,
        },
    )
    assert res.status_code == 201, res.text
    rx = res.json()
    assert rx["drug_name"] == "Paracetamol"
    assert rx["stock_reserved"] is True

    res = client.put(f"{API}/prescriptions/{rx['id']}", json={"instant_dispensing": False})
    assert res.status_code == 200
    assert res.json()["stock_reserved"] is False

    res = client.delete(f"{API}/prescriptions/{rx['id']}")
    assert res.status_code == 204
    assert client.get(f"{API}/prescriptions/{rx['id']}").status_code == 404


def test_lab_order_invalid_priority_is_validation_error(client, make_encounter):
    encounter = make_encounter()
    res = client.post(
        f"{API}/lab-orders",
        json={"encounter_id": encounter.id, "test_name": "Lipid Profile", "priority": "stat"},
    )
    assert res.status_code == 422
    assert res.json()["code"] == "VALIDATION_ERROR"


def test_complete_twice_and_locked_afterwards(client, reference, make_encounter):
    encounter = make_encounter(status=AppointmentStatus.SCHEDULED)
    cbc_id = reference["tests"]["CBC"].id

    res = client.patch(f"{API}/consultations/{encounter.id}/start")
    assert res.status_code == 200, res.text
    assert res.json()["soap_note"]["is_draft"] is True

    res = client.post(
        f"{API}/lab-orders",
        json={"encounter_id": encounter.id, "test_id": cbc_id, "priority": "urgent"},
    )
    assert res.status_code == 201, res.text

    res = client.get(f"{API}/consultations/{encounter.id}/summary")
    assert res.status_code == 200
    assert res.json()["estimated_total"] == "850.00"

    res = client.patch(f"{API}/consultations/{encounter.id}/complete", json={"assessment": "Anaemia workup"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["appointment"]["status"] == "COMPLETED"
    assert body["lab_orders_submitted"] == 1
    assert body["soap_note"]["assessment"] == "Anaemia workup"
    assert sorted(i["amount"] for i in body["billing_items"]) == ["350.00", "500.00"]
    assert body["skipped_billing_items"] == []

    res = client.patch(f"{API}/consultations/{encounter.id}/complete")
    assert res.status_code == 422
    assert res.json()["code"] == "ALREADY_COMPLETED"

    res = client.post(
        f"{API}/lab-orders",
        json={"encounter_id": encounter.id, "test_name": "Lipid Profile", "priority": "normal"},
    )
    assert res.status_code == 422
    assert res.json()["code"] == "CONSULTATION_LOCKED"

    res = client.patch(f"{API}/consultations/{encounter.id}/reopen")
    assert res.status_code == 200
    assert res.json()["status"] == "IN_PROGRESS"

    assert client.get(f"{API}/billing/{encounter.id}/summary").json()["total_amount"] == "850.00"
