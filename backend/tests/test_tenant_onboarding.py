# backend/tests/test_tenant_onboarding.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from pgstay.db import SessionLocal
from pgstay.main import create_app
from pgstay.models import Tenant
from pgstay.schemas import StaffUpdate
from pgstay.services import email_service


def _headers(role: str = "owner") -> dict[str, str]:
    return {"X-Org-Slug": "onboard", "X-User-Email": f"{role}@onboard.local", "X-User-Role": role}


def _mk_property_and_room(client: TestClient, *, capacity: int = 1) -> tuple[int, int]:
    r = client.post("/api/properties", json={"name": "Lake PG", "address": "7 Lake Rd", "city": "Bhopal"}, headers=_headers())
    assert r.status_code == 200, r.text
    pid = r.json()["id"]

    r = client.post("/api/rooms", json={"property_id": pid, "room_number": "101", "capacity": capacity, "rent": 6000}, headers=_headers())
    assert r.status_code == 200, r.text
    return pid, r.json()["id"]


def _tenant_payload(pid: int, rid: int | None, email: str, *, rent: float = 6000, deposit: float = 12000) -> dict:
    return {
        "property_id": pid,
        "room_id": rid,
        "name": email.split("@")[0].title(),
        "email": email,
        "phone": "9000000000",
        "rent_amount": rent,
        "security_deposit": deposit,
        "joining_date": "2026-09-01T00:00:00",
    }


def test_onboarding_opens_rent_and_deposit_records():
    client = TestClient(create_app())
    pid, rid = _mk_property_and_room(client)

    r = client.post("/api/tenants", json=_tenant_payload(pid, rid, "meera@example.com"), headers=_headers())
    assert r.status_code == 200, r.text
    tenant = r.json()
    assert tenant["status"] == "Active"
    assert tenant["payment_status"] == "Pending"
    assert tenant["deposit_status"] == "Pending"

    records = client.get(f"/api/tenants/{tenant['id']}/payments", headers=_headers()).json()
    by_category = {rec["category"]: rec for rec in records}
    assert set(by_category) == {"Rent", "Security Deposit"}
    assert by_category["Rent"]["amount"] == 6000
    assert by_category["Rent"]["billing_period"] == "2026-09"
    assert by_category["Rent"]["description"] == "Rent for September 2026"
    assert by_category["Security Deposit"]["amount"] == 12000

    room = client.get(f"/api/rooms/{rid}", headers=_headers()).json()
    assert room["current_occupancy"] == 1


def test_zero_rent_and_deposit_open_nothing():
    client = TestClient(create_app())
    pid, _ = _mk_property_and_room(client)

    r = client.post("/api/tenants", json=_tenant_payload(pid, None, "free@example.com", rent=0, deposit=0), headers=_headers())
    assert r.status_code == 200, r.text
    assert r.json()["payment_status"] == "Paid"
    assert client.get(f"/api/tenants/{r.json()['id']}/payments", headers=_headers()).json() == []


def test_full_room_and_duplicate_email_are_conflicts():
    client = TestClient(create_app())
    pid, rid = _mk_property_and_room(client, capacity=1)

    assert client.post("/api/tenants", json=_tenant_payload(pid, rid, "a@example.com"), headers=_headers()).status_code == 200

    r = client.post("/api/tenants", json=_tenant_payload(pid, rid, "b@example.com"), headers=_headers())
    assert r.status_code == 409
    assert r.json()["detail"] == "Room is at full capacity"

    r = client.post("/api/tenants", json=_tenant_payload(pid, None, "A@example.com"), headers=_headers())
    assert r.status_code == 409


def test_removing_tenant_frees_the_bed_even_if_email_fails(monkeypatch):
    client = TestClient(create_app())
    pid, rid = _mk_property_and_room(client)
    tid = client.post("/api/tenants", json=_tenant_payload(pid, rid, "gone@example.com"), headers=_headers()).json()["id"]

    def _boom(*a, **k):
        raise RuntimeError("template exploded")

    monkeypatch.setattr(email_service, "tenant_departure_notice", _boom)

    r = client.delete(f"/api/tenants/{tid}", headers=_headers())
    assert r.status_code == 200, r.text

    assert client.get(f"/api/tenants/{tid}", headers=_headers()).status_code == 404
    assert client.get(f"/api/rooms/{rid}", headers=_headers()).json()["current_occupancy"] == 0


def test_deposit_change_reconciles_on_update():
    client = TestClient(create_app())
    pid, _ = _mk_property_and_room(client)
    tid = client.post("/api/tenants", json=_tenant_payload(pid, None, "dep@example.com", rent=0, deposit=5000), headers=_headers()).json()["id"]

    deposit = client.get("/api/finance", params={"type": "Security Deposit", "entity_id": tid}, headers=_headers()).json()["items"][0]
    client.patch(f"/api/finance/payments/{deposit['id']}", json={"status": "paid"}, headers=_headers())
    assert client.get(f"/api/tenants/{tid}", headers=_headers()).json()["payment_status"] == "Paid"

    # a second, unpaid deposit record puts the tenant back to pending
    client.post(
        "/api/finance",
        json={"category": "Security Deposit", "amount": 1000, "entity_id": tid, "entity_type": "Tenant"},
        headers=_headers(),
    )
    body = client.get(f"/api/tenants/{tid}", headers=_headers()).json()
    assert body["deposit_status"] == "Pending"
    assert body["payment_status"] == "Pending"

    r = client.patch(f"/api/tenants/{tid}", json={"status": "Moved"}, headers=_headers())
    assert r.status_code == 422


def test_tenant_search_and_payment_status_filter():
    client = TestClient(create_app())
    pid, _ = _mk_property_and_room(client)
    client.post("/api/tenants", json=_tenant_payload(pid, None, "asha@example.com", rent=0, deposit=0), headers=_headers())
    client.post("/api/tenants", json=_tenant_payload(pid, None, "vikram@example.com"), headers=_headers())

    page = client.get("/api/tenants", params={"search": "ash"}, headers=_headers()).json()
    assert [t["email"] for t in page["items"]] == ["asha@example.com"]

    pending = client.get("/api/tenants", params={"payment_status": "pending"}, headers=_headers()).json()
    assert [t["email"] for t in pending["items"]] == ["vikram@example.com"]


def test_departure_email_is_built_from_template():
    class _T:
        name = "Meera"
        email = "meera@example.com"
        joining_date = None
        leaving_date = None
        security_deposit = 12000
        deposit_status = "Paid"

    msg = email_service.tenant_departure_notice(tenant=_T(), property_name="Lake PG")
    assert msg is not None
    assert msg.to == "meera@example.com"
    assert msg.kind == "tenant_departure"
    assert "Lake PG" in msg.subject
    assert "Meera" in msg.html


def test_null_for_required_fields_is_a_422_not_a_500():
    client = TestClient(create_app())
    pid, rid = _mk_property_and_room(client, capacity=2)
    tid = client.post("/api/tenants", json=_tenant_payload(pid, rid, "kiran@example.com"), headers=_headers()).json()["id"]

    for body in ({"name": None}, {"rent_amount": None}, {"email": None, "notes": "x"}):
        r = client.patch(f"/api/tenants/{tid}", json=body, headers=_headers())
        assert r.status_code == 422, r.text

    r = client.patch(f"/api/rooms/{rid}", json={"capacity": None}, headers=_headers())
    assert r.status_code == 422, r.text

    tenant = client.get(f"/api/tenants/{tid}", headers=_headers()).json()
    assert tenant["name"] == "Kiran"
    assert tenant["rent_amount"] == 6000

    # nullable columns still accept an explicit null
    r = client.patch(f"/api/tenants/{tid}", json={"room_id": None, "notes": None}, headers=_headers())
    assert r.status_code == 200, r.text
    assert r.json()["room_id"] is None
    assert client.get(f"/api/rooms/{rid}", headers=_headers()).json()["current_occupancy"] == 0


def test_staff_update_rejects_null_salary():
    with pytest.raises(ValidationError):
        StaffUpdate.model_validate({"salary": None})
    assert StaffUpdate.model_validate({"notes": None}).notes is None


def test_detail_view_repairs_a_stale_stored_status():
    client = TestClient(create_app())
    pid, rid = _mk_property_and_room(client, capacity=2)
    free = client.post("/api/tenants", json=_tenant_payload(pid, rid, "nila@example.com", rent=0, deposit=0), headers=_headers()).json()["id"]
    owing = client.post("/api/tenants", json=_tenant_payload(pid, rid, "arun@example.com"), headers=_headers()).json()["id"]

    db = SessionLocal()
    try:
        db.get(Tenant, free).payment_status = "Overdue"
        stale = db.get(Tenant, owing)
        stale.payment_status = "Paid"
        stale.deposit_status = "Paid"
        db.commit()
    finally:
        db.close()

    assert client.get(f"/api/tenants/{free}", headers=_headers()).json()["payment_status"] == "Paid"
    body = client.get(f"/api/tenants/{owing}", headers=_headers()).json()
    assert (body["deposit_status"], body["payment_status"]) == ("Pending", "Pending")
