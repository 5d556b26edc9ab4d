# backend/tests/test_plan_gating.py
from __future__ import annotations

from fastapi.testclient import TestClient

from pgstay.main import create_app


def _headers(org_slug: str, role: str = "owner") -> dict[str, str]:
    return {"X-Org-Slug": org_slug, "X-User-Email": f"{role}@{org_slug}.local", "X-User-Role": role}


def test_starter_plan_blocks_staff_module():
    client = TestClient(create_app())

    r = client.get("/api/staff", headers=_headers("gate"))
    assert r.status_code == 403
    detail = r.json()["detail"]
    assert detail["required_module"] == "staff"
    assert detail["current_plan"] == "Starter"
    assert "staff" not in detail["allowed_modules"]
    assert "upgrade" in detail["message"]

    # starter still carries tenants + finance
    assert client.get("/api/tenants", headers=_headers("gate")).status_code == 200
    assert client.get("/api/finance", headers=_headers("gate")).status_code == 200


def test_subscribing_unlocks_module():
    client = TestClient(create_app())

    r = client.post("/api/plans/subscribe", json={"plan_code": "professional"}, headers=_headers("gate"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["plan_code"] == "professional"
    assert "staff" in body["allowed_modules"]

    r = client.get("/api/staff", headers=_headers("gate"))
    assert r.status_code == 200, r.text
    assert r.json() == []

    current = client.get("/api/plans/current", headers=_headers("gate")).json()
    assert current["subscription_status"] == "active"


def test_unknown_plan_is_404_and_managers_cannot_subscribe():
    client = TestClient(create_app())
    assert client.post("/api/plans/subscribe", json={"plan_code": "nope"}, headers=_headers("gate")).status_code == 404

    r = client.post("/api/plans/subscribe", json={"plan_code": "enterprise"}, headers=_headers("gate", role="manager"))
    assert r.status_code == 403


def test_admin_bypasses_plan_gate():
    client = TestClient(create_app())
    r = client.get("/api/staff", headers=_headers("adminorg", role="admin"))
    assert r.status_code == 200, r.text


def test_plans_are_listed_in_display_order():
    client = TestClient(create_app())
    codes = [p["code"] for p in client.get("/api/plans").json()]
    assert codes == ["starter", "professional", "enterprise"]
