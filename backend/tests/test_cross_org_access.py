# backend/tests/test_cross_org_access.py
from __future__ import annotations

from fastapi.testclient import TestClient

from pgstay.main import create_app


def _headers(org: str) -> dict[str, str]:
    return {"X-Org-Slug": org, "X-User-Email": f"owner@{org}.local", "X-User-Role": "owner"}


def test_records_are_invisible_across_orgs():
    client = TestClient(create_app())

    pid = client.post("/api/properties", json={"name": "A PG", "address": "1 A St", "city": "Pune"}, headers=_headers("org-a")).json()["id"]
    tid = client.post(
        "/api/tenants",
        json={"property_id": pid, "name": "Anu", "email": "anu@example.com", "phone": "1", "rent_amount": 3000},
        headers=_headers("org-a"),
    ).json()["id"]
    pay = client.get("/api/finance", params={"entity_id": tid}, headers=_headers("org-a")).json()["items"][0]

    b = _headers("org-b")
    assert client.get(f"/api/properties/{pid}", headers=b).status_code == 404
    assert client.get(f"/api/tenants/{tid}", headers=b).status_code == 404
    assert client.patch(f"/api/finance/payments/{pay['id']}", json={"status": "paid"}, headers=b).status_code == 404
    assert client.delete(f"/api/finance/payments/{pay['id']}", headers=b).status_code == 404
    assert client.get("/api/finance", headers=b).json()["total"] == 0

    # org-b cannot attach its records to org-a's tenant
    client.post("/api/properties", json={"name": "B PG", "address": "2 B St", "city": "Pune"}, headers=b)
    r = client.post("/api/finance", json={"category": "Rent", "amount": 10, "entity_id": tid}, headers=b)
    assert r.status_code == 404

    assert client.get(f"/api/tenants/{tid}", headers=_headers("org-a")).json()["payment_status"] == "Pending"


def test_missing_org_header_is_401():
    client = TestClient(create_app())
    assert client.get("/api/tenants").status_code == 401
