# backend/tests/test_gateway_signature.py
from __future__ import annotations

import hashlib
import hmac

import pytest
from fastapi.testclient import TestClient

from pgstay.clients.razorpay import GatewayOrder, GatewayNotConfigured, RazorpayClient, to_paise
from pgstay.config import settings
from pgstay.main import create_app

SECRET = "rzp_test_secret"


def _headers() -> dict[str, str]:
    return {"X-Org-Slug": "gw", "X-User-Email": "owner@gw.local", "X-User-Role": "owner"}


def _sign(order_id: str, payment_id: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _mk_payment(client: TestClient) -> int:
    client.post("/api/properties", json={"name": "Hill PG", "address": "1 Hill Rd", "city": "Shimla"}, headers=_headers())
    r = client.post("/api/finance", json={"category": "Utility", "amount": 450.5}, headers=_headers())
    assert r.status_code == 200, r.text
    return r.json()["id"]


@pytest.fixture
def gateway_keys(monkeypatch):
    monkeypatch.setattr(settings, "razorpay_key_id", "rzp_test_key")
    monkeypatch.setattr(settings, "razorpay_key_secret", SECRET)

    def _fake_order(self, *, amount, receipt=None, notes=None, currency=None):
        return GatewayOrder(order_id="order_123", amount_paise=to_paise(amount), currency="INR", receipt=receipt, raw={})

    monkeypatch.setattr(RazorpayClient, "create_order", _fake_order)


def test_paise_conversion():
    assert to_paise(450.5) == 45050


def test_unconfigured_gateway_is_503():
    client = TestClient(create_app())
    pid = _mk_payment(client)
    r = client.post(f"/api/payments/{pid}/order", headers=_headers())
    assert r.status_code == 503

    with pytest.raises(GatewayNotConfigured):
        RazorpayClient().verify_signature(order_id="o", payment_id="p", signature="s")


def test_order_then_verify_marks_record_paid(gateway_keys):
    client = TestClient(create_app())
    pid = _mk_payment(client)

    r = client.post(f"/api/payments/{pid}/order", headers=_headers())
    assert r.status_code == 200, r.text
    order = r.json()
    assert order == {"payment_id": pid, "order_id": "order_123", "amount": 45050, "currency": "INR", "key_id": "rzp_test_key"}

    r = client.post(
        f"/api/payments/{pid}/verify",
        json={
            "razorpay_order_id": "order_123",
            "razorpay_payment_id": "pay_abc",
            "razorpay_signature": _sign("order_123", "pay_abc"),
        },
        headers=_headers(),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "Paid"
    assert body["method"] == "Razorpay"
    assert body["transaction_id"] == "pay_abc"
    assert body["paid_date"] is not None

    assert client.post(f"/api/payments/{pid}/order", headers=_headers()).status_code == 409


def test_bad_signature_is_rejected(gateway_keys):
    client = TestClient(create_app())
    pid = _mk_payment(client)
    client.post(f"/api/payments/{pid}/order", headers=_headers())

    r = client.post(
        f"/api/payments/{pid}/verify",
        json={
            "razorpay_order_id": "order_123",
            "razorpay_payment_id": "pay_abc",
            "razorpay_signature": _sign("order_123", "pay_abc", secret="wrong"),
        },
        headers=_headers(),
    )
    assert r.status_code == 400

    r = client.post(
        f"/api/payments/{pid}/verify",
        json={
            "razorpay_order_id": "order_other",
            "razorpay_payment_id": "pay_abc",
            "razorpay_signature": _sign("order_other", "pay_abc"),
        },
        headers=_headers(),
    )
    assert r.status_code == 400

    rec = client.get("/api/finance", params={"type": "Utility"}, headers=_headers()).json()["items"][0]
    assert rec["status"] == "Pending"
