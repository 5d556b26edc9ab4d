from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import settings


class GatewayNotConfigured(Exception):
    pass


class GatewayError(Exception):
    pass


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount_paise: int
    currency: str
    receipt: Optional[str]
    raw: dict[str, Any]


def to_paise(amount: float) -> int:
    return int(round(float(amount) * 100))


class RazorpayClient:
    def __init__(self) -> None:
        self.base = settings.razorpay_base_url.rstrip("/")
        self.key_id = settings.razorpay_key_id
        self.key_secret = settings.razorpay_key_secret

    def enabled(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def create_order(
        self,
        *,
        amount: float,
        receipt: Optional[str] = None,
        notes: Optional[dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> GatewayOrder:
        if not self.enabled():
            raise GatewayNotConfigured("Payment gateway is not configured")

        url = f"{self.base}/orders"
        payload: dict[str, Any] = {
            "amount": to_paise(amount),
            "currency": currency or settings.payment_currency,
        }
        if receipt:
            payload["receipt"] = receipt
        if notes:
            payload["notes"] = {k: str(v) for k, v in notes.items()}

        try:
            with httpx.Client(timeout=20.0, auth=(str(self.key_id), str(self.key_secret))) as client:
                r = client.post(url, json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise GatewayError(f"order creation failed: {e}") from e

        order_id = data.get("id")
        if not order_id:
            raise GatewayError("gateway response missing order id")

        return GatewayOrder(
            order_id=str(order_id),
            amount_paise=int(data.get("amount") or payload["amount"]),
            currency=str(data.get("currency") or payload["currency"]),
            receipt=data.get("receipt"),
            raw=data,
        )

    def verify_signature(self, *, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            raise GatewayNotConfigured("Payment gateway is not configured")
        body = f"{order_id}|{payment_id}".encode()
        expected = hmac.new(str(self.key_secret).encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, str(signature or ""))
