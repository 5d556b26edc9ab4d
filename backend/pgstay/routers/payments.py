# backend/pgstay/routers/payments.py
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..clients.razorpay import GatewayError, GatewayNotConfigured, RazorpayClient
from ..db import get_db
from ..domain.finance_records import PAID
from ..domain.modules import PAYMENTS
from ..schemas import FinanceRecordOut, GatewayOrderOut, GatewayVerifyIn
from ..services.finance_service import apply_payment_changes, serialize_payment
from ..services.ownership import must_get_payment
from ..services.plan_service import require_module

log = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"], dependencies=[Depends(require_module(PAYMENTS))])


@router.post("/{payment_id}/order", response_model=GatewayOrderOut)
def create_order(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    row = must_get_payment(db, org_id=p.org_id, payment_id=payment_id)
    if row.status == PAID:
        raise HTTPException(status_code=409, detail="payment already settled")

    client = RazorpayClient()
    try:
        order = client.create_order(
            amount=float(row.amount),
            receipt=f"pay_{row.id}",
            notes={"payment_id": row.id, "category": row.category, "tenant_id": row.tenant_id or ""},
        )
    except GatewayNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except GatewayError as e:
        log.warning("gateway order failed: %s", e, extra={"record_id": int(row.id), "org_id": p.org_id})
        raise HTTPException(status_code=502, detail="payment gateway error")

    row.gateway_order_id = order.order_id
    db.add(row)
    db.commit()

    return GatewayOrderOut(
        payment_id=int(row.id),
        order_id=order.order_id,
        amount=order.amount_paise,
        currency=order.currency,
        key_id=client.key_id,
    )


@router.post("/{payment_id}/verify", response_model=FinanceRecordOut)
def verify_payment(
    payment_id: int,
    payload: GatewayVerifyIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = must_get_payment(db, org_id=p.org_id, payment_id=payment_id)
    if row.gateway_order_id and row.gateway_order_id != payload.razorpay_order_id:
        raise HTTPException(status_code=400, detail="order does not match this payment")

    try:
        ok = RazorpayClient().verify_signature(
            order_id=payload.razorpay_order_id,
            payment_id=payload.razorpay_payment_id,
            signature=payload.razorpay_signature,
        )
    except GatewayNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not ok:
        log.warning("gateway signature mismatch", extra={"record_id": int(row.id), "org_id": p.org_id})
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    row.gateway_order_id = payload.razorpay_order_id
    row.gateway_payment_id = payload.razorpay_payment_id
    row = apply_payment_changes(
        db,
        p=p,
        row=row,
        changes={
            "status": PAID,
            "paid_date": datetime.utcnow(),
            "method": "Razorpay",
            "transaction_id": payload.razorpay_payment_id,
        },
        background=background,
    )
    return serialize_payment(db, row)
