# backend/pgstay/routers/finance.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_manager
from ..db import get_db
from ..domain.finance_records import canonical_category, is_expense_side
from ..domain.modules import EXPENSES, FINANCE
from ..models import Expense
from ..schemas import (
    FinancePage,
    FinanceRecordCreate,
    FinanceRecordOut,
    FinanceRecordUpdate,
    FinanceStatsOut,
    GenerateIn,
    GenerateOut,
)
from ..services import finance_service
from ..services.bulk_generation import NoActiveEntities, generate_rent, generate_salary
from ..services.events_facade import wf
from ..services.ownership import must_get_property
from ..services.plan_service import check_module, require_module

router = APIRouter(prefix="/finance", tags=["finance"], dependencies=[Depends(require_module(FINANCE))])


def _out(db: Session, row) -> dict:
    if isinstance(row, Expense):
        return finance_service.serialize_expense(db, row)
    return finance_service.serialize_payment(db, row)


@router.get("", response_model=FinancePage)
def list_records(
    type: str | None = Query(default=None),
    status: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    property_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return finance_service.list_records(
        db,
        org_id=p.org_id,
        record_type=type,
        status=status,
        entity_id=entity_id,
        property_id=property_id,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=FinanceStatsOut)
def stats(
    property_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    if property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=property_id)
    return finance_service.finance_stats(db, org_id=p.org_id, property_id=property_id)


@router.post("", response_model=FinanceRecordOut)
def create_record(
    payload: FinanceRecordCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    if is_expense_side(canonical_category(payload.category), payload.entity_type):
        check_module(db, p, EXPENSES)
    row = finance_service.create_record(db, p=p, payload=payload, background=background)
    return _out(db, row)


@router.patch("/payments/{payment_id}", response_model=FinanceRecordOut)
def update_payment(
    payment_id: int,
    payload: FinanceRecordUpdate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    row = finance_service.update_payment(db, p=p, payment_id=payment_id, payload=payload, background=background)
    return _out(db, row)


@router.patch("/expenses/{expense_id}", response_model=FinanceRecordOut, dependencies=[Depends(require_module(EXPENSES))])
def update_expense(
    expense_id: int,
    payload: FinanceRecordUpdate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_manager),
):
    row = finance_service.update_expense(db, p=p, expense_id=expense_id, payload=payload, background=background)
    return _out(db, row)


@router.delete("/payments/{payment_id}")
def delete_payment(payment_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    finance_service.delete_payment(db, p=p, payment_id=payment_id)
    return {"ok": True}


@router.delete("/expenses/{expense_id}", dependencies=[Depends(require_module(EXPENSES))])
def delete_expense(expense_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    finance_service.delete_expense(db, p=p, expense_id=expense_id)
    return {"ok": True}


def _generated(db: Session, p: Principal, *, kind: str, result) -> GenerateOut:
    wf(
        db,
        org_id=p.org_id,
        actor_user_id=p.user_id,
        event_type=f"finance.{kind}_generated",
        payload={"billing_period": result.billing_period, "count": result.count, "skipped": result.skipped},
    )
    db.commit()
    return GenerateOut(
        message=f"Generated {result.count} {kind} records for {result.billing_period}",
        count=result.count,
        skipped=result.skipped,
        billing_period=result.billing_period,
        record_ids=result.record_ids,
    )


@router.post("/generate-rent", response_model=GenerateOut)
def generate_rent_records(payload: GenerateIn, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    if payload.property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=payload.property_id)
    try:
        result = generate_rent(db, org_id=p.org_id, month=payload.month, year=payload.year, property_id=payload.property_id)
    except NoActiveEntities as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _generated(db, p, kind="rent", result=result)


@router.post("/generate-salary", response_model=GenerateOut, dependencies=[Depends(require_module(EXPENSES))])
def generate_salary_records(payload: GenerateIn, db: Session = Depends(get_db), p: Principal = Depends(require_manager)):
    if payload.property_id is not None:
        must_get_property(db, org_id=p.org_id, property_id=payload.property_id)
    try:
        result = generate_salary(db, org_id=p.org_id, month=payload.month, year=payload.year, property_id=payload.property_id)
    except NoActiveEntities as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _generated(db, p, kind="salary", result=result)
