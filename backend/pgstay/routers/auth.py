# backend/pgstay/routers/auth.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, get_plan_code_for_org, hash_password, issue_token, verify_password
from ..config import settings
from ..db import get_db
from ..models import AppUser, Organization, OrgMembership, Subscription
from ..schemas import LoginIn, MeOut, RegisterIn, TokenOut
from ..services.plan_service import ensure_default_plans


router = APIRouter(prefix="/auth", tags=["auth"])


def _now() -> datetime:
    return datetime.utcnow()


def _set_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.jwt_cookie_name,
        token,
        httponly=True,
        secure=bool(settings.jwt_cookie_secure),
        samesite=str(settings.jwt_cookie_samesite),
        max_age=int(settings.jwt_exp_minutes) * 60,
        path="/",
    )


@router.post("/register", response_model=TokenOut)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    """
    Create an owner account: user + org + owner membership + default-plan subscription.
    """
    ensure_default_plans(db)

    email = payload.email.strip().lower()
    org_slug = payload.org_slug.strip().lower()

    if db.scalar(select(AppUser).where(AppUser.email == email)):
        raise HTTPException(status_code=400, detail="Email already registered")
    if db.scalar(select(Organization).where(Organization.slug == org_slug)):
        raise HTTPException(status_code=400, detail="org_slug already exists")

    u = AppUser(
        email=email,
        display_name=payload.display_name or email.split("@")[0],
        password_hash=hash_password(payload.password),
        created_at=_now(),
    )
    org = Organization(slug=org_slug, name=payload.org_name, email=email, phone=payload.phone, created_at=_now())
    db.add_all([u, org])
    db.flush()

    db.add(OrgMembership(org_id=int(org.id), user_id=int(u.id), role="owner", created_at=_now()))
    db.add(Subscription(org_id=int(org.id), plan_code=settings.default_plan_code or "starter", status="active", started_at=_now()))
    db.commit()

    token = issue_token(user_id=int(u.id))
    _set_cookie(response, token)

    return TokenOut(
        access_token=token,
        principal=MeOut(
            org_id=int(org.id),
            org_slug=str(org.slug),
            user_id=int(u.id),
            email=str(u.email),
            role="owner",
            plan_code=get_plan_code_for_org(db, org_id=int(org.id)),
        ),
    )


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    org = db.scalar(select(Organization).where(Organization.slug == payload.org_slug.strip().lower()))
    if org is None:
        raise HTTPException(status_code=401, detail="Unknown org")

    mem = db.scalar(select(OrgMembership).where(OrgMembership.org_id == int(org.id), OrgMembership.user_id == int(user.id)))
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of org")

    user.last_login_at = _now()
    db.add(user)
    db.commit()

    token = issue_token(user_id=int(user.id))
    _set_cookie(response, token)

    return TokenOut(
        access_token=token,
        principal=MeOut(
            org_id=int(org.id),
            org_slug=str(org.slug),
            user_id=int(user.id),
            email=str(user.email),
            role=str(mem.role),
            plan_code=get_plan_code_for_org(db, org_id=int(org.id)),
        ),
    )


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.jwt_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=MeOut)
def me(p: Principal = Depends(get_principal)):
    return MeOut(org_id=p.org_id, org_slug=p.org_slug, user_id=p.user_id, email=p.email, role=p.role, plan_code=p.plan_code)
