# backend/pgstay/auth.py
"""
Request principal for the PG dashboard.

Every request carries the active org in X-Org-Slug. The user comes from the
session token (HttpOnly cookie or bearer header); in dev mode X-User-Email /
X-User-Role headers stand in for a login and provision what is missing.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser, Organization, OrgMembership, Subscription

# lowest to highest
ROLES = ("staff", "manager", "owner", "admin")

_PBKDF2_ROUNDS = 120_000
_HASH_SCHEME = "pbkdf2_sha256"


@dataclass(frozen=True)
class Principal:
    org_id: int
    org_slug: str
    user_id: int
    email: str
    role: str
    plan_code: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def at_least(self, role: str) -> bool:
        if self.role not in ROLES or role not in ROLES:
            return False
        return ROLES.index(self.role) >= ROLES.index(role)


# -------------------------
# Passwords
# -------------------------
def _derive(password: str, salt: bytes) -> str:
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ROUNDS)
    return base64.urlsafe_b64encode(dk).decode()


def hash_password(password: str) -> str:
    salt = base64.urlsafe_b64encode(secrets.token_bytes(12))
    return "$".join((_HASH_SCHEME, salt.decode(), _derive(password, salt)))


def verify_password(password: str, stored: str | None) -> bool:
    parts = (stored or "").split("$")
    if len(parts) != 3 or parts[0] != _HASH_SCHEME:
        return False
    return hmac.compare_digest(_derive(password, parts[1].encode()), parts[2])


# -------------------------
# Session tokens (HS256 JWT)
# -------------------------
def decode_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"], options={"require": ["sub", "exp"]})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def issue_token(*, user_id: int) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "iat": now, "exp": now + timedelta(minutes=int(settings.jwt_exp_minutes))}
    return jwt.encode(claims, settings.jwt_secret, algorithm="HS256")


def _token_from(request: Request, authorization: Optional[str]) -> Optional[str]:
    if settings.jwt_cookie_name:
        cookie = request.cookies.get(settings.jwt_cookie_name)
        if cookie:
            return cookie
    scheme, _, value = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


# -------------------------
# Org context
# -------------------------
def get_plan_code_for_org(db: Session, org_id: int) -> str:
    sub = db.scalar(select(Subscription).where(Subscription.org_id == org_id).order_by(Subscription.id.desc()))
    if sub is not None and sub.status == "active":
        return str(sub.plan_code)
    return settings.default_plan_code or "starter"


def _membership(db: Session, *, org: Organization, user: AppUser) -> OrgMembership | None:
    return db.scalar(
        select(OrgMembership).where(OrgMembership.org_id == int(org.id), OrgMembership.user_id == int(user.id))
    )


def _build_principal(db: Session, *, org: Organization, user: AppUser, mem: OrgMembership | None) -> Principal:
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this org")
    return Principal(
        org_id=int(org.id),
        org_slug=str(org.slug),
        user_id=int(user.id),
        email=str(user.email),
        role=str(mem.role),
        plan_code=get_plan_code_for_org(db, org_id=int(org.id)),
    )


def _token_principal(db: Session, *, org_slug: str, token: str) -> Principal:
    sub = str(decode_token(token).get("sub") or "")
    if not sub.isdigit():
        raise HTTPException(status_code=401, detail="Token missing sub")

    user = db.get(AppUser, int(sub))
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")

    org = db.scalar(select(Organization).where(Organization.slug == org_slug))
    if org is None:
        raise HTTPException(status_code=401, detail="Unknown org")
    return _build_principal(db, org=org, user=user, mem=_membership(db, org=org, user=user))


def _dev_principal(db: Session, request: Request, org_slug: str) -> Principal:
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    if not email:
        raise HTTPException(status_code=401, detail="Missing X-User-Email for dev auth")
    role = (request.headers.get(settings.dev_header_user_role) or "owner").strip().lower()
    provision = bool(settings.dev_auto_provision)
    now = datetime.utcnow()

    org = db.scalar(select(Organization).where(Organization.slug == org_slug))
    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if provision and org is None:
        org = Organization(slug=org_slug, name=org_slug, created_at=now)
        db.add(org)
    if provision and user is None:
        user = AppUser(email=email, display_name=email.split("@")[0], created_at=now)
        db.add(user)
    if org is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/org")
    db.flush()

    mem = _membership(db, org=org, user=user)
    if provision and mem is None:
        mem = OrgMembership(
            org_id=int(org.id),
            user_id=int(user.id),
            role=role if role in ROLES else "owner",
            created_at=now,
        )
        db.add(mem)
    db.commit()
    return _build_principal(db, org=org, user=user, mem=mem)


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_org_slug: Optional[str] = Header(default=None, alias="X-Org-Slug"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Resolve the caller for the org named in X-Org-Slug.

    A session token always wins; dev header auth is only consulted when
    settings.auth_mode == "dev" and no token was sent.
    """
    org_slug = (x_org_slug or "").strip()
    if not org_slug:
        raise HTTPException(status_code=401, detail="Missing X-Org-Slug (active org context).")

    token = _token_from(request, authorization)
    if token:
        return _token_principal(db, org_slug=org_slug, token=token)
    if settings.auth_mode == "dev":
        return _dev_principal(db, request, org_slug)
    raise HTTPException(status_code=401, detail="Not authenticated")


def require_role(min_role: str) -> Callable[..., Principal]:
    def _dep(p: Principal = Depends(get_principal)) -> Principal:
        if not p.at_least(min_role):
            raise HTTPException(status_code=403, detail=f"Requires role >= {min_role}")
        return p

    return _dep


require_manager = require_role("manager")
require_owner = require_role("owner")
