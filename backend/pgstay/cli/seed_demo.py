# backend/pgstay/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from pgstay.auth import Principal, hash_password
from pgstay.db import session_scope
from pgstay.models import Organization, AppUser, OrgMembership, Property, Room, Staff, Tenant
from pgstay.schemas import TenantCreate
from pgstay.services.plan_service import subscribe, current_subscription
from pgstay.services.tenant_service import onboard_tenant


@dataclass(frozen=True)
class SeedResult:
    org_slug: str
    user_email: str
    plan_code: str
    property_id: Optional[int]
    tenants: int
    staff: int


def _get_or_create_org(db: Session, slug: str, name: str) -> Organization:
    row = db.query(Organization).filter(Organization.slug == slug).one_or_none()
    if row:
        return row
    row = Organization(slug=slug, name=name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_user(db: Session, email: str, display_name: str, password: Optional[str]) -> AppUser:
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, display_name=display_name, password_hash=hash_password(password) if password else None)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_membership(db: Session, org_id: int, user_id: int, role: str = "owner") -> None:
    existing = db.query(OrgMembership).filter(
        OrgMembership.org_id == int(org_id),
        OrgMembership.user_id == int(user_id),
    ).one_or_none()
    if existing:
        return
    db.add(OrgMembership(org_id=int(org_id), user_id=int(user_id), role=str(role)))
    db.commit()


_DEMO_ROOMS = [("101", "Single", 1, 9000.0), ("102", "Double", 2, 6500.0), ("201", "Triple", 3, 5000.0)]

_DEMO_TENANTS = [
    ("Aarav Sharma", "aarav@demo.local", "9000000001", "101", 9000.0, 18000.0),
    ("Diya Patel", "diya@demo.local", "9000000002", "102", 6500.0, 13000.0),
    ("Kabir Rao", "kabir@demo.local", "9000000003", "102", 6500.0, 0.0),
]

_DEMO_STAFF = [
    ("Ramesh Kumar", "ramesh@demo.local", "9000000101", "Cook", 15000.0),
    ("Sunita Devi", "sunita@demo.local", "9000000102", "Cleaner", 11000.0),
]


def _seed_property(db: Session, *, principal: Principal) -> Property:
    prop = Property(
        org_id=principal.org_id,
        name="Sunrise PG",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
        property_type="pg",
    )
    db.add(prop)
    db.flush()

    rooms: dict[str, Room] = {}
    for number, room_type, capacity, rent in _DEMO_ROOMS:
        room = Room(org_id=principal.org_id, property_id=prop.id, room_number=number, room_type=room_type, capacity=capacity, rent=rent)
        db.add(room)
        rooms[number] = room
    for name, email, phone, role, salary in _DEMO_STAFF:
        db.add(Staff(org_id=principal.org_id, property_id=prop.id, name=name, email=email, phone=phone, role=role, salary=salary))
    db.commit()

    for name, email, phone, room_number, rent, deposit in _DEMO_TENANTS:
        onboard_tenant(
            db,
            p=principal,
            payload=TenantCreate(
                property_id=int(prop.id),
                room_id=int(rooms[room_number].id),
                name=name,
                email=email,
                phone=phone,
                rent_amount=rent,
                security_deposit=deposit,
                joining_date=datetime.utcnow(),
            ),
        )
    return prop


def seed_demo(
    *,
    org_slug: str = "demo",
    org_name: str = "Demo PG",
    user_email: str = "owner@demo.local",
    user_name: str = "Owner",
    password: Optional[str] = None,
    plan_code: str = "professional",
    create_sample_property: bool = True,
) -> SeedResult:
    with session_scope() as db:
        org = _get_or_create_org(db, org_slug, org_name)
        user = _get_or_create_user(db, user_email, user_name, password)
        _ensure_membership(db, org.id, user.id, role="owner")

        sub = current_subscription(db, org_id=int(org.id))
        if sub is None or sub.plan_code != plan_code or sub.status != "active":
            sub = subscribe(db, org_id=int(org.id), plan_code=plan_code)

        principal = Principal(
            org_id=int(org.id),
            org_slug=str(org.slug),
            user_id=int(user.id),
            email=str(user.email),
            role="owner",
            plan_code=str(sub.plan_code),
        )

        property_id: Optional[int] = None
        if create_sample_property:
            prop = db.query(Property).filter(Property.org_id == org.id).first()
            if not prop:
                prop = _seed_property(db, principal=principal)
            property_id = int(prop.id)

        return SeedResult(
            org_slug=org_slug,
            user_email=user_email,
            plan_code=str(sub.plan_code),
            property_id=property_id,
            tenants=db.query(Tenant).filter(Tenant.org_id == org.id).count(),
            staff=db.query(Staff).filter(Staff.org_id == org.id).count(),
        )
