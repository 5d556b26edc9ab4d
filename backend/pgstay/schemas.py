# backend/pgstay/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator


class PartialUpdate(BaseModel):
    """PATCH body: omitted fields are left alone; NOT_NULL fields may not be sent as null."""

    NOT_NULL: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        nulls = sorted(k for k in self.model_fields_set & set(self.NOT_NULL) if getattr(self, k) is None)
        if nulls:
            raise ValueError(f"cannot be null: {', '.join(nulls)}")
        return self


# -------------------- Auth --------------------

class RegisterIn(BaseModel):
    org_slug: str = Field(min_length=2, max_length=80)
    org_name: str
    email: str
    password: str = Field(min_length=8)
    display_name: Optional[str] = None
    phone: Optional[str] = None


class LoginIn(BaseModel):
    org_slug: str
    email: str
    password: str


class MeOut(BaseModel):
    org_id: int
    org_slug: str
    user_id: int
    email: str
    role: str
    plan_code: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    principal: MeOut


# -------------------- Properties / Rooms --------------------

class PropertyCreate(BaseModel):
    name: str
    address: str
    city: str
    state: Optional[str] = None
    pincode: Optional[str] = None
    property_type: str = "pg"


class PropertyUpdate(PartialUpdate):
    NOT_NULL: ClassVar[tuple[str, ...]] = ("name", "address", "city", "property_type")

    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    property_type: Optional[str] = None


class PropertyOut(PropertyCreate):
    id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    property_id: int
    room_number: str
    room_type: str = "Double"
    floor: Optional[int] = None
    capacity: int = Field(default=1, ge=1)
    rent: float = Field(default=0.0, ge=0)


class RoomUpdate(PartialUpdate):
    NOT_NULL: ClassVar[tuple[str, ...]] = ("room_number", "room_type", "capacity", "rent")

    room_number: Optional[str] = None
    room_type: Optional[str] = None
    floor: Optional[int] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    rent: Optional[float] = Field(default=None, ge=0)


class RoomOut(BaseModel):
    id: int
    property_id: int
    room_number: str
    room_type: str
    floor: Optional[int] = None
    capacity: int
    current_occupancy: int
    rent: float
    model_config = ConfigDict(from_attributes=True)


# -------------------- Tenants --------------------

TENANT_STATUSES = ("Active", "Inactive", "Notice Period", "Left")


class TenantCreate(BaseModel):
    property_id: int
    room_id: Optional[int] = None
    name: str
    email: str
    phone: str
    gender: Optional[str] = None
    occupation: Optional[str] = None
    rent_amount: float = Field(default=0.0, ge=0)
    security_deposit: float = Field(default=0.0, ge=0)
    joining_date: Optional[datetime] = None
    notice_period_days: int = Field(default=30, ge=0)
    notes: Optional[str] = None


class TenantUpdate(PartialUpdate):
    """Derived payment_status / deposit_status are not writable here."""

    NOT_NULL: ClassVar[tuple[str, ...]] = (
        "name", "email", "phone", "rent_amount", "security_deposit", "notice_period_days", "status",
    )

    room_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    rent_amount: Optional[float] = Field(default=None, ge=0)
    security_deposit: Optional[float] = Field(default=None, ge=0)
    leaving_date: Optional[datetime] = None
    notice_period_days: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_status(self):
        if self.status is not None and self.status not in TENANT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(TENANT_STATUSES)}")
        return self


class TenantPaymentDatesIn(BaseModel):
    last_payment_date: Optional[datetime] = None
    next_payment_due: Optional[datetime] = None


class TenantOut(BaseModel):
    id: int
    property_id: int
    room_id: Optional[int] = None
    name: str
    email: str
    phone: str
    gender: Optional[str] = None
    occupation: Optional[str] = None
    rent_amount: float
    security_deposit: float
    joining_date: datetime
    leaving_date: Optional[datetime] = None
    notice_period_days: int
    status: str
    payment_status: str
    deposit_status: str
    last_payment_date: Optional[datetime] = None
    next_payment_due: Optional[datetime] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class TenantPage(BaseModel):
    items: list[TenantOut]
    page: int
    limit: int
    total: int
    total_pages: int


# -------------------- Staff --------------------

class StaffCreate(BaseModel):
    property_id: int
    name: str
    email: str
    phone: str
    role: str
    salary: float = Field(default=0.0, ge=0)
    joining_date: Optional[datetime] = None
    notes: Optional[str] = None


class StaffUpdate(PartialUpdate):
    NOT_NULL: ClassVar[tuple[str, ...]] = ("property_id", "name", "email", "phone", "role", "salary", "is_active")

    property_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    salary: Optional[float] = Field(default=None, ge=0)
    leaving_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class StaffOut(BaseModel):
    id: int
    property_id: int
    name: str
    email: str
    phone: str
    role: str
    salary: float
    joining_date: datetime
    leaving_date: Optional[datetime] = None
    is_active: bool
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Finance --------------------

class FinanceRecordCreate(BaseModel):
    """
    One create shape for both stores. `category` accepts request aliases
    ("Salary", "Other Expense"); entity_type "Staff" forces the expense side.
    """

    category: str
    amount: float = Field(ge=0)
    status: Optional[str] = None

    entity_id: Optional[int] = None
    entity_type: Optional[str] = None  # Tenant | Staff
    property_id: Optional[int] = None

    due_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None

    method: Optional[str] = None
    transaction_id: Optional[str] = None

    paid_to: Optional[str] = None
    payment_method: Optional[str] = None
    invoice_number: Optional[str] = None

    description: Optional[str] = None
    notes: Optional[str] = None


class FinanceRecordUpdate(PartialUpdate):
    NOT_NULL: ClassVar[tuple[str, ...]] = ("amount", "due_date", "paid_to", "payment_method")

    category: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None

    entity_id: Optional[int] = None
    property_id: Optional[int] = None

    due_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None

    method: Optional[str] = None
    transaction_id: Optional[str] = None

    paid_to: Optional[str] = None
    payment_method: Optional[str] = None
    invoice_number: Optional[str] = None

    description: Optional[str] = None
    notes: Optional[str] = None


class FinanceRecordOut(BaseModel):
    id: int
    kind: str  # rent | security_deposit | other_income | salary | expense
    category: str
    amount: float
    status: str
    entity_id: Optional[int] = None
    entity_name: Optional[str] = None
    entity_type: str  # Tenant | Staff | Property
    property_id: int
    property_name: Optional[str] = None
    due_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None
    billing_period: Optional[str] = None
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class FinancePage(BaseModel):
    items: list[FinanceRecordOut]
    page: int
    limit: int
    total: int
    total_pages: int


class FinanceStatsOut(BaseModel):
    total_income: float
    pending_income: float
    total_expense: float
    pending_expense: float
    net: float


class GenerateIn(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2200)
    property_id: Optional[int] = None


class GenerateOut(BaseModel):
    message: str
    count: int
    skipped: int
    billing_period: str
    record_ids: list[int]


# -------------------- Plans --------------------

class PlanOut(BaseModel):
    code: str
    name: str
    price: float
    period: str
    description: Optional[str] = None
    allowed_modules: list[str]
    display_order: int


class CurrentPlanOut(BaseModel):
    plan_code: str
    plan_name: str
    is_active: bool
    allowed_modules: list[str]
    subscription_status: Optional[str] = None
    started_at: Optional[datetime] = None


class SubscribeIn(BaseModel):
    plan_code: str


# -------------------- Payment gateway --------------------

class GatewayOrderOut(BaseModel):
    payment_id: int
    order_id: str
    amount: int  # paise
    currency: str
    key_id: Optional[str] = None


class GatewayVerifyIn(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


# -------------------- Activity --------------------

class WorkflowEventOut(BaseModel):
    id: int
    property_id: Optional[int] = None
    actor_user_id: Optional[int] = None
    event_type: str
    payload: dict[str, Any]
    created_at: Optional[datetime] = None
