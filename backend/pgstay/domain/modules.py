# backend/pgstay/domain/modules.py
from __future__ import annotations

# Feature modules gated by subscription plan
DASHBOARD = "dashboard"
ROOMS = "rooms"
TENANTS = "tenants"
STAFF = "staff"
FINANCE = "finance"
PAYMENTS = "payments"
EXPENSES = "expenses"
REPORTS = "reports"

ALL_MODULES = (DASHBOARD, ROOMS, TENANTS, STAFF, FINANCE, PAYMENTS, EXPENSES, REPORTS)

MODULE_INFO = {
    DASHBOARD: {"name": "Dashboard", "category": "core"},
    ROOMS: {"name": "Room Management", "category": "core"},
    TENANTS: {"name": "Tenant Management", "category": "core"},
    STAFF: {"name": "Staff Management", "category": "operations"},
    FINANCE: {"name": "Finance", "category": "finance"},
    PAYMENTS: {"name": "Payments", "category": "finance"},
    EXPENSES: {"name": "Expenses", "category": "finance"},
    REPORTS: {"name": "Reports", "category": "analytics"},
}

DEFAULT_PLANS = {
    "starter": {
        "name": "Starter",
        "price": 999.0,
        "period": "month",
        "display_order": 1,
        "modules": [DASHBOARD, ROOMS, TENANTS, FINANCE, PAYMENTS],
    },
    "professional": {
        "name": "Professional",
        "price": 2499.0,
        "period": "month",
        "display_order": 2,
        "modules": [DASHBOARD, ROOMS, TENANTS, STAFF, FINANCE, PAYMENTS, EXPENSES, REPORTS],
    },
    "enterprise": {
        "name": "Enterprise",
        "price": 4999.0,
        "period": "month",
        "display_order": 3,
        "modules": list(ALL_MODULES),
    },
}
