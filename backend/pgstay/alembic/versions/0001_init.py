"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ---- tenancy / RBAC ----
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "org_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="owner"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
    )
    op.create_index("ix_org_memberships_org_id", "org_memberships", ["org_id"])
    op.create_index("ix_org_memberships_user_id", "org_memberships", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_org_id", "audit_events", ["org_id"])

    # ---- plans ----
    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=40), nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("period", sa.String(length=20), nullable=False, server_default="month"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("allowed_modules_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_plans_code", "plans", ["code"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("plan_code", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_subscriptions_org_id", "subscriptions", ["org_id"])

    # ---- properties / rooms ----
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("state", sa.String(length=80), nullable=True),
        sa.Column("pincode", sa.String(length=12), nullable=True),
        sa.Column("property_type", sa.String(length=40), nullable=False, server_default="pg"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_org_id", "properties", ["org_id"])

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_workflow_events_org_id", "workflow_events", ["org_id"])
    op.create_index("ix_workflow_events_property_id", "workflow_events", ["property_id"])
    op.create_index("ix_workflow_events_event_type", "workflow_events", ["event_type"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_number", sa.String(length=20), nullable=False),
        sa.Column("room_type", sa.String(length=20), nullable=False, server_default="Double"),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_occupancy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("property_id", "room_number", name="uq_rooms_property_number"),
    )
    op.create_index("ix_rooms_org_id", "rooms", ["org_id"])
    op.create_index("ix_rooms_property_id", "rooms", ["property_id"])

    # ---- people ----
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("gender", sa.String(length=10), nullable=True),
        sa.Column("occupation", sa.String(length=40), nullable=True),
        sa.Column("rent_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("security_deposit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("joining_date", sa.DateTime(), nullable=False),
        sa.Column("leaving_date", sa.DateTime(), nullable=True),
        sa.Column("notice_period_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Active"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="Pending"),
        sa.Column("deposit_status", sa.String(length=20), nullable=False, server_default="Pending"),
        sa.Column("last_payment_date", sa.DateTime(), nullable=True),
        sa.Column("next_payment_due", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("org_id", "email", name="uq_tenants_org_email"),
    )
    op.create_index("ix_tenants_org_id", "tenants", ["org_id"])
    op.create_index("ix_tenants_property_id", "tenants", ["property_id"])
    op.create_index("ix_tenants_room_id", "tenants", ["room_id"])
    op.create_index("ix_tenants_payment_status", "tenants", ["payment_status"])
    op.create_index("ix_tenants_org_status", "tenants", ["org_id", "status"])

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("role", sa.String(length=40), nullable=False),
        sa.Column("salary", sa.Float(), nullable=False, server_default="0"),
        sa.Column("joining_date", sa.DateTime(), nullable=False),
        sa.Column("leaving_date", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("org_id", "email", name="uq_staff_org_email"),
    )
    op.create_index("ix_staff_org_id", "staff", ["org_id"])
    op.create_index("ix_staff_property_id", "staff", ["property_id"])
    op.create_index("ix_staff_is_active", "staff", ["is_active"])

    # ---- finance ----
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("paid_date", sa.DateTime(), nullable=True),
        sa.Column("billing_period", sa.String(length=7), nullable=True),
        sa.Column("method", sa.String(length=40), nullable=True),
        sa.Column("transaction_id", sa.String(length=120), nullable=True),
        sa.Column("gateway_order_id", sa.String(length=120), nullable=True),
        sa.Column("gateway_payment_id", sa.String(length=120), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
        sa.UniqueConstraint("tenant_id", "category", "billing_period", name="uq_payments_tenant_category_period"),
    )
    op.create_index("ix_payments_org_id", "payments", ["org_id"])
    op.create_index("ix_payments_property_id", "payments", ["property_id"])
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_due_date", "payments", ["due_date"])
    op.create_index("ix_payments_gateway_order_id", "payments", ["gateway_order_id"])
    op.create_index("ix_payments_tenant_category", "payments", ["tenant_id", "category"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("added_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("billing_period", sa.String(length=7), nullable=True),
        sa.Column("paid_to", sa.String(length=200), nullable=False),
        sa.Column("payment_method", sa.String(length=40), nullable=False, server_default="Other"),
        sa.Column("invoice_number", sa.String(length=80), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("staff_id", "category", "billing_period", name="uq_expenses_staff_category_period"),
    )
    op.create_index("ix_expenses_org_id", "expenses", ["org_id"])
    op.create_index("ix_expenses_property_id", "expenses", ["property_id"])
    op.create_index("ix_expenses_staff_id", "expenses", ["staff_id"])
    op.create_index("ix_expenses_category", "expenses", ["category"])
    op.create_index("ix_expenses_date", "expenses", ["date"])


def downgrade():
    op.drop_table("expenses")
    op.drop_table("payments")
    op.drop_table("staff")
    op.drop_table("tenants")
    op.drop_table("rooms")
    op.drop_table("workflow_events")
    op.drop_table("properties")
    op.drop_table("subscriptions")
    op.drop_table("plans")
    op.drop_table("audit_events")
    op.drop_table("org_memberships")
    op.drop_table("app_users")
    op.drop_table("organizations")
