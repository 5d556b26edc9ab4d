# backend/pgstay/services/email_service.py
"""
Best-effort transactional email.

Messages are rendered eagerly (while the request's ORM rows are loaded) and
delivered either inline or on FastAPI BackgroundTasks. Delivery failures are
logged and never raised to the caller.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Optional

from fastapi import BackgroundTasks
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import settings
from ..domain.finance_records import display_status

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def _money(v: Any) -> str:
    return f"₹{float(v or 0.0):,.2f}"


def _date(v: Optional[datetime]) -> str:
    return v.strftime("%d %b %Y") if v else "-"


_env.filters["money"] = _money
_env.filters["date"] = _date


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    kind: str


def render(template_name: str, **context: Any) -> str:
    context.setdefault("brand", settings.mail_from_name)
    context.setdefault("year", datetime.utcnow().year)
    return _env.get_template(template_name).render(**context)


def smtp_configured() -> bool:
    return bool(settings.smtp_host)


def send_email(msg: OutgoingEmail) -> bool:
    """Deliver one message over SMTP. Returns False when SMTP is not configured."""
    if not smtp_configured():
        log.info("email service not configured; skipped %s to %s", msg.kind, msg.to)
        return False

    em = EmailMessage()
    em["Subject"] = msg.subject
    em["From"] = formataddr((settings.mail_from_name, settings.mail_from))
    em["To"] = msg.to
    em.set_content("This message requires an HTML-capable mail client.")
    em.add_alternative(msg.html, subtype="html")

    with smtplib.SMTP(str(settings.smtp_host), int(settings.smtp_port), timeout=settings.smtp_timeout_seconds) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls(context=ssl.create_default_context())
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(em)

    log.info("email sent: %s to %s", msg.kind, msg.to)
    return True


def send_safely(msg: OutgoingEmail) -> bool:
    try:
        return send_email(msg)
    except Exception:
        log.exception("email dispatch failed: %s to %s", msg.kind, msg.to)
        return False


def dispatch(msg: Optional[OutgoingEmail], background: Optional[BackgroundTasks] = None) -> None:
    """Fire-and-forget: queue on BackgroundTasks when given, else send inline."""
    if msg is None:
        return
    if background is not None:
        background.add_task(send_safely, msg)
        return
    send_safely(msg)


# -------------------------
# Message builders
# -------------------------
def rent_payment_confirmation(*, payment: Any, tenant: Any, property_name: str) -> Optional[OutgoingEmail]:
    if not getattr(tenant, "email", None):
        return None
    html = render(
        "rent_payment_confirmation.html",
        tenant_name=tenant.name,
        property_name=property_name,
        amount=payment.amount,
        paid_date=payment.paid_date or datetime.utcnow(),
        due_date=payment.due_date,
        method=payment.method or "Other",
        transaction_id=payment.transaction_id,
        description=payment.description,
        status=display_status(payment.status),
    )
    return OutgoingEmail(
        to=str(tenant.email),
        subject=f"Rent payment received - {property_name}",
        html=html,
        kind="rent_payment_confirmation",
    )


def salary_credit(*, expense: Any, staff: Any, property_name: str) -> Optional[OutgoingEmail]:
    if not getattr(staff, "email", None):
        return None
    html = render(
        "salary_credit.html",
        staff_name=staff.name,
        staff_role=staff.role,
        property_name=property_name,
        amount=expense.amount,
        date=expense.date,
        method=expense.payment_method,
        description=expense.description,
    )
    return OutgoingEmail(
        to=str(staff.email),
        subject=f"Salary credited - {property_name}",
        html=html,
        kind="salary_credit",
    )


def tenant_departure_notice(*, tenant: Any, property_name: str) -> Optional[OutgoingEmail]:
    if not getattr(tenant, "email", None):
        return None
    html = render(
        "tenant_departure.html",
        tenant_name=tenant.name,
        property_name=property_name,
        joining_date=tenant.joining_date,
        leaving_date=tenant.leaving_date or datetime.utcnow(),
        security_deposit=tenant.security_deposit,
        deposit_status=tenant.deposit_status,
    )
    return OutgoingEmail(
        to=str(tenant.email),
        subject=f"Checkout confirmation - {property_name}",
        html=html,
        kind="tenant_departure",
    )
