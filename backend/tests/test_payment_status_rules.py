# backend/tests/test_payment_status_rules.py
from __future__ import annotations

from pgstay.domain.payment_status import StatusInput, derive_tenant_status, deposit_is_paid


def _rec(category: str, status: str) -> StatusInput:
    return StatusInput(category=category, status=status)


def test_zero_deposit_with_no_records_is_paid_and_keeps_deposit_label():
    d = derive_tenant_status(security_deposit=0, deposit_status="Pending", payment_status="Pending", records=[])
    assert d.payment_status == "Paid"
    assert d.deposit_status == "Pending"
    assert not d.deposit_changed
    assert d.writes == 1


def test_zero_deposit_never_blocks_paid():
    d = derive_tenant_status(
        security_deposit=0,
        deposit_status="Pending",
        payment_status="Pending",
        records=[_rec("Rent", "paid")],
    )
    assert d.payment_status == "Paid"


def test_outstanding_deposit_keeps_tenant_pending_without_any_pending_record():
    # deposit owed, no deposit record at all, all rent paid
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Pending",
        payment_status="Paid",
        records=[_rec("Rent", "paid")],
    )
    assert d.deposit_status == "Pending"
    assert d.payment_status == "Pending"


def test_deposit_paid_and_pending_rent():
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Pending",
        payment_status="Pending",
        records=[_rec("Security Deposit", "paid"), _rec("Rent", "pending")],
    )
    assert d.deposit_status == "Paid"
    assert d.deposit_changed
    assert d.payment_status == "Pending"


def test_overdue_dominates_pending():
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Paid",
        payment_status="Pending",
        records=[_rec("Security Deposit", "paid"), _rec("Rent", "pending"), _rec("Rent", "overdue")],
    )
    assert d.payment_status == "Overdue"


def test_status_comparison_is_case_insensitive():
    d = derive_tenant_status(
        security_deposit=500,
        deposit_status="Pending",
        payment_status="Pending",
        records=[_rec("Security Deposit", "PAID"), _rec("Rent", "Paid")],
    )
    assert d.deposit_status == "Paid"
    assert d.payment_status == "Paid"


def test_deposit_goes_back_to_pending_when_a_deposit_record_is_not_paid():
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Paid",
        payment_status="Paid",
        records=[_rec("Security Deposit", "paid"), _rec("Security Deposit", "pending")],
    )
    assert d.deposit_status == "Pending"
    assert d.payment_status == "Pending"
    assert d.writes == 2


def test_no_change_means_no_writes():
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Paid",
        payment_status="Paid",
        records=[_rec("Security Deposit", "paid"), _rec("Rent", "paid")],
    )
    assert d.writes == 0


def test_deposit_is_paid_requires_at_least_one_deposit_record():
    assert not deposit_is_paid([])
    assert not deposit_is_paid([_rec("Rent", "paid")])
    assert deposit_is_paid([_rec("Security Deposit", "paid")])
    assert not deposit_is_paid([_rec("Security Deposit", "paid"), _rec("Security Deposit", "failed")])


def test_owed_deposit_without_any_deposit_record_is_pending():
    # e.g. the only deposit record was deleted after being paid
    d = derive_tenant_status(
        security_deposit=10000,
        deposit_status="Paid",
        payment_status="Paid",
        records=[_rec("Rent", "paid")],
    )
    assert d.deposit_status == "Pending"
    assert d.deposit_changed
    assert d.payment_status == "Pending"
