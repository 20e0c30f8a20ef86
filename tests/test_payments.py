"""Unit tests for payment entry and listing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from produce_portal import payments
from produce_portal.constants import PaymentMethod
from produce_portal.errors import ValidationError
from produce_portal.models import Payment


def test_build_payment_cash():
    form = payments.build_payment("1001", "Green Grocers", "250.00", "cash", cheque_details="ignored")

    assert form.amount == Decimal("250.00")
    assert form.method is PaymentMethod.CASH
    assert form.cheque_details is None and form.utr_details is None


def test_build_payment_requires_customer():
    with pytest.raises(ValidationError, match="Please select a customer"):
        payments.build_payment("", "", "10", "cash")


@pytest.mark.parametrize("amount", ["0", "-5", "ten", ""])
def test_build_payment_rejects_non_positive_amount(amount):
    with pytest.raises(ValidationError, match="Please enter a valid amount"):
        payments.build_payment("1001", "Green Grocers", amount, "cash")


def test_cheque_requires_details():
    with pytest.raises(ValidationError, match="Please enter cheque details"):
        payments.build_payment("1001", "Green Grocers", "10", "cheque", cheque_details="  ")

    form = payments.build_payment("1001", "Green Grocers", "10", "cheque", cheque_details=" CHQ 1234 ", utr_details="x")
    assert form.cheque_details == "CHQ 1234"
    assert form.utr_details is None


def test_online_requires_utr():
    with pytest.raises(ValidationError, match="Please enter UTR details"):
        payments.build_payment("1001", "Green Grocers", "10", "online")


@pytest.mark.asyncio
async def test_record_payment(backend, admin_session):
    form = payments.build_payment("1001", "Green Grocers", "75", "online", utr_details="UTR99")

    await payments.record_payment(backend, admin_session, form)

    backend.add_payment.assert_awaited_once_with(
        "admin-token", "1001", "Green Grocers", Decimal("75"), "online", None, "UTR99"
    )


@pytest.mark.asyncio
async def test_load_payments_by_store_newest_first(backend, admin_session):
    older = Payment("P1", "1001", "Green Grocers", Decimal("10"), "cash", 100)
    newer = Payment("P2", "1001", "Green Grocers", Decimal("20"), "cash", 200)
    backend.get_payments_by_store.return_value = [older, newer]

    result = await payments.load_payments(backend, admin_session, "1001")

    assert [payment.payment_id for payment in result] == ["P2", "P1"]
    backend.get_all_payments.assert_not_awaited()


@pytest.mark.asyncio
async def test_load_all_payments(backend, admin_session):
    backend.get_all_payments.return_value = []

    assert await payments.load_payments(backend, admin_session) == []
    backend.get_all_payments.assert_awaited_once_with("admin-token")
