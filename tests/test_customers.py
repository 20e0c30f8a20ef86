"""Unit tests for back-office customer management."""

from __future__ import annotations

import pytest

from produce_portal import customers
from produce_portal.errors import NotFound, ValidationError
from produce_portal.models import Customer


def _customer(store_number="1001", email="a@example.com", password="", **overrides):
    values = dict(
        store_number=store_number,
        name="Owner",
        phone="999",
        company_name=f"Company {store_number}",
        address="Market Road",
        email=email,
        password=password,
    )
    values.update(overrides)
    return Customer(**values)


@pytest.fixture
def roster():
    return [_customer("1001"), _customer("1002", email="b@example.com")]


def test_validate_customer_strips_fields():
    cleaned = customers.validate_customer(_customer(" 1001 ", " a@example.com ", " secret1 ", gst_number="  "))

    assert cleaned.store_number == "1001"
    assert cleaned.email == "a@example.com"
    assert cleaned.password == "secret1"
    assert cleaned.gst_number is None


@pytest.mark.parametrize(
    "broken",
    [
        _customer("", password="secret1"),
        _customer("1001", email=" ", password="secret1"),
        _customer("1001", password=""),
    ],
)
def test_validate_customer_requires_store_email_password(broken):
    with pytest.raises(ValidationError, match=customers.REQUIRED_FIELDS_MESSAGE):
        customers.validate_customer(broken)


def test_search_customers(roster):
    assert [c.store_number for c in customers.search_customers(roster, "b@EXAMPLE")] == ["1002"]
    assert customers.find_customer(roster, "1001") is roster[0]
    assert customers.find_customer(roster, "9999") is None


@pytest.mark.asyncio
async def test_import_customers_rejects_empty_upload(backend, admin_session):
    with pytest.raises(ValidationError, match="No valid customers found"):
        await customers.import_customers(backend, admin_session, [])


@pytest.mark.asyncio
async def test_import_customers_replaces_list(backend, admin_session):
    upload = [_customer("1001", password="secret1"), _customer("1003", password="secret3")]

    count = await customers.import_customers(backend, admin_session, upload)

    assert count == 2
    backend.replace_customers.assert_awaited_once()
    assert [c.store_number for c in backend.replace_customers.await_args.args[1]] == ["1001", "1003"]


@pytest.mark.asyncio
async def test_update_customer_replaces_only_target(backend, admin_session, roster):
    updated = _customer("1001", name="New Owner", password="secret9")

    submitted = await customers.update_customer(backend, admin_session, roster, "1001", updated)

    assert submitted[0].name == "New Owner"
    assert submitted[1] is roster[1]
    backend.replace_customers.assert_awaited_once_with("admin-token", submitted)


@pytest.mark.asyncio
async def test_update_customer_unknown_store(backend, admin_session, roster):
    with pytest.raises(NotFound):
        await customers.update_customer(backend, admin_session, roster, "7777", _customer("7777", password="x12345"))
    backend.replace_customers.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_customer_submits_remaining(backend, admin_session, roster):
    remaining = await customers.delete_customer(backend, admin_session, roster, "1001")

    assert [c.store_number for c in remaining] == ["1002"]
    backend.replace_customers.assert_awaited_once_with("admin-token", remaining)
