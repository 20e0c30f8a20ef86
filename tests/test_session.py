"""Unit tests for login flows and session lifetime."""

from __future__ import annotations

import pytest

from produce_portal import session
from produce_portal.constants import PrincipalKind
from produce_portal.errors import AccessDenied, NotFound, SessionClosed, ValidationError
from produce_portal.models import StoreInfo


@pytest.fixture
def store():
    return StoreInfo(store_number="1001", company_name="Green Grocers", address="1001 Market Road", gst_number="")


@pytest.mark.asyncio
async def test_find_store_returns_details(backend, store):
    backend.get_customer.return_value = store

    assert await session.find_store(backend, " 1001 ") is store
    backend.get_customer.assert_awaited_once_with("1001")


@pytest.mark.asyncio
async def test_find_store_unknown(backend):
    backend.get_customer.return_value = None

    with pytest.raises(NotFound, match="Store not found"):
        await session.find_store(backend, "4040")


@pytest.mark.asyncio
async def test_find_store_requires_number(backend):
    with pytest.raises(ValidationError):
        await session.find_store(backend, "  ")
    backend.get_customer.assert_not_awaited()


@pytest.mark.asyncio
async def test_login_customer_captures_store_details(backend, store):
    backend.customer_login.return_value = "tok"

    opened = await session.login_customer(backend, store, "secret1")

    assert opened.kind is PrincipalKind.CUSTOMER
    assert opened.require_token() == "tok"
    assert (opened.store_number, opened.company_name, opened.address) == ("1001", "Green Grocers", "1001 Market Road")
    assert opened.gst_number is None


@pytest.mark.asyncio
async def test_login_customer_propagates_rejection(backend, store):
    backend.customer_login.side_effect = AccessDenied("Invalid store number or password")

    with pytest.raises(AccessDenied):
        await session.login_customer(backend, store, "wrong")


@pytest.mark.asyncio
async def test_admin_and_sub_user_logins(backend):
    backend.admin_login.return_value = "admin-tok"
    backend.sub_user_login.return_value = "team-tok"

    master = await session.login_admin(backend, "admin@example.com", "pw1234")
    team = await session.login_sub_user(backend, "ops@example.com", "pw1234", role_text="accountTeam")

    assert master.is_master and master.role_label == "Master Admin"
    assert not team.is_master and team.role_label == "Sub-User"
    assert team.role_text == "accountTeam"


@pytest.mark.asyncio
async def test_login_admin_requires_credentials(backend):
    with pytest.raises(ValidationError, match="Please enter email and password"):
        await session.login_admin(backend, "admin@example.com", "")
    backend.admin_login.assert_not_awaited()


def test_close_clears_token_and_identity(customer_session):
    customer_session.close()

    assert not customer_session.is_open
    assert customer_session.store_number == ""
    assert customer_session.gst_number is None
    with pytest.raises(SessionClosed, match="Please log in again"):
        customer_session.require_token()


def test_closing_admin_session(admin_session):
    admin_session.close()

    assert admin_session.email == ""
    with pytest.raises(SessionClosed):
        admin_session.require_token()
