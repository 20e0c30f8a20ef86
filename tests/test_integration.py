"""End-to-end workflows through the client components over the workbook backend.

Each scenario receives its own seeded workbook, logs in the way a user would,
and checks what the store and the back office see afterwards.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, STORE_PASSWORD
from produce_portal import (
    actions,
    cart,
    catalog,
    customers,
    documents,
    ledger,
    lifecycle,
    orders,
    payments,
    session,
    users,
)
from produce_portal.constants import OrderPaymentMethod, OrderStatus
from produce_portal.errors import AccessDenied, InvalidTransition
from produce_portal.models import Customer

MARCH = ledger.StatementPeriod(date(2024, 3, 1), date(2024, 3, 31))


async def _open_store(backend, store_number="1001"):
    store = await session.find_store(backend, store_number)
    return await session.login_customer(backend, store, STORE_PASSWORD)


async def _refetch(backend, admin, order_id):
    (order,) = [order for order in await backend.get_all_orders(admin.require_token()) if order.order_id == order_id]
    return order


@pytest.mark.asyncio
async def test_order_to_statement_flow(seeded_backend, clock, tmp_path):
    """Place an order from a cart, deliver it, take a payment, reconcile."""

    store = await _open_store(seeded_backend)
    admin = await session.login_admin(seeded_backend, ADMIN_EMAIL, ADMIN_PASSWORD)

    offered = {product.id: product for product in await catalog.load_storefront_products(seeded_backend)}
    assert set(offered) == {1, 2}
    basket = cart.Cart()
    basket.add(offered[1], 2)
    basket.add(offered[1])
    basket.add(offered[2])
    basket.set_quantity(2, 0)
    assert [(line.product_id, line.qty) for line in basket] == [(1, 3)]

    # the rate changes while the cart still holds the old one
    await catalog.update_rate(seeded_backend, admin, offered[1], "45")
    confirmation = await cart.place_order(seeded_backend, store, basket, "pay_later")

    assert basket.is_empty
    assert confirmation.subtotal == Decimal("120")
    order = await _refetch(seeded_backend, admin, confirmation.order_id)
    assert order.total_amount == Decimal("135")
    assert lifecycle.document_kind(order) is lifecycle.DocumentKind.PURCHASE_ORDER

    for expected in (OrderStatus.ACCEPTED, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED):
        assert await lifecycle.advance_order(seeded_backend, admin, order) is expected
        order = await _refetch(seeded_backend, admin, order.order_id)
    with pytest.raises(InvalidTransition):
        await lifecycle.advance_order(seeded_backend, admin, order)
    assert order.invoice_number == "INV-0001"

    clock.moment += timedelta(days=1)
    form = payments.build_payment("1001", "Green Grocers", "100", "cheque", cheque_details="CHQ 000123")
    await payments.record_payment(seeded_backend, admin, form)

    statement = await ledger.load_customer_statement(
        seeded_backend, admin, "1001", MARCH, account_name="Green Grocers", company_name="Green Grocers"
    )
    assert [row.balance for row in statement.reconciliation.rows] == [Decimal("135"), Decimal("35")]
    assert statement.reconciliation.status_label == "Amount Due"

    own = await ledger.load_my_statement(seeded_backend, store, MARCH)
    assert own.closing_balance == statement.closing_balance

    history = await orders.load_my_orders(seeded_backend, store)
    assert [entry.invoice_number for entry in history] == ["INV-0001"]
    assert orders.totals_by_payment_method(history)[OrderPaymentMethod.PAY_LATER].total == Decimal("135")

    invoice = documents.render_order_pdf(history[0], tmp_path)
    exported = documents.render_statement_pdf(statement, tmp_path)
    assert invoice.name == "Invoice_INV-0001_1001.pdf"
    assert exported.name == "Statement_Green_Grocers_2024-03-01_to_2024-03-31.pdf"


@pytest.mark.asyncio
async def test_editing_an_order_before_delivery(seeded_backend):
    store = await _open_store(seeded_backend)
    admin = await session.login_admin(seeded_backend, ADMIN_EMAIL, ADMIN_PASSWORD)
    basket = cart.Cart()
    for product in await catalog.load_storefront_products(seeded_backend):
        basket.add(product, 2)
    confirmation = await cart.place_order(seeded_backend, store, basket)

    order = await _refetch(seeded_backend, admin, confirmation.order_id)
    editor = lifecycle.OrderEditor(order)
    editor.remove(2)
    editor.set_quantity(1, 4)
    editor.set_rate(1, Decimal("38"))
    await editor.save(seeded_backend, admin)

    order = await _refetch(seeded_backend, admin, confirmation.order_id)
    assert order.total_amount == Decimal("152")
    assert [(item.product_id, item.qty) for item in order.items] == [(1, 4)]
    assert order.status == OrderStatus.PENDING.value


@pytest.mark.asyncio
async def test_customer_maintenance_round_trip(seeded_backend):
    admin = await session.login_admin(seeded_backend, ADMIN_EMAIL, ADMIN_PASSWORD)
    listing = await customers.load_customers(seeded_backend, admin)
    current = customers.find_customer(listing, "1002")

    updated = customers.validate_customer(
        Customer(
            store_number="1003",
            name=current.name,
            phone=current.phone,
            company_name="Fresh Mart Two",
            address=current.address,
            email=current.email,
            password="secret9",
        )
    )
    await customers.update_customer(seeded_backend, admin, listing, "1002", updated)
    assert await seeded_backend.get_customer("1002") is None
    assert (await _open_store(seeded_backend, "1001")).company_name == "Green Grocers"

    await customers.delete_customer(seeded_backend, admin, await customers.load_customers(seeded_backend, admin), "1003")
    assert [customer.store_number for customer in await customers.load_customers(seeded_backend, admin)] == ["1001"]


@pytest.mark.asyncio
async def test_team_account_lifecycle(seeded_backend):
    admin = await session.login_admin(seeded_backend, ADMIN_EMAIL, ADMIN_PASSWORD)
    await users.create_sub_user(seeded_backend, admin, "ops@example.com", "secret1", "storeManager")
    team = await session.login_sub_user(seeded_backend, "ops@example.com", "secret1")

    dashboard = await orders.load_admin_dashboard(seeded_backend, team)
    assert (dashboard.total_orders, dashboard.total_customers, dashboard.total_products) == (0, 2, 3)

    outcome = await actions.perform(
        lambda: catalog.load_default_products(seeded_backend, team),
        success="Loaded",
        failure="Failed to load default products",
    )
    assert not outcome.ok
    assert "Access denied" in outcome.notice.message

    (user,) = await users.load_sub_users(seeded_backend, admin)
    await users.toggle_sub_user(seeded_backend, admin, user)
    with pytest.raises(AccessDenied):
        await orders.load_admin_dashboard(seeded_backend, team)
