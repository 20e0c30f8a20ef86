"""Unit tests for order list views and dashboards."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import make_order
from produce_portal import orders
from produce_portal.constants import OrderPaymentMethod
from produce_portal.ledger import datetime_to_nanos


def _at(year, month, day, hour=12):
    return datetime_to_nanos(datetime(year, month, day, hour))


@pytest.fixture
def order_book():
    return [
        make_order("ORD1", status="pending", timestamp=_at(2024, 3, 1), po_number="PO-0001"),
        make_order(
            "ORD2",
            status="delivered",
            timestamp=_at(2024, 3, 3),
            po_number="PO-0002",
            store_number="1002",
            company_name="Fresh Mart",
            payment_method="pay_later",
            invoice_number="INV-0001",
        ),
        make_order("ORD3", status="accepted", timestamp=_at(2024, 3, 2), po_number="PO-0003"),
    ]


def test_newest_first(order_book):
    assert [order.order_id for order in orders.newest_first(order_book)] == ["ORD2", "ORD3", "ORD1"]


@pytest.mark.parametrize(
    ("term", "expected"),
    [
        ("fresh", ["ORD2"]),
        ("1001", ["ORD3", "ORD1"]),
        ("po-0003", ["ORD3"]),
        ("ord1", ["ORD1"]),
        ("", ["ORD2", "ORD3", "ORD1"]),
    ],
)
def test_filter_orders_by_search(order_book, term, expected):
    assert [order.order_id for order in orders.filter_orders(order_book, search=term)] == expected


def test_filter_orders_by_status(order_book):
    result = orders.filter_orders(order_book, status="accepted")

    assert [order.order_id for order in result] == ["ORD3"]


def test_filter_orders_combines_search_and_status(order_book):
    assert orders.filter_orders(order_book, search="fresh", status="pending") == []


@pytest.mark.parametrize(("status", "step"), [("pending", 0), ("accepted", 1), ("on_the_way", 2), ("delivered", 3)])
def test_tracker_step(status, step):
    assert orders.tracker_step(status) == step


def test_totals_by_payment_method(order_book):
    summary = orders.totals_by_payment_method(order_book)

    assert summary[OrderPaymentMethod.COD].count == 2
    assert summary[OrderPaymentMethod.COD].total == Decimal("160.00")
    assert summary[OrderPaymentMethod.PAY_LATER].count == 1


def test_build_admin_dashboard_counts(order_book):
    dashboard = orders.build_admin_dashboard(order_book, 5, 40, today=date(2024, 3, 2))

    assert dashboard.total_orders == 3
    assert dashboard.total_customers == 5
    assert dashboard.total_products == 40
    assert dashboard.todays_orders == 1
    assert [order.order_id for order in dashboard.recent_orders] == ["ORD2", "ORD3", "ORD1"]


def test_dashboard_keeps_ten_most_recent():
    many = [make_order(f"ORD{index}", timestamp=_at(2024, 1, index + 1)) for index in range(15)]

    dashboard = orders.build_admin_dashboard(many, 1, 1, today=date(2024, 1, 1))

    assert len(dashboard.recent_orders) == orders.RECENT_ORDER_LIMIT
    assert dashboard.recent_orders[0].order_id == "ORD14"


@pytest.mark.asyncio
async def test_load_my_orders_is_newest_first(backend, customer_session, order_book):
    backend.get_orders_by_store.return_value = order_book

    result = await orders.load_my_orders(backend, customer_session)

    backend.get_orders_by_store.assert_awaited_once_with("customer-token", "1001")
    assert [order.order_id for order in result] == ["ORD2", "ORD3", "ORD1"]


@pytest.mark.asyncio
async def test_load_admin_dashboard_queries_all_sources(backend, admin_session, order_book):
    backend.get_all_orders.return_value = order_book
    backend.get_all_customers.return_value = ["a", "b"]
    backend.get_all_products.return_value = ["x"]

    dashboard = await orders.load_admin_dashboard(backend, admin_session, today=date(2024, 3, 1))

    assert (dashboard.total_orders, dashboard.total_customers, dashboard.total_products) == (3, 2, 1)
    assert dashboard.todays_orders == 1
