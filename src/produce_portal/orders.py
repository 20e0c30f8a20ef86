"""Read-side views over orders for the storefront and the back office."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from . import log
from .backend import BackendService
from .constants import ZERO, OrderPaymentMethod, OrderStatus
from .ledger import nanos_to_datetime
from .lifecycle import parse_status
from .models import Order
from .session import AdminSession, CustomerSession


ALL_STATUSES = "all"
RECENT_ORDER_LIMIT = 10
TRACKER_STEPS: tuple[tuple[str, OrderStatus], ...] = (
    ("Placed", OrderStatus.PENDING),
    ("Accepted", OrderStatus.ACCEPTED),
    ("On the Way", OrderStatus.ON_THE_WAY),
    ("Delivered", OrderStatus.DELIVERED),
)


@dataclass(frozen=True)
class PaymentMethodSummary:
    """Order count and advisory total for one payment choice."""

    count: int
    total: Decimal


@dataclass(frozen=True)
class AdminDashboard:
    total_orders: int
    total_customers: int
    total_products: int
    todays_orders: int
    recent_orders: tuple[Order, ...]


def newest_first(orders: Iterable[Order]) -> list[Order]:
    return sorted(orders, key=lambda order: order.timestamp, reverse=True)


def matches_search(order: Order, term: str) -> bool:
    """Case-insensitive match on store number, company, order id or PO."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystack = (order.store_number, order.company_name, order.order_id, order.po_number)
    return any(needle in (value or "").lower() for value in haystack)


def filter_orders(orders: Iterable[Order], *, search: str = "", status: str = ALL_STATUSES) -> list[Order]:
    """Apply the back-office search box and status filter, newest first."""
    wanted = None if status == ALL_STATUSES else parse_status(status)
    selected = [
        order
        for order in orders
        if matches_search(order, search) and (wanted is None or parse_status(order.status) is wanted)
    ]
    return newest_first(selected)


def tracker_step(status: str) -> int:
    """Index of ``status`` in the Placed / Accepted / On the Way / Delivered tracker."""
    current = parse_status(status)
    for index, (_, step_status) in enumerate(TRACKER_STEPS):
        if step_status is current:
            return index
    raise ValueError(f"Unknown order status: {status}")


def totals_by_payment_method(orders: Iterable[Order]) -> dict[OrderPaymentMethod, PaymentMethodSummary]:
    """Count and sum orders per payment choice for the customer dashboard."""
    counts = {method: 0 for method in OrderPaymentMethod}
    totals = {method: ZERO for method in OrderPaymentMethod}
    for order in orders:
        try:
            method = OrderPaymentMethod(order.payment_method)
        except ValueError:
            log.debug("Order %s has unrecognised payment method %r", order.order_id, order.payment_method)
            continue
        counts[method] += 1
        totals[method] += order.total_amount
    return {method: PaymentMethodSummary(counts[method], totals[method]) for method in OrderPaymentMethod}


def orders_placed_on(orders: Iterable[Order], day: date) -> list[Order]:
    return [order for order in orders if nanos_to_datetime(order.timestamp).date() == day]


def build_admin_dashboard(
    orders: Sequence[Order],
    customer_count: int,
    product_count: int,
    *,
    today: Optional[date] = None,
) -> AdminDashboard:
    today = today or date.today()
    return AdminDashboard(
        total_orders=len(orders),
        total_customers=customer_count,
        total_products=product_count,
        todays_orders=len(orders_placed_on(orders, today)),
        recent_orders=tuple(newest_first(orders)[:RECENT_ORDER_LIMIT]),
    )


async def load_my_orders(backend: BackendService, session: CustomerSession) -> list[Order]:
    """Fetch the logged-in store's order history, newest first."""
    orders = await backend.get_orders_by_store(session.require_token(), session.store_number)
    return newest_first(orders)


async def load_admin_dashboard(
    backend: BackendService,
    session: AdminSession,
    *,
    today: Optional[date] = None,
) -> AdminDashboard:
    token = session.require_token()
    orders = await backend.get_all_orders(token)
    customers = await backend.get_all_customers(token)
    products = await backend.get_all_products(token)
    return build_admin_dashboard(orders, len(customers), len(products), today=today)


__all__ = [
    "ALL_STATUSES",
    "RECENT_ORDER_LIMIT",
    "TRACKER_STEPS",
    "PaymentMethodSummary",
    "AdminDashboard",
    "newest_first",
    "matches_search",
    "filter_orders",
    "tracker_step",
    "totals_by_payment_method",
    "orders_placed_on",
    "build_admin_dashboard",
    "load_my_orders",
    "load_admin_dashboard",
]
