"""Order lifecycle: ``pending -> accepted -> on_the_way -> delivered``.

Each status has at most one legal successor, and the back office advances an
order by asking the backend to commit exactly that successor. Delivered orders
are terminal: they have no action, cannot be edited, and export as an invoice
instead of a purchase order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from . import log
from .backend import BackendService
from .constants import ZERO, OrderStatus
from .errors import InvalidTransition, ValidationError
from .models import Order, OrderItem, Product
from .session import AdminSession


class DocumentKind(str, Enum):
    PURCHASE_ORDER = "purchase_order"
    INVOICE = "invoice"


@dataclass(frozen=True)
class Transition:
    """The single forward step available from a status."""

    target: OrderStatus
    label: str


NEXT_STATUS: dict[OrderStatus, Optional[Transition]] = {
    OrderStatus.PENDING: Transition(OrderStatus.ACCEPTED, "Accept"),
    OrderStatus.ACCEPTED: Transition(OrderStatus.ON_THE_WAY, "On the Way"),
    OrderStatus.ON_THE_WAY: Transition(OrderStatus.DELIVERED, "Mark Delivered"),
    OrderStatus.DELIVERED: None,
}

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.ACCEPTED: "Accepted",
    OrderStatus.ON_THE_WAY: "On the Way",
    OrderStatus.DELIVERED: "Delivered",
}


def parse_status(value: str) -> OrderStatus:
    """Normalise a status string from the backend.

    Raises:
        ValueError: If ``value`` is not a known status.
    """
    return OrderStatus(value.strip().lower())


def next_transition(status: str | OrderStatus) -> Optional[Transition]:
    """Return the one legal transition out of ``status``, or ``None``."""
    return NEXT_STATUS[parse_status(status) if isinstance(status, str) else status]


def next_action(status: str | OrderStatus) -> Optional[str]:
    transition = next_transition(status)
    return transition.label if transition else None


def status_label(status: str | OrderStatus) -> str:
    return STATUS_LABELS[parse_status(status) if isinstance(status, str) else status]


def is_editable(status: str | OrderStatus) -> bool:
    """Items may be edited until the order is delivered."""
    current = parse_status(status) if isinstance(status, str) else status
    return current is not OrderStatus.DELIVERED


def is_legal_transition(current: str | OrderStatus, target: str | OrderStatus) -> bool:
    transition = next_transition(current)
    wanted = parse_status(target) if isinstance(target, str) else target
    return transition is not None and transition.target is wanted


def document_kind(order: Order) -> DocumentKind:
    """Delivered orders with an invoice number export as invoices."""
    return DocumentKind.INVOICE if order.is_invoiced else DocumentKind.PURCHASE_ORDER


async def advance_order(backend: BackendService, session: AdminSession, order: Order) -> OrderStatus:
    """Ask the backend to move ``order`` one step forward.

    The caller's ``order`` is not modified; refetch after success to see the
    committed status and any invoice number.

    Returns:
        OrderStatus: The status that was requested.

    Raises:
        InvalidTransition: If the order is already delivered.
        BackendError: If the backend rejects the update.
    """

    transition = next_transition(order.status)
    if transition is None:
        raise InvalidTransition(f"Order {order.order_id} is already delivered")
    await backend.update_order_status(session.require_token(), order.order_id, transition.target.value)
    log.info("Order %s advanced from %s to %s", order.order_id, order.status, transition.target.value)
    return transition.target


@dataclass
class _EditLine:
    product_id: int
    product_name: str
    qty: int
    rate: Decimal
    unit: str


class OrderEditor:
    """Working copy of an order's items for the back-office edit dialog.

    Changes stay local until :meth:`save` replaces the whole item list in one
    backend call. Discarding the editor discards the changes.
    """

    def __init__(self, order: Order) -> None:
        if not is_editable(order.status):
            raise InvalidTransition(f"Order {order.order_id} is delivered and can no longer be edited")
        self.order = order
        self._lines: list[_EditLine] = [
            _EditLine(item.product_id, item.product_name, item.qty, item.rate, item.unit) for item in order.items
        ]

    def _find(self, product_id: int) -> Optional[_EditLine]:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def _require(self, product_id: int) -> _EditLine:
        line = self._find(product_id)
        if line is None:
            raise ValidationError(f"Product {product_id} is not on order {self.order.order_id}")
        return line

    def add_product(self, product: Product) -> None:
        """Add one unit of ``product`` at its current rate, merging by id."""
        line = self._find(product.id)
        if line is not None:
            line.qty += 1
            return
        self._lines.append(_EditLine(product.id, product.name, 1, product.rate, product.unit))

    def set_quantity(self, product_id: int, qty: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        line = self._require(product_id)
        if qty <= 0:
            self.remove(product_id)
            return
        line.qty = qty

    def set_rate(self, product_id: int, rate: Decimal) -> None:
        """Override the rate charged on this order only."""
        if rate < ZERO:
            raise ValidationError("Rate cannot be negative")
        self._require(product_id).rate = rate

    def remove(self, product_id: int) -> None:
        self._lines = [line for line in self._lines if line.product_id != product_id]

    @property
    def items(self) -> tuple[OrderItem, ...]:
        return tuple(
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                qty=line.qty,
                rate=line.rate,
                unit=line.unit,
            )
            for line in self._lines
        )

    @property
    def total(self) -> Decimal:
        """Advisory total; the backend's stored total is authoritative."""
        return sum((line.rate * line.qty for line in self._lines), ZERO)

    async def save(self, backend: BackendService, session: AdminSession) -> None:
        """Replace the order's items with the working copy.

        Raises:
            ValidationError: If the working copy is empty.
            BackendError: If the backend rejects the edit.
        """

        items = self.items
        if not items:
            raise ValidationError("Order must have at least one item")
        await backend.edit_order_items(session.require_token(), self.order.order_id, items)
        log.info("Order %s items replaced (%d lines)", self.order.order_id, len(items))


__all__ = [
    "DocumentKind",
    "Transition",
    "NEXT_STATUS",
    "STATUS_LABELS",
    "parse_status",
    "next_transition",
    "next_action",
    "status_label",
    "is_editable",
    "is_legal_transition",
    "document_kind",
    "advance_order",
    "OrderEditor",
]
