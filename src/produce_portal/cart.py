"""Storefront cart and order submission.

The cart lives only on the client. Lines are keyed by product id, so adding a
product that is already present increases its quantity. Rates are copied from
the catalog when a line is created; later catalog edits do not reach items
already in the cart or in a placed order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from . import log
from .backend import BackendService
from .constants import PAYMENT_METHOD_LABELS, ZERO, OrderPaymentMethod
from .errors import ValidationError
from .models import OrderItem, Product
from .session import CustomerSession
from .validation import require_positive_quantity


@dataclass
class CartItem:
    """One cart line; same shape as an order item."""

    product_id: int
    product_name: str
    qty: int
    rate: Decimal
    unit: str

    @property
    def amount(self) -> Decimal:
        return self.rate * self.qty

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            product_id=self.product_id,
            product_name=self.product_name,
            qty=self.qty,
            rate=self.rate,
            unit=self.unit,
        )


@dataclass(frozen=True)
class OrderConfirmation:
    """What the confirmation screen shows after a successful placement."""

    order_id: str
    items: tuple[OrderItem, ...]
    subtotal: Decimal
    payment_method: OrderPaymentMethod

    @property
    def payment_label(self) -> str:
        return PAYMENT_METHOD_LABELS[self.payment_method.value]


class Cart:
    """Transient, client-local selection of products."""

    def __init__(self) -> None:
        self._lines: dict[int, CartItem] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._lines

    def __iter__(self):
        return iter(list(self._lines.values()))

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: int) -> Optional[CartItem]:
        return self._lines.get(product_id)

    def add(self, product: Product, qty: int = 1) -> CartItem:
        """Add ``qty`` of ``product``; an existing line is incremented.

        Raises:
            ValidationError: If ``qty`` is below one.
        """

        require_positive_quantity(qty)
        line = self._lines.get(product.id)
        if line is None:
            line = CartItem(
                product_id=product.id,
                product_name=product.name,
                qty=qty,
                rate=product.rate,
                unit=product.unit,
            )
            self._lines[product.id] = line
            log.debug("Added %s x%d to cart", product.name, qty)
        else:
            line.qty += qty
            log.debug("Updated %s quantity to %d", product.name, line.qty)
        return line

    def set_quantity(self, product_id: int, qty: int) -> None:
        """Set a line's quantity; anything below one removes the line."""
        if qty < 1:
            self.remove(product_id)
            return
        line = self._lines.get(product_id)
        if line is not None:
            line.qty = qty

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def subtotal(self) -> Decimal:
        """Advisory sum of ``qty * rate``; the backend computes the real total."""
        return sum((line.amount for line in self._lines.values()), ZERO)

    @property
    def total_units(self) -> int:
        return sum(line.qty for line in self._lines.values())

    def to_order_items(self) -> tuple[OrderItem, ...]:
        return tuple(line.to_order_item() for line in self._lines.values())


async def place_order(
    backend: BackendService,
    session: CustomerSession,
    cart: Cart,
    payment_method: OrderPaymentMethod | str = OrderPaymentMethod.COD,
) -> OrderConfirmation:
    """Submit the cart as one order.

    The cart is cleared only after the backend returns an order id; if the call
    fails the cart keeps every line.

    Raises:
        ValidationError: If the cart is empty or the payment method is unknown.
        BackendError: If the backend rejects the order.
    """

    if cart.is_empty:
        raise ValidationError("Your cart is empty. Add items before placing an order.")
    try:
        method = OrderPaymentMethod(payment_method)
    except ValueError as exc:
        raise ValidationError(f"Unknown payment method: {payment_method}") from exc

    items = cart.to_order_items()
    subtotal = cart.subtotal
    order_id = await backend.place_order_v2(
        session.require_token(),
        session.store_number,
        session.company_name,
        session.address,
        session.gst_number,
        items,
        method.value,
    )
    log.info("Order %s placed for store '%s' (%d lines)", order_id, session.store_number, len(items))
    cart.clear()
    return OrderConfirmation(order_id=order_id, items=items, subtotal=subtotal, payment_method=method)


__all__ = ["CartItem", "Cart", "OrderConfirmation", "place_order"]
