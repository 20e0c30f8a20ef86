"""Immutable records exchanged with the backend.

Every record is a frozen dataclass: the client never mutates what the backend
returns, it only sorts, filters and folds. Money is carried as
:class:`~decimal.Decimal`, quantities as ``int`` and timestamps as nanosecond
epoch integers, matching the backend contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .constants import ZERO, OrderStatus


@dataclass(frozen=True)
class StatementEntry:
    """One debit or credit line of an account statement."""

    entry_date: int
    entry_type: str
    reference_number: str
    store_number: str
    company_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass(frozen=True)
class OrderItem:
    """A line on an order; ``rate`` is the unit price copied at order time."""

    product_id: int
    product_name: str
    qty: int
    rate: Decimal
    unit: str

    @property
    def amount(self) -> Decimal:
        return self.rate * self.qty


@dataclass(frozen=True)
class Order:
    """A purchase order as stored by the backend."""

    order_id: str
    po_number: str
    status: str
    items: tuple[OrderItem, ...]
    total_amount: Decimal
    payment_method: str
    timestamp: int
    address: str
    company_name: str
    store_number: str
    gst_number: Optional[str] = None
    invoice_number: Optional[str] = None

    @property
    def is_invoiced(self) -> bool:
        return self.status == OrderStatus.DELIVERED.value and bool(self.invoice_number)


@dataclass(frozen=True)
class Product:
    """A catalog entry; ``rate`` is the current price."""

    id: int
    name: str
    rate: Decimal
    unit: str
    active: bool = True


@dataclass(frozen=True)
class ProductInput:
    """One catalog row submitted when replacing the product list."""

    name: str
    rate: Decimal
    unit: str


@dataclass(frozen=True)
class Payment:
    """A payment recorded by the back office; a credit in the ledger."""

    payment_id: str
    store_number: str
    company_name: str
    amount: Decimal
    payment_method: str
    timestamp: int
    cheque_details: Optional[str] = None
    utr_details: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    """A store account. ``password`` is only populated on writes."""

    store_number: str
    name: str
    phone: str
    company_name: str
    address: str
    email: str
    password: str = field(default="", repr=False)
    gst_number: Optional[str] = None


@dataclass(frozen=True)
class StoreInfo:
    """Public details returned by the pre-login store lookup."""

    store_number: str
    company_name: str
    address: str
    gst_number: Optional[str] = None


@dataclass(frozen=True)
class SubUser:
    """An admin-portal team account."""

    email: str
    role_text: str
    active: bool = True
    password: str = field(default="", repr=False)


__all__ = [
    "StatementEntry",
    "OrderItem",
    "Order",
    "Product",
    "ProductInput",
    "Payment",
    "Customer",
    "StoreInfo",
    "SubUser",
]
