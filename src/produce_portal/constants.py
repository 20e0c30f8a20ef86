"""Enumerations and fixed values shared across the produce portal modules.

Centralises domain constants so that the workbook backend, the client-side
components (ledger, lifecycle, cart) and the command-line front end agree on
the exact wire strings exchanged with the backend.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

MIN_PASSWORD_LENGTH = 6
DEFAULT_UNIT = "KGS"
ZERO = Decimal("0")

NANOS_PER_SECOND = 1_000_000_000


class OrderStatus(str, Enum):
    """Order lifecycle states in their only legal order."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"


class OrderPaymentMethod(str, Enum):
    """Payment choice a customer makes when placing an order."""

    COD = "cod"
    PAY_LATER = "pay_later"


class PaymentMethod(str, Enum):
    """Ways an admin can record a received payment."""

    CASH = "cash"
    CHEQUE = "cheque"
    ONLINE = "online"


class EntryType(str, Enum):
    """Tags carried by statement entries."""

    INVOICE = "invoice"
    PAYMENT = "payment"


class SubUserRole(str, Enum):
    """Scoped roles for admin-portal team accounts."""

    STORE_MANAGER = "storeManager"
    ACCOUNT_TEAM = "accountTeam"
    PURCHASE_MANAGER = "purchaseManager"


class PrincipalKind(str, Enum):
    """Who a session token was issued to."""

    MASTER_ADMIN = "master_admin"
    SUB_USER = "sub_user"
    CUSTOMER = "customer"


class Permission(str, Enum):
    """Back-office capabilities checked by the workbook backend."""

    MANAGE_CATALOG = "manage_catalog"
    MANAGE_CUSTOMERS = "manage_customers"
    VIEW_CUSTOMERS = "view_customers"
    MANAGE_ORDERS = "manage_orders"
    VIEW_ORDERS = "view_orders"
    MANAGE_PAYMENTS = "manage_payments"
    VIEW_STATEMENTS = "view_statements"
    MANAGE_USERS = "manage_users"
    MANAGE_SETTINGS = "manage_settings"


ROLE_LABELS: dict[str, str] = {
    SubUserRole.STORE_MANAGER.value: "Store Manager",
    SubUserRole.ACCOUNT_TEAM.value: "Account Team",
    SubUserRole.PURCHASE_MANAGER.value: "Purchase Manager",
}

ROLE_DESCRIPTIONS: dict[str, str] = {
    SubUserRole.STORE_MANAGER.value: "Manages delivery status and order approval",
    SubUserRole.ACCOUNT_TEAM.value: "Manages accounts, statements and payments",
    SubUserRole.PURCHASE_MANAGER.value: "View statements and reports",
}

ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    SubUserRole.STORE_MANAGER.value: frozenset(
        {
            Permission.MANAGE_ORDERS,
            Permission.VIEW_ORDERS,
            Permission.VIEW_CUSTOMERS,
        }
    ),
    SubUserRole.ACCOUNT_TEAM.value: frozenset(
        {
            Permission.MANAGE_PAYMENTS,
            Permission.VIEW_STATEMENTS,
            Permission.VIEW_ORDERS,
            Permission.VIEW_CUSTOMERS,
        }
    ),
    SubUserRole.PURCHASE_MANAGER.value: frozenset(
        {
            Permission.VIEW_STATEMENTS,
            Permission.VIEW_ORDERS,
        }
    ),
}

PAYMENT_METHOD_LABELS: dict[str, str] = {
    OrderPaymentMethod.COD.value: "Cash on Delivery",
    OrderPaymentMethod.PAY_LATER.value: "Pay Later",
}


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    CUSTOMERS = "Customers"
    PRODUCTS = "Products"
    ORDERS = "Orders"
    ORDER_ITEMS = "OrderItems"
    PAYMENTS = "Payments"
    SUB_USERS = "SubUsers"
    SETTINGS = "Settings"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MIN_PASSWORD_LENGTH",
    "DEFAULT_UNIT",
    "ZERO",
    "NANOS_PER_SECOND",
    "OrderStatus",
    "OrderPaymentMethod",
    "PaymentMethod",
    "EntryType",
    "SubUserRole",
    "PrincipalKind",
    "Permission",
    "ROLE_LABELS",
    "ROLE_DESCRIPTIONS",
    "ROLE_PERMISSIONS",
    "PAYMENT_METHOD_LABELS",
    "SheetName",
]
