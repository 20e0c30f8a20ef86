"""Async contract of the remote backend service.

The portal never computes authoritative totals, issues tokens or persists
anything itself; all of that happens behind this interface. Components receive
an object satisfying :class:`BackendService` and await its methods. The local
:mod:`produce_portal.workbook_backend` module provides one implementation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, Sequence, runtime_checkable

from .models import (
    Customer,
    Order,
    OrderItem,
    Payment,
    Product,
    ProductInput,
    StatementEntry,
    StoreInfo,
    SubUser,
)


@runtime_checkable
class BackendService(Protocol):
    """Operations offered by the ordering backend."""

    # auth
    async def customer_login(self, store_number: str, password: str) -> str: ...

    async def admin_login(self, email: str, password: str) -> str: ...

    async def sub_user_login(self, email: str, password: str) -> str: ...

    async def get_customer(self, store_number: str) -> Optional[StoreInfo]: ...

    # catalog
    async def get_active_products(self) -> list[Product]: ...

    async def get_all_products(self, token: str) -> list[Product]: ...

    async def toggle_product(self, token: str, product_id: int) -> None: ...

    async def update_product_rate(self, token: str, product_id: int, new_rate: Decimal) -> None: ...

    async def replace_products_with_details(self, token: str, items: Sequence[ProductInput]) -> None: ...

    # customers
    async def get_all_customers(self, token: str) -> list[Customer]: ...

    async def replace_customers(self, token: str, customers: Sequence[Customer]) -> None: ...

    # orders
    async def get_all_orders(self, token: str) -> list[Order]: ...

    async def get_orders_by_store(self, token: str, store_number: str) -> list[Order]: ...

    async def update_order_status(self, token: str, order_id: str, new_status: str) -> None: ...

    async def edit_order_items(self, token: str, order_id: str, items: Sequence[OrderItem]) -> None: ...

    async def place_order_v2(
        self,
        token: str,
        store_number: str,
        company_name: str,
        address: str,
        gst_number: Optional[str],
        items: Sequence[OrderItem],
        payment_method: str,
    ) -> str: ...

    # payments
    async def add_payment(
        self,
        token: str,
        store_number: str,
        company_name: str,
        amount: Decimal,
        payment_method: str,
        cheque_details: Optional[str],
        utr_details: Optional[str],
    ) -> None: ...

    async def get_all_payments(self, token: str) -> list[Payment]: ...

    async def get_payments_by_store(self, token: str, store_number: str) -> list[Payment]: ...

    # statements
    async def get_customer_statement(
        self, token: str, store_number: str, from_time: int, to_time: int
    ) -> list[StatementEntry]: ...

    async def get_company_statement(self, token: str, from_time: int, to_time: int) -> list[StatementEntry]: ...

    async def get_my_statement(self, token: str, from_time: int, to_time: int) -> list[StatementEntry]: ...

    # team and settings
    async def get_all_sub_users(self, token: str) -> list[SubUser]: ...

    async def create_sub_user(self, token: str, email: str, password: str, role_text: str) -> None: ...

    async def toggle_sub_user(self, token: str, email: str) -> None: ...

    async def change_sub_user_password(self, token: str, email: str, new_password: str) -> None: ...

    async def change_admin_password(self, token: str, new_password: str) -> None: ...

    async def set_webhook_url(self, token: str, url: str) -> None: ...


__all__ = ["BackendService"]
