"""Local implementation of the backend contract over the portal workbook.

The remote ordering service is the authority for tokens, permissions, prices,
totals, PO and invoice numbering, and persistence. This module plays that role
against a single ``.xlsx`` workbook so the command-line front end and the
integration tests can run end to end. Every mutating call is all-or-nothing:
the workbook is saved only after the whole change has been applied, and any
failure reloads the last saved state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Container, Dict, Iterable, List, Optional, Sequence, TypeVar

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    MIN_PASSWORD_LENGTH,
    ROLE_PERMISSIONS,
    ZERO,
    EntryType,
    OrderPaymentMethod,
    OrderStatus,
    PaymentMethod,
    Permission,
    PrincipalKind,
    SubUserRole,
)
from .errors import AccessDenied, BackendError, InvalidTransition, NotFound
from .lifecycle import is_legal_transition, parse_status
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
from .security import hash_password, new_token, verify_password


T = TypeVar("T")

ALL_PERMISSIONS = frozenset(Permission)


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and workbook references used by the backend."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class Principal:
    """Whoever a token was issued to and what they may do."""

    kind: PrincipalKind
    identity: str
    permissions: frozenset[Permission] = frozenset()


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Both the configured version and the version recorded in the workbook's
    ``Settings`` sheet must equal ``EXPECTED_SCHEMA_VERSION``.

    Raises:
        RuntimeError: On any mismatch.
    """
    recorded = data_manager.get_setting(context.workbook, data_manager.SETTING_SCHEMA_VERSION)
    for source, found in (("configuration", context.settings.schema_version), ("workbook", recorded)):
        if found != EXPECTED_SCHEMA_VERSION:
            log.error(
                "Workbook schema mismatch (%s): expected %s, found %s",
                source,
                EXPECTED_SCHEMA_VERSION,
                found,
            )
            raise RuntimeError(
                "Workbook schema mismatch: expected %s, found %s" % (EXPECTED_SCHEMA_VERSION, found)
            )
    log.debug("Schema version '%s' validated", recorded)


def persist_context(context: RuntimeContext) -> None:
    data_manager.save_workbook(context.workbook, destination=context.settings.data_file)
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    A new :class:`RuntimeContext` with an empty cache is returned.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)


def generate_id(*, prefix: str, when: datetime, taken: Container[str] = ()) -> str:
    """Sortable identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}``.

    Identifiers already in ``taken`` are skipped by stepping ``when`` forward
    one microsecond at a time, so records created at the same instant stay
    distinct and still sort in creation order.
    """
    candidate = f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"
    while candidate in taken:
        when += timedelta(microseconds=1)
        candidate = f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}"
    return candidate


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Evict cache buckets after a write; with no names every bucket goes."""
    targets = names or tuple(context._cache)
    log.debug("Invalidating cache buckets: %s", ", ".join(targets))
    for name in targets:
        context._cache.pop(name, None)


def _ensure_customers_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "customers")
    if "all" not in bucket:
        customers = list(data_manager.iter_customers(context.workbook))
        bucket["all"] = customers
        bucket["by_store"] = {customer.store_number: customer for customer in customers}
        log.debug("Populated customers cache with %d entries", len(customers))
    return bucket


def _ensure_products_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "products")
    if "all" not in bucket:
        products = list(data_manager.iter_products(context.workbook))
        bucket["all"] = products
        bucket["active"] = [product for product in products if product.is_active]
        bucket["by_id"] = {product.product_id: product for product in products}
        log.debug("Populated products cache with %d entries (%d active)", len(products), len(bucket["active"]))
    return bucket


def _ensure_orders_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "orders")
    if "all" not in bucket:
        lines: Dict[str, List[data_manager.OrderItemRow]] = {}
        for item in data_manager.iter_order_items(context.workbook):
            lines.setdefault(item.order_id, []).append(item)
        orders = list(data_manager.iter_orders(context.workbook))
        bucket["all"] = orders
        bucket["by_id"] = {order.order_id: order for order in orders}
        bucket["lines"] = {
            order_id: sorted(items, key=lambda item: item.line_no) for order_id, items in lines.items()
        }
        log.debug("Populated orders cache with %d entries", len(orders))
    return bucket


def _ensure_payments_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "payments")
    if "all" not in bucket:
        bucket["all"] = list(data_manager.iter_payments(context.workbook))
        log.debug("Populated payments cache with %d entries", len(bucket["all"]))
    return bucket


def _ensure_sub_users_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "sub_users")
    if "all" not in bucket:
        users = list(data_manager.iter_sub_users(context.workbook))
        bucket["all"] = users
        bucket["by_email"] = {user.email.lower(): user for user in users}
        log.debug("Populated sub-users cache with %d entries", len(users))
    return bucket


def _to_order(row: data_manager.OrderRow, lines: Iterable[data_manager.OrderItemRow]) -> Order:
    return Order(
        order_id=row.order_id,
        po_number=row.po_number,
        status=row.status,
        items=tuple(
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                qty=line.qty,
                rate=line.rate,
                unit=line.unit,
            )
            for line in lines
        ),
        total_amount=row.total_amount,
        payment_method=row.payment_method,
        timestamp=data_manager.iso_to_nanos(row.timestamp_iso),
        address=row.address,
        company_name=row.company_name,
        store_number=row.store_number,
        gst_number=row.gst_number,
        invoice_number=row.invoice_number,
    )


def _to_payment(row: data_manager.PaymentRow) -> Payment:
    return Payment(
        payment_id=row.payment_id,
        store_number=row.store_number,
        company_name=row.company_name,
        amount=row.amount,
        payment_method=row.payment_method,
        timestamp=data_manager.iso_to_nanos(row.timestamp_iso),
        cheque_details=row.cheque_details,
        utr_details=row.utr_details,
    )


def _to_product(row: data_manager.ProductRow) -> Product:
    return Product(id=row.product_id, name=row.product_name, rate=row.rate, unit=row.unit, active=row.is_active)


def _require_password_length(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise BackendError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class WorkbookBackend:
    """Backend service persisted in the portal workbook.

    Tokens live in memory for the lifetime of the instance.
    """

    def __init__(self, context: RuntimeContext, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._context = context
        self._tokens: Dict[str, Principal] = {}
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_config(cls, config_path: Optional[Path] = None) -> "WorkbookBackend":
        return cls(load_runtime_context(config_path))

    @property
    def context(self) -> RuntimeContext:
        return self._context

    # ------------------------------------------------------------------
    # plumbing

    def _commit(self, mutate: Callable[[Workbook], T]) -> T:
        """Apply ``mutate`` and save; on any failure reload the saved workbook."""
        ensure_schema_version(self._context)
        try:
            result = mutate(self._context.workbook)
            persist_context(self._context)
        except Exception:
            log.error("Workbook change failed; reverting to last saved state")
            self._context = refresh_context(self._context)
            raise
        _invalidate_cache(self._context)
        return result

    def _issue(self, principal: Principal) -> str:
        token = new_token()
        self._tokens[token] = principal
        log.info("Issued %s token for '%s'", principal.kind.value, principal.identity)
        return token

    def logout(self, token: str) -> None:
        principal = self._tokens.pop(token, None)
        if principal is not None:
            log.info("Revoked %s token for '%s'", principal.kind.value, principal.identity)

    def _principal(self, token: str) -> Principal:
        principal = self._tokens.get(token)
        if principal is None:
            log.warning("Rejected unknown session token")
            raise AccessDenied("Access denied. Please log out and log in again.")
        return principal

    def _require_admin(self, token: str, *permissions: Permission) -> Principal:
        """Return the admin principal holding at least one of ``permissions``."""
        principal = self._principal(token)
        if principal.kind is PrincipalKind.CUSTOMER:
            raise AccessDenied("Access denied: admin session required")
        if permissions and not principal.permissions.intersection(permissions):
            names = " or ".join(permission.value for permission in permissions)
            log.warning("'%s' lacks permission %s", principal.identity, names)
            raise AccessDenied(f"Access denied: {names} permission required")
        return principal

    def _require_customer(self, token: str, store_number: Optional[str] = None) -> Principal:
        principal = self._principal(token)
        if principal.kind is not PrincipalKind.CUSTOMER:
            raise AccessDenied("Access denied: customer session required")
        if store_number is not None and principal.identity != store_number:
            raise AccessDenied("Access denied: store mismatch")
        return principal

    def _require_store_access(self, token: str, store_number: str, *permissions: Permission) -> Principal:
        principal = self._principal(token)
        if principal.kind is PrincipalKind.CUSTOMER:
            return self._require_customer(token, store_number)
        return self._require_admin(token, *permissions)

    def _now(self) -> datetime:
        return self._clock()

    def _orders(self) -> List[Order]:
        bucket = _ensure_orders_cache(self._context)
        return [_to_order(row, bucket["lines"].get(row.order_id, [])) for row in bucket["all"]]

    def _order_row(self, order_id: str) -> data_manager.OrderRow:
        row = _ensure_orders_cache(self._context)["by_id"].get(order_id)
        if row is None:
            raise NotFound(f"Order not found: {order_id}")
        return row

    def _sub_user_row(self, email: str) -> data_manager.SubUserRow:
        row = _ensure_sub_users_cache(self._context)["by_email"].get(email.strip().lower())
        if row is None:
            raise NotFound(f"User not found: {email}")
        return row

    # ------------------------------------------------------------------
    # auth

    async def customer_login(self, store_number: str, password: str) -> str:
        customer = _ensure_customers_cache(self._context)["by_store"].get(store_number.strip())
        if customer is None or not verify_password(password, customer.password_hash):
            log.warning("Failed customer login for store '%s'", store_number)
            raise AccessDenied("Invalid store number or password")
        return self._issue(Principal(PrincipalKind.CUSTOMER, customer.store_number))

    async def admin_login(self, email: str, password: str) -> str:
        workbook = self._context.workbook
        admin_email = data_manager.get_setting(workbook, data_manager.SETTING_ADMIN_EMAIL) or ""
        admin_hash = data_manager.get_setting(workbook, data_manager.SETTING_ADMIN_PASSWORD) or ""
        if email.strip().lower() != admin_email.lower() or not verify_password(password, admin_hash):
            log.warning("Failed admin login for '%s'", email)
            raise AccessDenied("Invalid admin credentials")
        return self._issue(Principal(PrincipalKind.MASTER_ADMIN, admin_email, ALL_PERMISSIONS))

    async def sub_user_login(self, email: str, password: str) -> str:
        user = _ensure_sub_users_cache(self._context)["by_email"].get(email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            log.warning("Failed sub-user login for '%s'", email)
            raise AccessDenied("Invalid email or password")
        if not user.is_active:
            raise AccessDenied("Account is disabled. Contact the administrator.")
        permissions = ROLE_PERMISSIONS.get(user.role_text, frozenset())
        return self._issue(Principal(PrincipalKind.SUB_USER, user.email, permissions))

    async def get_customer(self, store_number: str) -> Optional[StoreInfo]:
        customer = _ensure_customers_cache(self._context)["by_store"].get(store_number.strip())
        if customer is None:
            return None
        return StoreInfo(
            store_number=customer.store_number,
            company_name=customer.company_name,
            address=customer.address,
            gst_number=customer.gst_number,
        )

    # ------------------------------------------------------------------
    # catalog

    async def get_active_products(self) -> list[Product]:
        return [_to_product(row) for row in _ensure_products_cache(self._context)["active"]]

    async def get_all_products(self, token: str) -> list[Product]:
        self._require_admin(token)
        return [_to_product(row) for row in _ensure_products_cache(self._context)["all"]]

    async def toggle_product(self, token: str, product_id: int) -> None:
        self._require_admin(token, Permission.MANAGE_CATALOG)
        product = _ensure_products_cache(self._context)["by_id"].get(product_id)
        if product is None:
            raise NotFound(f"Product not found: {product_id}")
        self._commit(
            lambda wb: data_manager.update_product(wb, product_id, field_values={"IsActive": not product.is_active})
        )
        log.info("Product %s active=%s", product_id, not product.is_active)

    async def update_product_rate(self, token: str, product_id: int, new_rate: Decimal) -> None:
        self._require_admin(token, Permission.MANAGE_CATALOG)
        if new_rate < ZERO:
            raise BackendError("Rate cannot be negative")
        if product_id not in _ensure_products_cache(self._context)["by_id"]:
            raise NotFound(f"Product not found: {product_id}")
        self._commit(lambda wb: data_manager.update_product(wb, product_id, field_values={"Rate": new_rate}))
        log.info("Product %s rate set to %s", product_id, new_rate)

    async def replace_products_with_details(self, token: str, items: Sequence[ProductInput]) -> None:
        """Replace the catalog; products are renumbered from 1 and all active."""
        self._require_admin(token, Permission.MANAGE_CATALOG)
        if not items:
            raise BackendError("Product list cannot be empty")
        records = []
        for index, item in enumerate(items, start=1):
            if not item.name.strip():
                raise BackendError(f"Product {index} has no name")
            if item.rate < ZERO:
                raise BackendError(f"Product '{item.name}' has a negative rate")
            records.append(
                data_manager.ProductRow(
                    product_id=index,
                    product_name=item.name.strip(),
                    rate=item.rate,
                    unit=item.unit.strip().upper(),
                    is_active=True,
                )
            )
        self._commit(lambda wb: data_manager.replace_products(wb, records))
        log.info("Catalog replaced with %d products", len(records))

    # ------------------------------------------------------------------
    # customers

    async def get_all_customers(self, token: str) -> list[Customer]:
        """List customers; stored password hashes are never returned."""
        self._require_admin(token, Permission.VIEW_CUSTOMERS, Permission.MANAGE_CUSTOMERS)
        return [
            Customer(
                store_number=row.store_number,
                name=row.name,
                phone=row.phone,
                company_name=row.company_name,
                address=row.address,
                email=row.email,
                gst_number=row.gst_number,
            )
            for row in _ensure_customers_cache(self._context)["all"]
        ]

    async def replace_customers(self, token: str, customers: Sequence[Customer]) -> None:
        """Replace the customer list.

        A blank password keeps the stored password of an existing store; new
        stores must supply one.
        """
        self._require_admin(token, Permission.MANAGE_CUSTOMERS)
        existing = _ensure_customers_cache(self._context)["by_store"]
        records: List[data_manager.CustomerRow] = []
        seen: set[str] = set()
        for customer in customers:
            store_number = customer.store_number.strip()
            if not store_number or not customer.email.strip():
                raise BackendError("Store number and email are required for every customer")
            if store_number in seen:
                raise BackendError(f"Duplicate store number: {store_number}")
            seen.add(store_number)
            if customer.password:
                _require_password_length(customer.password)
                password_hash = hash_password(customer.password)
            elif store_number in existing:
                password_hash = existing[store_number].password_hash
            else:
                raise BackendError(f"Password is required for new store {store_number}")
            records.append(
                data_manager.CustomerRow(
                    store_number=store_number,
                    name=customer.name,
                    phone=customer.phone,
                    company_name=customer.company_name,
                    address=customer.address,
                    gst_number=customer.gst_number or None,
                    email=customer.email.strip(),
                    password_hash=password_hash,
                )
            )
        self._commit(lambda wb: data_manager.replace_customers(wb, records))
        log.info("Customer list replaced with %d customers", len(records))

    # ------------------------------------------------------------------
    # orders

    async def get_all_orders(self, token: str) -> list[Order]:
        self._require_admin(token, Permission.VIEW_ORDERS, Permission.MANAGE_ORDERS)
        return self._orders()

    async def get_orders_by_store(self, token: str, store_number: str) -> list[Order]:
        self._require_store_access(token, store_number, Permission.VIEW_ORDERS, Permission.MANAGE_ORDERS)
        return [order for order in self._orders() if order.store_number == store_number]

    async def update_order_status(self, token: str, order_id: str, new_status: str) -> None:
        """Commit the next lifecycle step; delivery assigns the invoice number."""
        self._require_admin(token, Permission.MANAGE_ORDERS)
        row = self._order_row(order_id)
        try:
            target = parse_status(new_status)
        except ValueError as exc:
            raise InvalidTransition(f"Unknown order status: {new_status}") from exc
        if not is_legal_transition(row.status, target):
            log.warning("Rejected transition of %s from %s to %s", order_id, row.status, target.value)
            raise InvalidTransition(f"Cannot change order {order_id} from {row.status} to {target.value}")

        fields: Dict[str, Any] = {"Status": target.value}
        if target is OrderStatus.DELIVERED:
            invoiced = sum(1 for order in _ensure_orders_cache(self._context)["all"] if order.invoice_number)
            fields["InvoiceNumber"] = f"INV-{invoiced + 1:04d}"
            fields["DeliveredAt"] = self._now().isoformat()
        self._commit(lambda wb: data_manager.update_order(wb, order_id, field_values=fields))
        log.info("Order %s status changed from %s to %s", order_id, row.status, target.value)

    async def edit_order_items(self, token: str, order_id: str, items: Sequence[OrderItem]) -> None:
        """Replace an undelivered order's lines and recompute its total."""
        self._require_admin(token, Permission.MANAGE_ORDERS)
        row = self._order_row(order_id)
        if parse_status(row.status) is OrderStatus.DELIVERED:
            raise InvalidTransition(f"Order {order_id} is delivered and can no longer be edited")
        if not items:
            raise BackendError("Order must have at least one item")
        for item in items:
            if item.qty < 1:
                raise BackendError(f"Quantity for {item.product_name} must be at least 1")
            if item.rate < ZERO:
                raise BackendError(f"Rate for {item.product_name} cannot be negative")

        lines = [
            data_manager.OrderItemRow(
                order_id=order_id,
                line_no=line_no,
                product_id=item.product_id,
                product_name=item.product_name,
                qty=item.qty,
                rate=item.rate,
                unit=item.unit,
            )
            for line_no, item in enumerate(items, start=1)
        ]
        total = sum((item.rate * item.qty for item in items), ZERO)

        def mutate(wb: Workbook) -> None:
            data_manager.replace_order_items(wb, order_id, lines)
            data_manager.update_order(wb, order_id, field_values={"TotalAmount": total})

        self._commit(mutate)
        log.info("Order %s items replaced; total now %s", order_id, total)

    async def place_order_v2(
        self,
        token: str,
        store_number: str,
        company_name: str,
        address: str,
        gst_number: Optional[str],
        items: Sequence[OrderItem],
        payment_method: str,
    ) -> str:
        """Create a pending order priced at the current catalog rates."""
        self._require_customer(token, store_number)
        if not items:
            raise BackendError("Order must have at least one item")
        try:
            method = OrderPaymentMethod(payment_method)
        except ValueError as exc:
            raise BackendError(f"Unknown payment method: {payment_method}") from exc

        catalog = _ensure_products_cache(self._context)["by_id"]
        now = self._now()
        order_id = generate_id(prefix="ORD", when=now, taken=_ensure_orders_cache(self._context)["by_id"])
        lines: List[data_manager.OrderItemRow] = []
        for line_no, item in enumerate(items, start=1):
            product = catalog.get(item.product_id)
            if product is None or not product.is_active:
                raise BackendError(f"{item.product_name} is no longer available")
            if item.qty < 1:
                raise BackendError(f"Quantity for {item.product_name} must be at least 1")
            lines.append(
                data_manager.OrderItemRow(
                    order_id=order_id,
                    line_no=line_no,
                    product_id=product.product_id,
                    product_name=product.product_name,
                    qty=item.qty,
                    rate=product.rate,
                    unit=product.unit,
                )
            )

        record = data_manager.OrderRow(
            order_id=order_id,
            po_number=f"PO-{len(_ensure_orders_cache(self._context)['all']) + 1:04d}",
            invoice_number=None,
            status=OrderStatus.PENDING.value,
            total_amount=sum((line.rate * line.qty for line in lines), ZERO),
            payment_method=method.value,
            timestamp_iso=now.isoformat(),
            delivered_at_iso=None,
            address=address,
            company_name=company_name,
            store_number=store_number,
            gst_number=gst_number or None,
        )
        self._commit(lambda wb: data_manager.append_order(wb, record, lines))
        log.info("Order %s (%s) placed by store '%s'", order_id, record.po_number, store_number)
        return order_id

    # ------------------------------------------------------------------
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
    ) -> None:
        self._require_admin(token, Permission.MANAGE_PAYMENTS)
        if store_number not in _ensure_customers_cache(self._context)["by_store"]:
            raise NotFound(f"Customer not found: {store_number}")
        if amount <= ZERO:
            raise BackendError("Invalid amount")
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise BackendError(f"Unknown payment method: {payment_method}") from exc
        if method is PaymentMethod.CHEQUE and not (cheque_details or "").strip():
            raise BackendError("Cheque details are required")
        if method is PaymentMethod.ONLINE and not (utr_details or "").strip():
            raise BackendError("UTR details are required")

        now = self._now()
        record = data_manager.PaymentRow(
            payment_id=generate_id(
                prefix="PAY",
                when=now,
                taken={row.payment_id for row in _ensure_payments_cache(self._context)["all"]},
            ),
            store_number=store_number,
            company_name=company_name,
            amount=amount,
            payment_method=method.value,
            timestamp_iso=now.isoformat(),
            cheque_details=cheque_details if method is PaymentMethod.CHEQUE else None,
            utr_details=utr_details if method is PaymentMethod.ONLINE else None,
        )
        self._commit(lambda wb: data_manager.append_payment(wb, record))
        log.info("Payment %s of %s recorded for store '%s'", record.payment_id, amount, store_number)

    async def get_all_payments(self, token: str) -> list[Payment]:
        self._require_admin(token, Permission.MANAGE_PAYMENTS, Permission.VIEW_STATEMENTS)
        return [_to_payment(row) for row in _ensure_payments_cache(self._context)["all"]]

    async def get_payments_by_store(self, token: str, store_number: str) -> list[Payment]:
        self._require_store_access(token, store_number, Permission.MANAGE_PAYMENTS, Permission.VIEW_STATEMENTS)
        return [
            _to_payment(row) for row in _ensure_payments_cache(self._context)["all"] if row.store_number == store_number
        ]

    # ------------------------------------------------------------------
    # statements

    def _statement_entries(
        self, from_time: int, to_time: int, store_number: Optional[str] = None
    ) -> list[StatementEntry]:
        """Invoice debits for delivered orders and payment credits in range.

        Entries are returned in storage order; callers sort them.
        """
        entries: List[StatementEntry] = []
        for order in _ensure_orders_cache(self._context)["all"]:
            if parse_status(order.status) is not OrderStatus.DELIVERED:
                continue
            if store_number is not None and order.store_number != store_number:
                continue
            entries.append(
                StatementEntry(
                    entry_date=data_manager.iso_to_nanos(order.delivered_at_iso or order.timestamp_iso),
                    entry_type=EntryType.INVOICE.value,
                    reference_number=order.invoice_number or order.po_number,
                    store_number=order.store_number,
                    company_name=order.company_name,
                    debit=order.total_amount,
                )
            )
        for payment in _ensure_payments_cache(self._context)["all"]:
            if store_number is not None and payment.store_number != store_number:
                continue
            entries.append(
                StatementEntry(
                    entry_date=data_manager.iso_to_nanos(payment.timestamp_iso),
                    entry_type=EntryType.PAYMENT.value,
                    reference_number=payment.payment_id,
                    store_number=payment.store_number,
                    company_name=payment.company_name,
                    credit=payment.amount,
                )
            )
        return [entry for entry in entries if from_time <= entry.entry_date <= to_time]

    async def get_customer_statement(
        self, token: str, store_number: str, from_time: int, to_time: int
    ) -> list[StatementEntry]:
        self._require_admin(token, Permission.VIEW_STATEMENTS)
        return self._statement_entries(from_time, to_time, store_number)

    async def get_company_statement(self, token: str, from_time: int, to_time: int) -> list[StatementEntry]:
        self._require_admin(token, Permission.VIEW_STATEMENTS)
        return self._statement_entries(from_time, to_time)

    async def get_my_statement(self, token: str, from_time: int, to_time: int) -> list[StatementEntry]:
        principal = self._require_customer(token)
        return self._statement_entries(from_time, to_time, principal.identity)

    # ------------------------------------------------------------------
    # team and settings

    async def get_all_sub_users(self, token: str) -> list[SubUser]:
        self._require_admin(token, Permission.MANAGE_USERS)
        return [
            SubUser(email=row.email, role_text=row.role_text, active=row.is_active)
            for row in _ensure_sub_users_cache(self._context)["all"]
        ]

    async def create_sub_user(self, token: str, email: str, password: str, role_text: str) -> None:
        self._require_admin(token, Permission.MANAGE_USERS)
        address = email.strip()
        if not address:
            raise BackendError("Email is required")
        if address.lower() in _ensure_sub_users_cache(self._context)["by_email"]:
            raise BackendError(f"A user with email {address} already exists")
        _require_password_length(password)
        try:
            role = SubUserRole(role_text)
        except ValueError as exc:
            raise BackendError(f"Unknown role: {role_text}") from exc

        record = data_manager.SubUserRow(
            email=address,
            password_hash=hash_password(password),
            role_text=role.value,
            is_active=True,
        )
        self._commit(lambda wb: data_manager.append_sub_user(wb, record))
        log.info("Sub-user %s created with role %s", address, role.value)

    async def toggle_sub_user(self, token: str, email: str) -> None:
        self._require_admin(token, Permission.MANAGE_USERS)
        row = self._sub_user_row(email)
        self._commit(
            lambda wb: data_manager.update_sub_user(wb, row.email, field_values={"IsActive": not row.is_active})
        )
        if row.is_active:
            # a disabled account loses its open sessions
            for key in [key for key, p in self._tokens.items() if p.identity == row.email]:
                self.logout(key)
        log.info("Sub-user %s active=%s", row.email, not row.is_active)

    async def change_sub_user_password(self, token: str, email: str, new_password: str) -> None:
        self._require_admin(token, Permission.MANAGE_USERS)
        row = self._sub_user_row(email)
        _require_password_length(new_password)
        self._commit(
            lambda wb: data_manager.update_sub_user(
                wb, row.email, field_values={"PasswordHash": hash_password(new_password)}
            )
        )
        log.info("Password changed for sub-user %s", row.email)

    async def change_admin_password(self, token: str, new_password: str) -> None:
        principal = self._principal(token)
        if principal.kind is not PrincipalKind.MASTER_ADMIN:
            raise AccessDenied("Access denied: master admin required")
        _require_password_length(new_password)
        self._commit(
            lambda wb: data_manager.set_setting(wb, data_manager.SETTING_ADMIN_PASSWORD, hash_password(new_password))
        )
        log.info("Master admin password changed")

    async def set_webhook_url(self, token: str, url: str) -> None:
        """Store the webhook URL; nothing is ever sent to it."""
        self._require_admin(token, Permission.MANAGE_SETTINGS)
        if not url.strip():
            raise BackendError("Webhook URL cannot be empty")
        self._commit(lambda wb: data_manager.set_setting(wb, data_manager.SETTING_WEBHOOK_URL, url.strip()))
        log.info("Webhook URL updated")

    def webhook_url(self) -> str:
        return data_manager.get_setting(self._context.workbook, data_manager.SETTING_WEBHOOK_URL) or ""


__all__ = [
    "RuntimeContext",
    "Principal",
    "load_runtime_context",
    "ensure_schema_version",
    "persist_context",
    "refresh_context",
    "generate_id",
    "WorkbookBackend",
]
