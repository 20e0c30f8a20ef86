"""Command-line entry points for the produce portal.

All orchestration in this module is limited to argparse wiring, opening one
session per invocation, and translating command-line arguments into calls on
the client-side components. Storefront commands log in as a store with
``--store``; back-office commands log in with ``--email`` (add ``--sub-user``
for team accounts). The session is closed when the command finishes.
"""

from __future__ import annotations

import argparse
import asyncio
import os
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import (
    actions,
    cart as cart_module,
    catalog,
    customers,
    documents,
    ledger,
    lifecycle,
    log,
    orders,
    payments,
    session as session_module,
    spreadsheet,
    users,
)
from .constants import PAYMENT_METHOD_LABELS, OrderPaymentMethod, OrderStatus, PaymentMethod, SubUserRole
from .data_manager import ConfigSettings
from .errors import BackendError, NotFound, ValidationError
from .models import Customer, Order
from .workbook_backend import WorkbookBackend, load_runtime_context


PASSWORD_ENV = "PRODUCE_PORTAL_PASSWORD"


class Audience(str, Enum):
    """Which session a command needs before it runs."""

    PUBLIC = "public"
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass
class CliContext:
    """Backend, settings and the invocation's session."""

    backend: WorkbookBackend
    settings: ConfigSettings
    session: Optional[session_module.Session] = None
    guard: actions.InFlightGuard = field(default_factory=actions.InFlightGuard)

    @property
    def branding(self) -> documents.Branding:
        return documents.Branding(
            short_name=self.settings.short_name,
            business_name=self.settings.business_name,
            currency=self.settings.currency,
        )

    def money(self, amount: Decimal) -> str:
        return documents.format_currency(amount, self.settings.currency)


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    audience: Audience
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[CliContext, argparse.Namespace], Awaitable[int]]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="produce-portal",
        description="Storefront and back-office tools for the produce portal workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to the nearest config.ini).",
    )
    parser.add_argument("--store", default=None, help="Store number for storefront commands.")
    parser.add_argument("--email", default=None, help="Admin or team account email for back-office commands.")
    parser.add_argument(
        "--password",
        default=None,
        help=f"Login password (falls back to ${PASSWORD_ENV}).",
    )
    parser.add_argument("--sub-user", action="store_true", help="Log in as a team account instead of the master admin.")
    return parser


def configure_subcommands(parser: argparse.ArgumentParser) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    storefront_specs = register_storefront_commands(subparsers)
    backoffice_specs = register_backoffice_commands(subparsers)
    return build_command_table([*storefront_specs.values(), *backoffice_specs.values()])


def make_spec(
    name: str,
    help_text: str,
    audience: Audience,
    execute: Callable[[CliContext, argparse.Namespace], Awaitable[int]],
    arguments: Optional[Callable[[argparse.ArgumentParser], None]] = None,
) -> CommandSpec:
    """Build a :class:`CommandSpec` whose registrar adds ``arguments``."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        if arguments is not None:
            arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, audience=audience, register=registrar, execute=execute)


def _period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--period",
        choices=[member.value for member in ledger.QuickRange],
        default=ledger.QuickRange.THIS_MONTH.value,
    )
    parser.add_argument("--from", dest="from_date", default=None, help="Start date (YYYY-MM-DD).")
    parser.add_argument("--to", dest="to_date", default=None, help="End date (YYYY-MM-DD).")
    parser.add_argument("--pdf", action="store_true", help="Also export the statement as a PDF.")


def register_storefront_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare commands used by stores."""

    def store_info_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", required=True)

    def products_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--search", default="")

    def order_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--item",
            action="append",
            required=True,
            metavar="PRODUCT_ID[:QTY]",
            help="Product to order; repeat for more lines. Quantity defaults to 1.",
        )
        parser.add_argument(
            "--payment",
            choices=[member.value for member in OrderPaymentMethod],
            default=OrderPaymentMethod.COD.value,
        )

    def order_pdf_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--order-id", required=True)

    specs = {
        "store-info": make_spec(
            "store-info", "Look up a store by number.", Audience.PUBLIC, run_store_info, store_info_args
        ),
        "products": make_spec(
            "products", "List the products currently on offer.", Audience.PUBLIC, run_products, products_args
        ),
        "order": make_spec("order", "Place an order for the logged-in store.", Audience.CUSTOMER, run_order, order_args),
        "my-orders": make_spec("my-orders", "Show the store's order history.", Audience.CUSTOMER, run_my_orders),
        "my-statement": make_spec(
            "my-statement", "Show the store's account statement.", Audience.CUSTOMER, run_my_statement, _period_arguments
        ),
        "my-order-pdf": make_spec(
            "my-order-pdf", "Export one of the store's orders as a PDF.", Audience.CUSTOMER, run_my_order_pdf, order_pdf_args
        ),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_backoffice_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare commands used by the master admin and team accounts."""

    def orders_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--search", default="")
        parser.add_argument(
            "--status",
            choices=[orders.ALL_STATUSES, *(member.value for member in OrderStatus)],
            default=orders.ALL_STATUSES,
        )

    def order_id_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--order-id", required=True)

    def edit_order_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--order-id", required=True)
        parser.add_argument("--add", action="append", type=int, default=[], metavar="PRODUCT_ID")
        parser.add_argument("--set", action="append", default=[], metavar="PRODUCT_ID:QTY")
        parser.add_argument("--rate", action="append", default=[], metavar="PRODUCT_ID:RATE")
        parser.add_argument("--remove", action="append", type=int, default=[], metavar="PRODUCT_ID")

    def file_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--file", type=Path, required=True)

    def catalog_template_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--output", type=Path, default=Path(spreadsheet.PRODUCT_TEMPLATE_FILE))
        parser.add_argument("--defaults", action="store_true", help="Fill the template with the built-in list.")

    def customers_template_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--output", type=Path, default=Path(spreadsheet.CUSTOMER_TEMPLATE_FILE))

    def product_id_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--product-id", type=int, required=True)

    def set_rate_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--product-id", type=int, required=True)
        parser.add_argument("--rate", required=True)

    def search_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--search", default="")

    def edit_customer_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", required=True)
        parser.add_argument("--new-store-number", default=None)
        parser.add_argument("--name", default=None)
        parser.add_argument("--phone", default=None)
        parser.add_argument("--company-name", default=None)
        parser.add_argument("--address", default=None)
        parser.add_argument("--gst-number", default=None)
        parser.add_argument("--customer-email", default=None)
        parser.add_argument("--customer-password", required=True)

    def store_number_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", required=True)

    def add_payment_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--method", choices=[member.value for member in PaymentMethod], default="cash")
        parser.add_argument("--cheque", default=None, help="Cheque details (cheque payments).")
        parser.add_argument("--utr", default=None, help="UTR reference (online payments).")

    def payments_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", default=None)

    def statement_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--store-number", default=None, help="Omit for the all-companies statement.")
        _period_arguments(parser)

    def add_user_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--user-email", required=True)
        parser.add_argument("--user-password", required=True)
        parser.add_argument(
            "--role",
            choices=[member.value for member in SubUserRole],
            default=SubUserRole.STORE_MANAGER.value,
        )

    def user_email_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--user-email", required=True)

    def user_password_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--user-email", required=True)
        parser.add_argument("--new-password", required=True)

    def admin_password_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--new-password", required=True)
        parser.add_argument("--confirm-password", required=True)

    def webhook_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--url", required=True)

    admin = Audience.ADMIN
    specs = {
        "dashboard": make_spec("dashboard", "Show back-office counts and recent orders.", admin, run_dashboard),
        "orders": make_spec("orders", "Search and filter all orders.", admin, run_orders, orders_args),
        "advance": make_spec("advance", "Move an order to its next status.", admin, run_advance, order_id_args),
        "edit-order": make_spec("edit-order", "Edit the items of an undelivered order.", admin, run_edit_order, edit_order_args),
        "order-pdf": make_spec("order-pdf", "Export an order as a PO or invoice PDF.", admin, run_order_pdf, order_id_args),
        "catalog": make_spec("catalog", "List every product, active or not.", admin, run_catalog, search_args),
        "catalog-upload": make_spec("catalog-upload", "Replace the catalog from a spreadsheet.", admin, run_catalog_upload, file_args),
        "catalog-defaults": make_spec("catalog-defaults", "Replace the catalog with the built-in list.", admin, run_catalog_defaults),
        "catalog-template": make_spec(
            "catalog-template", "Write the product upload template.", admin, run_catalog_template, catalog_template_args
        ),
        "toggle-product": make_spec("toggle-product", "Activate or deactivate a product.", admin, run_toggle_product, product_id_args),
        "set-rate": make_spec("set-rate", "Change a product's current rate.", admin, run_set_rate, set_rate_args),
        "customers": make_spec("customers", "List customers.", admin, run_customers, search_args),
        "customers-upload": make_spec(
            "customers-upload", "Replace the customer list from a spreadsheet.", admin, run_customers_upload, file_args
        ),
        "customers-template": make_spec(
            "customers-template", "Write the customer upload template.", admin, run_customers_template, customers_template_args
        ),
        "edit-customer": make_spec("edit-customer", "Edit one customer.", admin, run_edit_customer, edit_customer_args),
        "delete-customer": make_spec("delete-customer", "Delete one customer.", admin, run_delete_customer, store_number_args),
        "add-payment": make_spec("add-payment", "Record a payment received from a store.", admin, run_add_payment, add_payment_args),
        "payments": make_spec("payments", "List recorded payments.", admin, run_payments, payments_args),
        "statement": make_spec("statement", "Show a customer or all-companies statement.", admin, run_statement, statement_args),
        "users": make_spec("users", "List team accounts.", admin, run_users),
        "add-user": make_spec("add-user", "Create a team account.", admin, run_add_user, add_user_args),
        "toggle-user": make_spec("toggle-user", "Enable or disable a team account.", admin, run_toggle_user, user_email_args),
        "user-password": make_spec("user-password", "Change a team account's password.", admin, run_user_password, user_password_args),
        "admin-password": make_spec(
            "admin-password", "Change the master admin password.", admin, run_admin_password, admin_password_args
        ),
        "webhook": make_spec("webhook", "Set the order-notification webhook URL.", admin, run_webhook, webhook_args),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def build_command_table(specs: Iterable[CommandSpec]) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


# ---------------------------------------------------------------------------
# argument translation


def parse_item(raw: str, *, separator: str = ":") -> tuple[int, str]:
    """Split ``"12:3"`` into ``(12, "3")``; a bare id yields ``(12, "1")``."""
    product_text, _, value = raw.partition(separator)
    try:
        product_id = int(product_text.strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid product id: {product_text}") from exc
    return product_id, (value.strip() or "1")


def parse_quantity(raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid quantity: {raw}") from exc


def translate_period(args: argparse.Namespace, *, today: Optional[date] = None) -> ledger.StatementPeriod:
    """Explicit ``--from``/``--to`` dates win over ``--period``."""
    if args.from_date or args.to_date:
        if not (args.from_date and args.to_date):
            raise ValidationError("Please provide both --from and --to dates")
        try:
            start = date.fromisoformat(args.from_date)
            end = date.fromisoformat(args.to_date)
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {exc}") from exc
        return ledger.StatementPeriod(start, end)
    return ledger.quick_range(args.period, today)


def resolve_password(args: argparse.Namespace) -> str:
    return args.password or os.environ.get(PASSWORD_ENV, "")


# ---------------------------------------------------------------------------
# sessions


async def open_session(context: CliContext, audience: Audience, args: argparse.Namespace) -> None:
    """Log in as required by ``audience`` and keep the session on ``context``."""
    if audience is Audience.PUBLIC:
        return
    password = resolve_password(args)
    if audience is Audience.CUSTOMER:
        if not args.store:
            raise ValidationError("Please enter your store number (--store)")
        store = await session_module.find_store(context.backend, args.store)
        context.session = await session_module.login_customer(context.backend, store, password)
        return
    if not args.email:
        raise ValidationError("Please enter email and password (--email, --password)")
    if args.sub_user:
        context.session = await session_module.login_sub_user(context.backend, args.email, password)
    else:
        context.session = await session_module.login_admin(context.backend, args.email, password)


def close_session(context: CliContext) -> None:
    current = context.session
    if current is None or not current.is_open:
        return
    context.backend.logout(current.require_token())
    current.close()
    log.info("Closed %s session", current.kind.value)


def report(outcome: actions.Outcome) -> int:
    """Print an action's notice and map it to an exit code."""
    if outcome.notice.message:
        print(outcome.notice.message)
    return 0 if outcome.ok else 2


# ---------------------------------------------------------------------------
# presentation


def print_orders(context: CliContext, rows: Sequence[Order]) -> None:
    if not rows:
        print("No orders found.")
        return
    for order in rows:
        action = lifecycle.next_action(order.status) or "-"
        print(
            f"{order.order_id}  {order.po_number:<8}  {documents.format_date(order.timestamp)}  "
            f"{order.store_number:<8}  {order.company_name:<24}  {lifecycle.status_label(order.status):<11}  "
            f"{context.money(order.total_amount):>14}  next: {action}"
        )


def print_statement(context: CliContext, statement: ledger.Statement) -> None:
    print(f"ACCOUNT STATEMENT  {statement.account_name}  ({statement.period.label})")
    for row in statement.reconciliation.rows:
        entry = row.entry
        account = f"{entry.store_number:<8}  {entry.company_name:<24}  " if statement.is_combined else ""
        print(
            f"{documents.format_date(entry.entry_date)}  {account}{entry.entry_type:<8}  {entry.reference_number:<24}  "
            f"{context.money(entry.debit):>14}  {context.money(entry.credit):>14}  {context.money(row.balance):>14}"
        )
    reconciliation = statement.reconciliation
    print(f"Total debit: {context.money(reconciliation.total_debit)}")
    print(f"Total credit: {context.money(reconciliation.total_credit)}")
    print(f"Closing balance: {context.money(reconciliation.closing_balance)} ({reconciliation.status_label})")


def export_statement(context: CliContext, statement: ledger.Statement) -> None:
    path = documents.render_statement_pdf(statement, context.settings.output_dir, context.branding)
    print(f"Statement PDF written to {path}")


# ---------------------------------------------------------------------------
# storefront executors


async def run_store_info(context: CliContext, args: argparse.Namespace) -> int:
    info = await session_module.find_store(context.backend, args.store_number)
    print(f"{info.store_number}  {info.company_name}")
    print(info.address)
    if info.gst_number:
        print(f"GST: {info.gst_number}")
    return 0


async def run_products(context: CliContext, args: argparse.Namespace) -> int:
    products = catalog.search_products(await catalog.load_storefront_products(context.backend), args.search)
    for product in products:
        print(f"{product.id:>4}  {product.name:<28}  {context.money(product.rate):>12} / {product.unit}")
    if not products:
        print("No products found.")
    return 0


async def run_order(context: CliContext, args: argparse.Namespace) -> int:
    offered = {product.id: product for product in await catalog.load_storefront_products(context.backend)}
    basket = cart_module.Cart()
    for raw in args.item:
        product_id, qty_text = parse_item(raw)
        product = offered.get(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} is not available")
        basket.add(product, parse_quantity(qty_text))

    outcome = await actions.perform(
        lambda: cart_module.place_order(context.backend, context.session, basket, args.payment),
        success="Order placed successfully!",
        failure="Failed to place order",
        guard=context.guard,
        key="place-order",
    )
    if outcome.ok:
        confirmation: cart_module.OrderConfirmation = outcome.value
        print(f"Order ID: {confirmation.order_id}")
        for item in confirmation.items:
            print(f"  {item.product_name:<28} {item.qty:>4} {item.unit:<5} x {context.money(item.rate)}")
        print(f"Subtotal: {context.money(confirmation.subtotal)} ({confirmation.payment_label})")
    return report(outcome)


async def run_my_orders(context: CliContext, args: argparse.Namespace) -> int:
    history = await orders.load_my_orders(context.backend, context.session)
    for method, summary in orders.totals_by_payment_method(history).items():
        label = PAYMENT_METHOD_LABELS.get(method.value, method.value)
        print(f"{label}: {summary.count} orders, {context.money(summary.total)}")
    for order in history:
        step = orders.tracker_step(order.status)
        tracker = " > ".join(
            name.upper() if index <= step else name for index, (name, _) in enumerate(orders.TRACKER_STEPS)
        )
        print(f"{order.po_number}  {documents.format_date(order.timestamp)}  {context.money(order.total_amount)}  {tracker}")
    if not history:
        print("No orders yet.")
    return 0


async def run_my_statement(context: CliContext, args: argparse.Namespace) -> int:
    statement = await ledger.load_my_statement(context.backend, context.session, translate_period(args))
    print_statement(context, statement)
    if args.pdf:
        export_statement(context, statement)
    return 0


async def run_my_order_pdf(context: CliContext, args: argparse.Namespace) -> int:
    history = await orders.load_my_orders(context.backend, context.session)
    return write_order_pdf(context, history, args.order_id)


def write_order_pdf(context: CliContext, candidates: Iterable[Order], order_id: str) -> int:
    order = next((order for order in candidates if order.order_id == order_id), None)
    if order is None:
        raise NotFound(f"Order not found: {order_id}")
    path = documents.render_order_pdf(order, context.settings.output_dir, context.branding)
    print(f"{lifecycle.document_kind(order).value.replace('_', ' ').title()} written to {path}")
    return 0


# ---------------------------------------------------------------------------
# back-office executors


async def run_dashboard(context: CliContext, args: argparse.Namespace) -> int:
    dashboard = await orders.load_admin_dashboard(context.backend, context.session)
    print(f"Total orders: {dashboard.total_orders}")
    print(f"Total customers: {dashboard.total_customers}")
    print(f"Total products: {dashboard.total_products}")
    print(f"Today's orders: {dashboard.todays_orders}")
    print("Recent orders:")
    print_orders(context, dashboard.recent_orders)
    return 0


async def run_orders(context: CliContext, args: argparse.Namespace) -> int:
    everything = await context.backend.get_all_orders(context.session.require_token())
    print_orders(context, orders.filter_orders(everything, search=args.search, status=args.status))
    return 0


async def _find_order(context: CliContext, order_id: str) -> Order:
    everything = await context.backend.get_all_orders(context.session.require_token())
    for order in everything:
        if order.order_id == order_id:
            return order
    raise NotFound(f"Order not found: {order_id}")


async def run_advance(context: CliContext, args: argparse.Namespace) -> int:
    order = await _find_order(context, args.order_id)
    outcome = await actions.perform(
        lambda: lifecycle.advance_order(context.backend, context.session, order),
        success=None,
        failure="Failed to update order",
        guard=context.guard,
        key=order.order_id,
    )
    if outcome.ok:
        print(f"Order {order.po_number} is now {lifecycle.status_label(outcome.value)}")
    return report(outcome)


async def run_edit_order(context: CliContext, args: argparse.Namespace) -> int:
    order = await _find_order(context, args.order_id)
    editor = lifecycle.OrderEditor(order)
    if args.add:
        products = {product.id: product for product in await context.backend.get_all_products(context.session.require_token())}
        for product_id in args.add:
            if product_id not in products:
                raise NotFound(f"Product not found: {product_id}")
            editor.add_product(products[product_id])
    for raw in args.set:
        product_id, qty_text = parse_item(raw)
        editor.set_quantity(product_id, parse_quantity(qty_text))
    for raw in args.rate:
        product_id, rate_text = parse_item(raw)
        editor.set_rate(product_id, catalog.parse_rate(rate_text))
    for product_id in args.remove:
        editor.remove(product_id)

    print(f"New total: {context.money(editor.total)}")
    return report(
        await actions.perform(
            lambda: editor.save(context.backend, context.session),
            success="Order updated successfully",
            failure="Failed to update order",
        )
    )


async def run_order_pdf(context: CliContext, args: argparse.Namespace) -> int:
    everything = await context.backend.get_all_orders(context.session.require_token())
    return write_order_pdf(context, everything, args.order_id)


async def run_catalog(context: CliContext, args: argparse.Namespace) -> int:
    products = await context.backend.get_all_products(context.session.require_token())
    for product in catalog.search_products(products, args.search):
        state = "active" if product.active else "inactive"
        print(f"{product.id:>4}  {product.name:<28}  {context.money(product.rate):>12} / {product.unit:<5}  {state}")
    return 0


async def run_catalog_upload(context: CliContext, args: argparse.Namespace) -> int:
    result = spreadsheet.read_products(args.file)
    for error in result.errors:
        print(error)
    if not result.ok:
        return 2
    return report(
        await actions.perform(
            lambda: catalog.replace_catalog(context.backend, context.session, result.rows),
            success=f"Uploaded {min(len(result.rows), catalog.MAX_CATALOG_SIZE)} products successfully",
            failure="Failed to upload products",
        )
    )


async def run_catalog_defaults(context: CliContext, args: argparse.Namespace) -> int:
    return report(
        await actions.perform(
            lambda: catalog.load_default_products(context.backend, context.session),
            success=f"Loaded {len(catalog.DEFAULT_PRODUCTS)} default products",
            failure="Failed to load default products",
        )
    )


async def run_catalog_template(context: CliContext, args: argparse.Namespace) -> int:
    if args.defaults:
        rows: Sequence = catalog.DEFAULT_PRODUCTS
    else:
        rows = await context.backend.get_all_products(context.session.require_token())
        rows = rows or catalog.DEFAULT_PRODUCTS
    path = spreadsheet.write_products_template(args.output, rows)
    print(f"Product template written to {path}")
    return 0


async def _find_product(context: CliContext, product_id: int):
    for product in await context.backend.get_all_products(context.session.require_token()):
        if product.id == product_id:
            return product
    raise NotFound(f"Product not found: {product_id}")


async def run_toggle_product(context: CliContext, args: argparse.Namespace) -> int:
    product = await _find_product(context, args.product_id)
    return report(
        await actions.perform(
            lambda: catalog.toggle_product(context.backend, context.session, product),
            success=f"{product.name} {'deactivated' if product.active else 'activated'}",
            failure="Failed to update product",
            guard=context.guard,
            key=product.id,
        )
    )


async def run_set_rate(context: CliContext, args: argparse.Namespace) -> int:
    product = await _find_product(context, args.product_id)
    return report(
        await actions.perform(
            lambda: catalog.update_rate(context.backend, context.session, product, args.rate),
            success="Rate updated",
            failure="Failed to update rate",
            guard=context.guard,
            key=product.id,
        )
    )


async def run_customers(context: CliContext, args: argparse.Namespace) -> int:
    listing = customers.search_customers(await customers.load_customers(context.backend, context.session), args.search)
    for customer in listing:
        print(
            f"{customer.store_number:<8}  {customer.company_name:<24}  {customer.name:<18}  "
            f"{customer.phone:<12}  {customer.email}"
        )
    if not listing:
        print("No customers found.")
    return 0


async def run_customers_upload(context: CliContext, args: argparse.Namespace) -> int:
    result = spreadsheet.read_customers(args.file)
    for error in result.errors:
        print(error)
    if not result.ok:
        return 2
    return report(
        await actions.perform(
            lambda: customers.import_customers(context.backend, context.session, result.rows),
            success=f"Uploaded {len(result.rows)} customers successfully",
            failure="Failed to upload customers",
        )
    )


async def run_customers_template(context: CliContext, args: argparse.Namespace) -> int:
    path = spreadsheet.write_customers_template(args.output)
    print(f"Customer template written to {path}")
    return 0


async def run_edit_customer(context: CliContext, args: argparse.Namespace) -> int:
    listing = await customers.load_customers(context.backend, context.session)
    current = customers.find_customer(listing, args.store_number)
    if current is None:
        raise NotFound(f"Customer not found: {args.store_number}")

    def pick(value: Optional[str], fallback: str) -> str:
        return fallback if value is None else value

    updated = Customer(
        store_number=pick(args.new_store_number, current.store_number),
        name=pick(args.name, current.name),
        phone=pick(args.phone, current.phone),
        company_name=pick(args.company_name, current.company_name),
        address=pick(args.address, current.address),
        email=pick(args.customer_email, current.email),
        password=args.customer_password,
        gst_number=pick(args.gst_number, current.gst_number or "") or None,
    )
    return report(
        await actions.perform(
            lambda: customers.update_customer(context.backend, context.session, listing, args.store_number, updated),
            success="Customer updated successfully",
            failure="Failed to update customer",
        )
    )


async def run_delete_customer(context: CliContext, args: argparse.Namespace) -> int:
    listing = await customers.load_customers(context.backend, context.session)
    return report(
        await actions.perform(
            lambda: customers.delete_customer(context.backend, context.session, listing, args.store_number),
            success="Customer deleted",
            failure="Failed to delete customer",
        )
    )


async def run_add_payment(context: CliContext, args: argparse.Namespace) -> int:
    listing = await customers.load_customers(context.backend, context.session)
    customer = customers.find_customer(listing, args.store_number)
    if customer is None:
        raise NotFound(f"Customer not found: {args.store_number}")
    form = payments.build_payment(
        customer.store_number,
        customer.company_name,
        args.amount,
        args.method,
        cheque_details=args.cheque,
        utr_details=args.utr,
    )
    return report(
        await actions.perform(
            lambda: payments.record_payment(context.backend, context.session, form),
            success="Payment recorded successfully",
            failure="Failed to record payment",
            guard=context.guard,
            key="add-payment",
        )
    )


async def run_payments(context: CliContext, args: argparse.Namespace) -> int:
    listing = await payments.load_payments(context.backend, context.session, args.store_number)
    for payment in listing:
        detail = payment.cheque_details or payment.utr_details or ""
        print(
            f"{documents.format_date(payment.timestamp)}  {payment.store_number:<8}  {payment.company_name:<24}  "
            f"{payment.payment_method:<7}  {context.money(payment.amount):>14}  {detail}"
        )
    if not listing:
        print("No payments recorded.")
    return 0


async def run_statement(context: CliContext, args: argparse.Namespace) -> int:
    period = translate_period(args)
    if args.store_number:
        listing = await customers.load_customers(context.backend, context.session)
        customer = customers.find_customer(listing, args.store_number)
        statement = await ledger.load_customer_statement(
            context.backend,
            context.session,
            args.store_number,
            period,
            account_name=customer.company_name if customer else None,
            company_name=customer.company_name if customer else "",
        )
    else:
        statement = await ledger.load_company_statement(
            context.backend, context.session, period, business_name=context.settings.business_name
        )
    print_statement(context, statement)
    if args.pdf:
        export_statement(context, statement)
    return 0


async def run_users(context: CliContext, args: argparse.Namespace) -> int:
    team = await users.load_sub_users(context.backend, context.session)
    for user in team:
        state = "active" if user.active else "disabled"
        print(f"{user.email:<32}  {users.role_label(user.role_text):<16}  {state}")
    if not team:
        print("No team accounts.")
    return 0


async def run_add_user(context: CliContext, args: argparse.Namespace) -> int:
    return report(
        await actions.perform(
            lambda: users.create_sub_user(context.backend, context.session, args.user_email, args.user_password, args.role),
            success="User created successfully",
            failure="Failed to create user",
        )
    )


async def _find_user(context: CliContext, email: str):
    for user in await users.load_sub_users(context.backend, context.session):
        if user.email.lower() == email.strip().lower():
            return user
    raise NotFound(f"User not found: {email}")


async def run_toggle_user(context: CliContext, args: argparse.Namespace) -> int:
    user = await _find_user(context, args.user_email)
    return report(
        await actions.perform(
            lambda: users.toggle_sub_user(context.backend, context.session, user),
            success=f"User {'disabled' if user.active else 'enabled'}",
            failure="Failed to update user",
            guard=context.guard,
            key=user.email,
        )
    )


async def run_user_password(context: CliContext, args: argparse.Namespace) -> int:
    user = await _find_user(context, args.user_email)
    return report(
        await actions.perform(
            lambda: users.change_sub_user_password(context.backend, context.session, user.email, args.new_password),
            success="Password changed",
            failure="Failed to change password",
        )
    )


async def run_admin_password(context: CliContext, args: argparse.Namespace) -> int:
    return report(
        await actions.perform(
            lambda: users.change_admin_password(
                context.backend, context.session, args.new_password, args.confirm_password
            ),
            success="Password changed successfully",
            failure="Failed to change password",
        )
    )


async def run_webhook(context: CliContext, args: argparse.Namespace) -> int:
    return report(
        await actions.perform(
            lambda: users.save_webhook_url(context.backend, context.session, args.url),
            success="Webhook URL saved",
            failure="Failed to save webhook URL",
        )
    )


# ---------------------------------------------------------------------------
# entry point


def load_cli_context(config_path: Optional[Path] = None) -> CliContext:
    """Resolve the runtime context and wrap it in a backend for CLI use."""
    runtime = load_runtime_context(config_path)
    return CliContext(backend=WorkbookBackend(runtime), settings=runtime.settings)


async def dispatch_command(
    context: CliContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Open the session the command needs, run it and close the session."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    try:
        await open_session(context, spec.audience, args)
        return await spec.execute(context, args)
    finally:
        close_session(context)


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (ValidationError, BackendError)):
        log.error("%s", error)
        print(f"[ERROR] {error}")
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        print(f"[ERROR] {error}")
        return 3
    log.error("%s", error)
    print(f"[ERROR] {error}")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_cli_context(getattr(args, "config", None))
        return asyncio.run(dispatch_command(context, args, command_table))
    except Exception as error:
        return handle_cli_error(error)
