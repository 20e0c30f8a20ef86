"""Data access layer for the produce portal workbook.

This module provides low-level helpers that read from and write to the
``portal_workbook.xlsx`` workbook used by the local backend. Business rules
(permissions, status transitions, totals) belong in
:mod:`produce_portal.workbook_backend`.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening and persisting the Excel file.
3. Sheet operations: loading structured records, appending, updating and
   replacing rows.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import NANOS_PER_SECOND, SheetName


CONFIG_FILE_NAME = "config.ini"
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
PRODUCTS_SHEET = SheetName.PRODUCTS.value
ORDERS_SHEET = SheetName.ORDERS.value
ORDER_ITEMS_SHEET = SheetName.ORDER_ITEMS.value
PAYMENTS_SHEET = SheetName.PAYMENTS.value
SUB_USERS_SHEET = SheetName.SUB_USERS.value
SETTINGS_SHEET = SheetName.SETTINGS.value

SETTING_SCHEMA_VERSION = "SchemaVersion"
SETTING_ADMIN_EMAIL = "AdminEmail"
SETTING_ADMIN_PASSWORD = "AdminPasswordHash"
SETTING_WEBHOOK_URL = "WebhookURL"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    schema_version: str
    business_name: str
    short_name: str
    currency: str
    output_dir: Path
    admin_email: str
    admin_password: str


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    store_number: str
    name: str
    phone: str
    company_name: str
    address: str
    gst_number: Optional[str]
    email: str
    password_hash: str


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: int
    product_name: str
    rate: Decimal
    unit: str
    is_active: bool


@dataclass(frozen=True)
class OrderRow:
    """In-memory view of a row from the ``Orders`` sheet."""

    order_id: str
    po_number: str
    invoice_number: Optional[str]
    status: str
    total_amount: Decimal
    payment_method: str
    timestamp_iso: str
    delivered_at_iso: Optional[str]
    address: str
    company_name: str
    store_number: str
    gst_number: Optional[str]


@dataclass(frozen=True)
class OrderItemRow:
    """In-memory view of a row from the ``OrderItems`` sheet."""

    order_id: str
    line_no: int
    product_id: int
    product_name: str
    qty: int
    rate: Decimal
    unit: str


@dataclass(frozen=True)
class PaymentRow:
    """In-memory view of a row from the ``Payments`` sheet."""

    payment_id: str
    store_number: str
    company_name: str
    amount: Decimal
    payment_method: str
    timestamp_iso: str
    cheque_details: Optional[str]
    utr_details: Optional[str]


@dataclass(frozen=True)
class SubUserRow:
    """In-memory view of a row from the ``SubUsers`` sheet."""

    email: str
    password_hash: str
    role_text: str
    is_active: bool


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory holds ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def _resolve_path(raw: str, base_path: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        path = (base_path / path).resolve()
    return path


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System] DataFile``, ``[System] SchemaVersion`` and ``[Business] Name``
    are required. The remaining options fall back to the portal defaults.
    Relative paths are expanded against ``base_path`` when provided, or
    against the current working directory.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory anchoring relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        schema_version = parser.get("System", "SchemaVersion")
        business_name = parser.get("Business", "Name")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    return ConfigSettings(
        data_file=_resolve_path(data_file_raw, base_path),
        schema_version=schema_version,
        business_name=business_name,
        short_name=parser.get("Business", "ShortName", fallback="A1VS"),
        currency=parser.get("Business", "Currency", fallback="Rs."),
        output_dir=_resolve_path(parser.get("Documents", "OutputDir", fallback="exports"), base_path),
        admin_email=parser.get("Admin", "Email", fallback=""),
        admin_password=parser.get("Admin", "Password", fallback=""),
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the portal workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    wb = openpyxl.load_workbook(data_file)
    return wb


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


# ---------------------------------------------------------------------------
# timestamps


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def iso_to_nanos(value: str) -> int:
    """Convert a stored ISO-8601 timestamp into nanoseconds since the epoch."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp()) * NANOS_PER_SECOND + moment.microsecond * 1_000


# ---------------------------------------------------------------------------
# iteration


def _iter_sheet(workbook: Workbook, sheet_name: str) -> Iterable[tuple[object, ...]]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over the ``Customers`` worksheet and yield typed records."""
    for raw in _iter_sheet(workbook, CUSTOMERS_SHEET):
        yield deserialize_customer(raw)


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet."""
    for raw in _iter_sheet(workbook, PRODUCTS_SHEET):
        yield deserialize_product(raw)


def iter_orders(workbook: Workbook) -> Iterable[OrderRow]:
    for raw in _iter_sheet(workbook, ORDERS_SHEET):
        yield deserialize_order(raw)


def iter_order_items(workbook: Workbook) -> Iterable[OrderItemRow]:
    """Stream order lines; lines of one order share its ``OrderID``."""
    for raw in _iter_sheet(workbook, ORDER_ITEMS_SHEET):
        yield deserialize_order_item(raw)


def iter_payments(workbook: Workbook) -> Iterable[PaymentRow]:
    for raw in _iter_sheet(workbook, PAYMENTS_SHEET):
        yield deserialize_payment(raw)


def iter_sub_users(workbook: Workbook) -> Iterable[SubUserRow]:
    for raw in _iter_sheet(workbook, SUB_USERS_SHEET):
        yield deserialize_sub_user(raw)


# ---------------------------------------------------------------------------
# writes


def append_customer(workbook: Workbook, record: CustomerRow) -> None:
    workbook[CUSTOMERS_SHEET].append(serialize_customer(record))


def append_product(workbook: Workbook, record: ProductRow) -> None:
    workbook[PRODUCTS_SHEET].append(serialize_product(record))


def append_order(workbook: Workbook, record: OrderRow, items: Sequence[OrderItemRow]) -> None:
    """Append an order header and its lines."""
    workbook[ORDERS_SHEET].append(serialize_order(record))
    lines_sheet = workbook[ORDER_ITEMS_SHEET]
    for item in items:
        lines_sheet.append(serialize_order_item(item))


def append_payment(workbook: Workbook, record: PaymentRow) -> None:
    workbook[PAYMENTS_SHEET].append(serialize_payment(record))


def append_sub_user(workbook: Workbook, record: SubUserRow) -> None:
    workbook[SUB_USERS_SHEET].append(serialize_sub_user(record))


def _header_map(workbook: Workbook, sheet_name: str) -> dict[object, int]:
    sheet = workbook[sheet_name]
    return {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}


def update_row(
    workbook: Workbook,
    sheet_name: str,
    key_column: str,
    key_value: object,
    *,
    field_values: dict[str, Any],
) -> None:
    """Update selected columns of the row whose ``key_column`` matches.

    Only the specified fields are modified, leaving other columns untouched.

    Raises:
        KeyError: If the row or any referenced column cannot be found.
    """

    row_index = locate_row(workbook, sheet_name, key_column, key_value)
    if row_index is None:
        raise KeyError(f"{sheet_name} row not found: {key_value}")

    sheet = workbook[sheet_name]
    header_map = _header_map(workbook, sheet_name)
    for field, value in field_values.items():
        if field not in header_map:
            raise KeyError(f"Unknown {sheet_name} field: {field}")
        sheet.cell(row=row_index, column=header_map[field], value=value)


def update_product(workbook: Workbook, product_id: int, *, field_values: dict[str, Any]) -> None:
    update_row(workbook, PRODUCTS_SHEET, "ProductID", product_id, field_values=field_values)


def update_order(workbook: Workbook, order_id: str, *, field_values: dict[str, Any]) -> None:
    update_row(workbook, ORDERS_SHEET, "OrderID", order_id, field_values=field_values)


def update_sub_user(workbook: Workbook, email: str, *, field_values: dict[str, Any]) -> None:
    update_row(workbook, SUB_USERS_SHEET, "Email", email, field_values=field_values)


def clear_rows(workbook: Workbook, sheet_name: str) -> None:
    """Delete every data row, keeping the header."""
    sheet = workbook[sheet_name]
    if sheet.max_row > 1:
        sheet.delete_rows(2, sheet.max_row - 1)


def replace_customers(workbook: Workbook, records: Sequence[CustomerRow]) -> None:
    clear_rows(workbook, CUSTOMERS_SHEET)
    for record in records:
        append_customer(workbook, record)


def replace_products(workbook: Workbook, records: Sequence[ProductRow]) -> None:
    clear_rows(workbook, PRODUCTS_SHEET)
    for record in records:
        append_product(workbook, record)


def replace_order_items(workbook: Workbook, order_id: str, items: Sequence[OrderItemRow]) -> None:
    """Drop the lines of ``order_id`` and append ``items`` in their place."""
    sheet = workbook[ORDER_ITEMS_SHEET]
    doomed = [
        row_idx
        for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2)
        if row and row[0] == order_id
    ]
    # delete bottom-up so earlier indices stay valid
    for row_idx in reversed(doomed):
        sheet.delete_rows(row_idx, 1)
    for item in items:
        sheet.append(serialize_order_item(item))


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: object) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the lookup column.
        key_value (object): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = _header_map(workbook, sheet_name)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value == key_value:
            return row_idx

    return None


# ---------------------------------------------------------------------------
# settings


def get_setting(workbook: Workbook, key: str) -> Optional[str]:
    for raw in _iter_sheet(workbook, SETTINGS_SHEET):
        if raw[0] == key:
            return None if raw[1] is None else str(raw[1])
    return None


def set_setting(workbook: Workbook, key: str, value: str) -> None:
    """Write ``key`` on the ``Settings`` sheet, adding the row when missing."""
    row_index = locate_row(workbook, SETTINGS_SHEET, "Key", key)
    sheet = workbook[SETTINGS_SHEET]
    if row_index is None:
        sheet.append([key, value])
    else:
        sheet.cell(row=row_index, column=2, value=value)


# ---------------------------------------------------------------------------
# (de)serialization


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _optional_text(value: object) -> Optional[str]:
    text = _text(value)
    return text or None


def _decimal(value: object) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0.00")


def serialize_customer(record: CustomerRow) -> list[object]:
    """Return ``[StoreNumber, Name, Phone, CompanyName, Address, GSTNumber,
    Email, PasswordHash]``."""

    return [
        record.store_number,
        record.name,
        record.phone,
        record.company_name,
        record.address,
        record.gst_number,
        record.email,
        record.password_hash,
    ]


def serialize_product(record: ProductRow) -> list[object]:
    return [record.product_id, record.product_name, record.rate, record.unit, record.is_active]


def serialize_order(record: OrderRow) -> list[object]:
    return [
        record.order_id,
        record.po_number,
        record.invoice_number,
        record.status,
        record.total_amount,
        record.payment_method,
        record.timestamp_iso,
        record.delivered_at_iso,
        record.address,
        record.company_name,
        record.store_number,
        record.gst_number,
    ]


def serialize_order_item(record: OrderItemRow) -> list[object]:
    return [
        record.order_id,
        record.line_no,
        record.product_id,
        record.product_name,
        record.qty,
        record.rate,
        record.unit,
    ]


def serialize_payment(record: PaymentRow) -> list[object]:
    return [
        record.payment_id,
        record.store_number,
        record.company_name,
        record.amount,
        record.payment_method,
        record.timestamp_iso,
        record.cheque_details,
        record.utr_details,
    ]


def serialize_sub_user(record: SubUserRow) -> list[object]:
    return [record.email, record.password_hash, record.role_text, record.is_active]


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    """Convert a raw worksheet row into a customer record.

    Store numbers and phone numbers typed as plain numbers in Excel come back
    as ``int``/``float``; both are normalised to text.
    """

    store_number, name, phone, company_name, address, gst_number, email, password_hash = raw_row[:8]
    return CustomerRow(
        store_number=_text(store_number),
        name=_text(name),
        phone=_text(phone),
        company_name=_text(company_name),
        address=_text(address),
        gst_number=_optional_text(gst_number),
        email=_text(email),
        password_hash=_text(password_hash),
    )


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record."""

    product_id, product_name, rate_raw, unit, is_active = raw_row[:5]
    return ProductRow(
        product_id=int(product_id),
        product_name=_text(product_name),
        rate=_decimal(rate_raw),
        unit=_text(unit),
        is_active=bool(is_active),
    )


def deserialize_order(raw_row: Sequence[object]) -> OrderRow:
    (
        order_id,
        po_number,
        invoice_number,
        status,
        total_raw,
        payment_method,
        timestamp_iso,
        delivered_at_iso,
        address,
        company_name,
        store_number,
        gst_number,
    ) = raw_row[:12]

    return OrderRow(
        order_id=_text(order_id),
        po_number=_text(po_number),
        invoice_number=_optional_text(invoice_number),
        status=_text(status),
        total_amount=_decimal(total_raw),
        payment_method=_text(payment_method),
        timestamp_iso=_text(timestamp_iso),
        delivered_at_iso=_optional_text(delivered_at_iso),
        address=_text(address),
        company_name=_text(company_name),
        store_number=_text(store_number),
        gst_number=_optional_text(gst_number),
    )


def deserialize_order_item(raw_row: Sequence[object]) -> OrderItemRow:
    order_id, line_no, product_id, product_name, qty, rate_raw, unit = raw_row[:7]
    return OrderItemRow(
        order_id=_text(order_id),
        line_no=int(line_no),
        product_id=int(product_id),
        product_name=_text(product_name),
        qty=int(qty),
        rate=_decimal(rate_raw),
        unit=_text(unit),
    )


def deserialize_payment(raw_row: Sequence[object]) -> PaymentRow:
    (
        payment_id,
        store_number,
        company_name,
        amount_raw,
        payment_method,
        timestamp_iso,
        cheque_details,
        utr_details,
    ) = raw_row[:8]

    return PaymentRow(
        payment_id=_text(payment_id),
        store_number=_text(store_number),
        company_name=_text(company_name),
        amount=_decimal(amount_raw),
        payment_method=_text(payment_method),
        timestamp_iso=_text(timestamp_iso),
        cheque_details=_optional_text(cheque_details),
        utr_details=_optional_text(utr_details),
    )


def deserialize_sub_user(raw_row: Sequence[object]) -> SubUserRow:
    email, password_hash, role_text, is_active = raw_row[:4]
    return SubUserRow(
        email=_text(email),
        password_hash=_text(password_hash),
        role_text=_text(role_text),
        is_active=bool(is_active),
    )
