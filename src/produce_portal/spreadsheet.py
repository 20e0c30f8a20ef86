"""Spreadsheet uploads and templates for the catalog and customer list.

Uploads are read from the first worksheet of an ``.xlsx`` file. Header names
are matched case-insensitively. Each data row is validated against the column
schema; rows that fail are reported with their worksheet row number instead of
being silently coerced or dropped. Completely empty rows are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Generic, Iterable, Mapping, Optional, Sequence, TypeVar, Union

import openpyxl
from openpyxl.styles import Font

from . import log
from .constants import DEFAULT_UNIT, ZERO
from .errors import ValidationError
from .models import Customer, Product, ProductInput


T = TypeVar("T")

PRODUCT_TEMPLATE_COLUMNS: Sequence[str] = ("Name", "Unit", "Rate")
PRODUCT_TEMPLATE_WIDTHS: Sequence[int] = (30, 10, 12)
PRODUCT_TEMPLATE_FILE = "a1vs_products_template.xlsx"

CUSTOMER_TEMPLATE_COLUMNS: Sequence[str] = (
    "Store Number",
    "Name",
    "Phone",
    "Company Name",
    "Address",
    "GST Number",
    "Email",
    "Password",
)
CUSTOMER_TEMPLATE_FILE = "a1vs_customers_template.xlsx"
CUSTOMER_TEMPLATE_SAMPLES: Sequence[Sequence[str]] = (
    ("STORE001", "John Doe", "9999999999", "Fresh Mart", "123 Main Street Mumbai", "", "john@freshmart.com", "pass123"),
    (
        "STORE002",
        "Jane Smith",
        "8888888888",
        "Green Grocery",
        "456 Park Avenue Delhi",
        "29ABCDE1234F1Z5",
        "jane@greengrocery.com",
        "pass456",
    ),
)

# Accepted spellings (lower-cased) for each logical column.
PRODUCT_HEADERS: Mapping[str, tuple[str, ...]] = {
    "name": ("name", "product name", "productname"),
    "unit": ("unit",),
    "rate": ("rate",),
}
CUSTOMER_HEADERS: Mapping[str, tuple[str, ...]] = {
    "store_number": ("store number", "storenumber"),
    "name": ("name",),
    "phone": ("phone",),
    "company_name": ("company name", "companyname"),
    "address": ("address",),
    "gst_number": ("gst number", "gstnumber"),
    "email": ("email",),
    "password": ("password",),
}


@dataclass(frozen=True)
class RowError:
    """A rejected upload row; ``row_number`` is the 1-based worksheet row."""

    row_number: int
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass(frozen=True)
class ImportResult(Generic[T]):
    """Typed rows accepted from an upload plus the rows that were rejected."""

    rows: tuple[T, ...] = ()
    errors: tuple[RowError, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors


def _cell_text(value: object) -> str:
    """Render a cell as text; whole floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _header_index(headers: Sequence[object], aliases: Mapping[str, tuple[str, ...]]) -> dict[str, int]:
    normalized = [_cell_text(header).lower() for header in headers]
    found: dict[str, int] = {}
    for key, spellings in aliases.items():
        for position, header in enumerate(normalized):
            if header in spellings:
                found[key] = position
                break
    return found


def read_first_sheet(path: Path) -> tuple[list[object], list[tuple[int, tuple[object, ...]]]]:
    """Return the header row and the numbered data rows of the first sheet.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValidationError: If the worksheet has no header row.
    """

    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {path}")

    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        headers = next(rows, None)
        if headers is None or not any(_cell_text(header) for header in headers):
            raise ValidationError("The uploaded sheet is empty")
        data = [
            (row_number, tuple(raw))
            for row_number, raw in enumerate(rows, start=2)
            if any(cell is not None and _cell_text(cell) != "" for cell in raw)
        ]
    finally:
        workbook.close()
    return list(headers), data


def _value(raw: Sequence[object], columns: Mapping[str, int], key: str) -> object:
    position = columns.get(key)
    if position is None or position >= len(raw):
        return None
    return raw[position]


def _parse_rate(value: object) -> Decimal:
    if value is None or _cell_text(value) == "":
        return ZERO
    try:
        rate = Decimal(_cell_text(value))
    except InvalidOperation as exc:
        raise ValueError(f"Rate '{value}' is not a number") from exc
    if not rate.is_finite() or rate < ZERO:
        raise ValueError(f"Rate '{value}' must be zero or more")
    return rate


def parse_product_rows(
    headers: Sequence[object],
    rows: Iterable[tuple[int, Sequence[object]]],
) -> ImportResult[ProductInput]:
    """Validate catalog rows: ``Name`` required, ``Unit`` defaults to KGS and
    is upper-cased, ``Rate`` defaults to 0 and must be a non-negative number.

    Raises:
        ValidationError: If no name column is present.
    """

    columns = _header_index(headers, PRODUCT_HEADERS)
    if "name" not in columns:
        raise ValidationError("No products found. Ensure columns are named 'Name', 'Unit', 'Rate'")

    accepted: list[ProductInput] = []
    errors: list[RowError] = []
    for row_number, raw in rows:
        name = _cell_text(_value(raw, columns, "name"))
        if not name:
            errors.append(RowError(row_number, "Name is required"))
            continue
        unit = _cell_text(_value(raw, columns, "unit")).upper() or DEFAULT_UNIT
        try:
            rate = _parse_rate(_value(raw, columns, "rate"))
        except ValueError as exc:
            errors.append(RowError(row_number, str(exc)))
            continue
        accepted.append(ProductInput(name=name, rate=rate, unit=unit))

    log.info("Parsed product upload: %d rows accepted, %d rejected", len(accepted), len(errors))
    return ImportResult(rows=tuple(accepted), errors=tuple(errors))


def parse_customer_rows(
    headers: Sequence[object],
    rows: Iterable[tuple[int, Sequence[object]]],
) -> ImportResult[Customer]:
    """Validate customer rows; store number, email and password are required.

    Raises:
        ValidationError: If a required column is missing from the header.
    """

    columns = _header_index(headers, CUSTOMER_HEADERS)
    missing = [key for key in ("store_number", "email", "password") if key not in columns]
    if missing:
        raise ValidationError("No valid customers found. Check column headers match the template.")

    accepted: list[Customer] = []
    errors: list[RowError] = []
    seen: set[str] = set()
    for row_number, raw in rows:
        values = {key: _cell_text(_value(raw, columns, key)) for key in CUSTOMER_HEADERS}
        absent = [
            label
            for key, label in (("store_number", "Store Number"), ("email", "Email"), ("password", "Password"))
            if not values[key]
        ]
        if absent:
            errors.append(RowError(row_number, f"Missing {', '.join(absent)}"))
            continue
        if values["store_number"] in seen:
            errors.append(RowError(row_number, f"Duplicate store number {values['store_number']}"))
            continue
        seen.add(values["store_number"])
        accepted.append(
            Customer(
                store_number=values["store_number"],
                name=values["name"],
                phone=values["phone"],
                company_name=values["company_name"],
                address=values["address"],
                email=values["email"],
                password=values["password"],
                gst_number=values["gst_number"] or None,
            )
        )

    log.info("Parsed customer upload: %d rows accepted, %d rejected", len(accepted), len(errors))
    return ImportResult(rows=tuple(accepted), errors=tuple(errors))


def read_products(path: Path) -> ImportResult[ProductInput]:
    headers, rows = read_first_sheet(path)
    return parse_product_rows(headers, rows)


def read_customers(path: Path) -> ImportResult[Customer]:
    headers, rows = read_first_sheet(path)
    return parse_customer_rows(headers, rows)


def _write_sheet(
    destination: Path,
    title: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[object]],
    widths: Optional[Sequence[int]] = None,
) -> Path:
    destination = Path(destination).expanduser().resolve()
    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = title

    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(columns, start=1):
        cell = worksheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = bold_font
        if widths:
            worksheet.column_dimensions[cell.column_letter].width = widths[column_index - 1]

    for row in rows:
        worksheet.append(list(row))

    workbook.save(destination)
    return destination


def write_products_template(
    destination: Path,
    products: Sequence[Union[Product, ProductInput]],
) -> Path:
    """Write the catalog upload template pre-filled with ``products``."""
    rows = ((product.name, product.unit, product.rate) for product in products)
    path = _write_sheet(destination, "Products", PRODUCT_TEMPLATE_COLUMNS, rows, PRODUCT_TEMPLATE_WIDTHS)
    log.info("Wrote product template with %d rows to %s", len(products), path)
    return path


def write_customers_template(destination: Path) -> Path:
    """Write the customer upload template with two sample stores."""
    path = _write_sheet(destination, "Customers", CUSTOMER_TEMPLATE_COLUMNS, CUSTOMER_TEMPLATE_SAMPLES)
    log.info("Wrote customer template to %s", path)
    return path


__all__ = [
    "PRODUCT_TEMPLATE_COLUMNS",
    "PRODUCT_TEMPLATE_FILE",
    "CUSTOMER_TEMPLATE_COLUMNS",
    "CUSTOMER_TEMPLATE_FILE",
    "RowError",
    "ImportResult",
    "read_first_sheet",
    "parse_product_rows",
    "parse_customer_rows",
    "read_products",
    "read_customers",
    "write_products_template",
    "write_customers_template",
]
