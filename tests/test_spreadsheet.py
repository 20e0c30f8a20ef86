"""Tests for catalog and customer spreadsheet uploads and templates."""

from __future__ import annotations

from decimal import Decimal

import openpyxl
import pytest

from produce_portal import catalog, spreadsheet
from produce_portal.errors import ValidationError


def _write_rows(path, rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(list(row))
    workbook.save(path)
    return path


# ---------------------------------------------------------------------------
# products
# ---------------------------------------------------------------------------


def test_read_products_applies_defaults(tmp_path):
    path = _write_rows(
        tmp_path / "products.xlsx",
        [
            ("Product Name", "UNIT", "rate"),
            ("Tomato", "kgs", 32.5),
            ("Mint", None, None),
            (None, None, None),
            ("Lemon", "each", "4"),
        ],
    )

    result = spreadsheet.read_products(path)

    assert result.ok
    assert [(item.name, item.unit, item.rate) for item in result.rows] == [
        ("Tomato", "KGS", Decimal("32.5")),
        ("Mint", "KGS", Decimal("0")),
        ("Lemon", "EACH", Decimal("4")),
    ]


def test_read_products_reports_bad_rows_with_row_numbers(tmp_path):
    path = _write_rows(
        tmp_path / "products.xlsx",
        [("Name", "Unit", "Rate"), ("Okra", "KGS", "cheap"), (None, "KGS", 10), ("Beans", "KGS", -2), ("Peas", "KGS", 80)],
    )

    result = spreadsheet.read_products(path)

    assert not result.ok
    assert [str(error) for error in result.errors] == [
        "Row 2: Rate 'cheap' is not a number",
        "Row 3: Name is required",
        "Row 4: Rate '-2' must be zero or more",
    ]
    assert [item.name for item in result.rows] == ["Peas"]


def test_read_products_requires_name_column(tmp_path):
    path = _write_rows(tmp_path / "products.xlsx", [("Item", "Unit", "Rate"), ("Okra", "KGS", 1)])

    with pytest.raises(ValidationError, match="Ensure columns are named"):
        spreadsheet.read_products(path)


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        spreadsheet.read_products(tmp_path / "absent.xlsx")


def test_empty_sheet_is_rejected(tmp_path):
    path = tmp_path / "empty.xlsx"
    openpyxl.Workbook().save(path)

    with pytest.raises(ValidationError, match="empty"):
        spreadsheet.read_first_sheet(path)


def test_product_template_round_trips_through_upload(tmp_path):
    path = spreadsheet.write_products_template(tmp_path / "template.xlsx", catalog.DEFAULT_PRODUCTS)

    result = spreadsheet.read_products(path)

    assert result.ok
    assert result.rows == catalog.DEFAULT_PRODUCTS
    header = next(openpyxl.load_workbook(path).active.iter_rows(values_only=True))
    assert header == ("Name", "Unit", "Rate")


# ---------------------------------------------------------------------------
# customers
# ---------------------------------------------------------------------------


def test_read_customers_normalises_numeric_cells(tmp_path):
    path = _write_rows(
        tmp_path / "customers.xlsx",
        [
            spreadsheet.CUSTOMER_TEMPLATE_COLUMNS,
            (1001, "Ravi", 9876543210, "Green Grocers", "Market Road", None, "ravi@example.com", "secret1"),
        ],
    )

    result = spreadsheet.read_customers(path)

    customer = result.rows[0]
    assert customer.store_number == "1001"
    assert customer.phone == "9876543210"
    assert customer.gst_number is None


def test_read_customers_flags_missing_fields_and_duplicates(tmp_path):
    path = _write_rows(
        tmp_path / "customers.xlsx",
        [
            ("store number", "email", "password"),
            ("1001", "a@example.com", "secret1"),
            ("1002", None, "secret2"),
            ("1001", "b@example.com", "secret3"),
        ],
    )

    result = spreadsheet.read_customers(path)

    assert [str(error) for error in result.errors] == [
        "Row 3: Missing Email",
        "Row 4: Duplicate store number 1001",
    ]
    assert len(result.rows) == 1


def test_read_customers_requires_columns(tmp_path):
    path = _write_rows(tmp_path / "customers.xlsx", [("Store Number", "Email"), ("1001", "a@example.com")])

    with pytest.raises(ValidationError, match="No valid customers found"):
        spreadsheet.read_customers(path)


def test_customer_template_is_a_valid_upload(tmp_path):
    path = spreadsheet.write_customers_template(tmp_path / "customers.xlsx")

    result = spreadsheet.read_customers(path)

    assert result.ok
    assert [customer.store_number for customer in result.rows] == ["STORE001", "STORE002"]
    assert result.rows[1].gst_number == "29ABCDE1234F1Z5"
