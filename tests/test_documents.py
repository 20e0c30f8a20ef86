"""Tests for order and statement PDF export."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

from conftest import make_entry, make_order
from produce_portal import documents, ledger


def _page_count(path):
    counts = [int(value) for value in re.findall(rb"/Count (\d+)", path.read_bytes())]
    return max(counts)


def test_format_currency_rounds_half_up():
    assert documents.format_currency(Decimal("12.345")) == "Rs. 12.35"
    assert documents.format_currency(Decimal("7"), "INR") == "INR 7.00"


def test_order_filenames_follow_document_kind():
    assert documents.order_filename(make_order(status="accepted")) == "PO_PO-0001_1001.pdf"
    delivered = make_order(status="delivered", invoice_number="INV-0007")
    assert documents.order_filename(delivered) == "Invoice_INV-0007_1001.pdf"


def test_statement_filename_is_sanitised():
    name = documents.statement_filename("Green & Fresh Grocers Pvt Ltd", "2024-01-01 to 2024-01-31")

    assert name == "Statement_Green___Fresh_Grocer_2024-01-01_to_2024-01-31.pdf"


def test_render_purchase_order(tmp_path):
    path = documents.render_order_pdf(make_order(status="pending"), tmp_path / "out")

    assert path.parent == (tmp_path / "out").resolve()
    assert path.name == "PO_PO-0001_1001.pdf"
    assert path.read_bytes().startswith(b"%PDF")


def test_render_invoice_with_branding(tmp_path):
    order = make_order(status="delivered", invoice_number="INV-0001")
    branding = documents.Branding(short_name="GV", business_name="Green Valley Produce", currency="INR")

    path = documents.render_order_pdf(order, tmp_path, branding)

    assert path.name == "Invoice_INV-0001_1001.pdf"
    assert path.stat().st_size > 0


def test_render_statement_spans_pages(tmp_path):
    entries = [make_entry(day, debit="100", reference=f"INV-{day:04d}") for day in range(1, 81)]
    statement = ledger.Statement(
        account_name="Green Grocers",
        company_name="Green Grocers",
        store_number="1001",
        period=ledger.StatementPeriod(date(1970, 1, 1), date(1970, 3, 31)),
        reconciliation=ledger.reconcile(entries),
    )

    path = documents.render_statement_pdf(statement, tmp_path)

    assert path.name.startswith("Statement_Green_Grocers_")
    assert _page_count(path) > 1


def test_render_empty_combined_statement(tmp_path):
    statement = ledger.Statement(
        account_name=ledger.ALL_COMPANIES_NAME,
        company_name="",
        store_number=None,
        period=ledger.StatementPeriod(date(2024, 1, 1), date(2024, 1, 31)),
        reconciliation=ledger.reconcile([]),
    )

    path = documents.render_statement_pdf(statement, tmp_path)

    assert path.name == "Statement_All_Companies_2024-01-01_to_2024-01-31.pdf"
    assert _page_count(path) == 1


def test_render_combined_statement_with_entries(tmp_path):
    entries = [
        make_entry(1, debit="100", reference="INV-0001"),
        make_entry(2, credit="40", reference="PAY-1", entry_type="payment", store_number="1002", company_name="Fresh Mart"),
    ]
    statement = ledger.Statement(
        account_name=ledger.ALL_COMPANIES_NAME,
        company_name="",
        store_number=None,
        period=ledger.StatementPeriod(date(1970, 1, 1), date(1970, 1, 31)),
        reconciliation=ledger.reconcile(entries),
    )

    path = documents.render_statement_pdf(statement, tmp_path)

    assert path.name == "Statement_All_Companies_1970-01-01_to_1970-01-31.pdf"
    assert path.read_bytes().startswith(b"%PDF")
