"""Printable PDF exports for orders and account statements.

Both documents share one layout: a coloured header band carrying the business
name and the document title, a block of party details, a line-item table with
a coloured header row and shaded alternate rows, a total box, and a footer
line. Tables continue onto new pages when they run past the bottom margin.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Sequence

from reportlab.lib.colors import Color
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from . import log
from .constants import PAYMENT_METHOD_LABELS, ZERO, OrderPaymentMethod
from .ledger import Statement, nanos_to_datetime
from .lifecycle import DocumentKind, document_kind
from .models import Order


# ─── PALETTE ───
BRAND_GREEN = Color(34 / 255, 85 / 255, 45 / 255)
ROW_SHADE = Color(245 / 255, 250 / 255, 245 / 255)
FOOTER_GREY = Color(120 / 255, 120 / 255, 120 / 255)
WHITE = Color(1, 1, 1)
BLACK = Color(0, 0, 0)

PAGE_W, PAGE_H = A4
LEFT = 14 * mm
RIGHT = PAGE_W - 14 * mm
BOTTOM_MARGIN = 20 * mm
ROW_HEIGHT = 7 * mm

ORDER_COLUMNS: Sequence[tuple[str, float, str]] = (
    ("#", 10, "left"),
    ("Product", 60, "left"),
    ("Unit", 20, "left"),
    ("Qty", 20, "right"),
    ("Rate", 30, "right"),
    ("Amount", 30, "right"),
)
STATEMENT_COLUMNS: Sequence[tuple[str, float, str]] = (
    ("Date", 28, "left"),
    ("Type", 28, "left"),
    ("Reference", 36, "left"),
    ("Debit (Rs.)", 28, "right"),
    ("Credit (Rs.)", 28, "right"),
    ("Balance (Rs.)", 32, "right"),
)
COMBINED_STATEMENT_COLUMNS: Sequence[tuple[str, float, str]] = (
    ("Date", 22, "left"),
    ("Store", 16, "left"),
    ("Company", 34, "left"),
    ("Type", 18, "left"),
    ("Reference", 28, "left"),
    ("Debit (Rs.)", 20, "right"),
    ("Credit (Rs.)", 20, "right"),
    ("Balance (Rs.)", 24, "right"),
)


@dataclass(frozen=True)
class Branding:
    """Business identity printed on every document."""

    short_name: str = "A1VS"
    business_name: str = "AONE VEGETABLES & SUPPLIER"
    currency: str = "Rs."


def format_currency(amount: Decimal, currency: str = "Rs.") -> str:
    return f"{currency} {Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def format_date(timestamp_ns: int) -> str:
    return nanos_to_datetime(timestamp_ns).strftime("%d %b %Y")


def order_filename(order: Order) -> str:
    if document_kind(order) is DocumentKind.INVOICE:
        return f"Invoice_{order.invoice_number}_{order.store_number}.pdf"
    return f"PO_{order.po_number}_{order.store_number}.pdf"


def statement_filename(account_label: str, period_label: str) -> str:
    """``Statement_<account, alphanumerics only, 20 chars>_<period>.pdf``."""
    safe_account = re.sub(r"[^a-zA-Z0-9]", "_", account_label)[:20]
    period = re.sub(r"\s", "_", period_label)
    return f"Statement_{safe_account}_{period}.pdf"


def _top(offset_mm: float) -> float:
    """Convert a distance from the top edge in mm into a canvas y coordinate."""
    return PAGE_H - offset_mm * mm


class _Table:
    """Draws rows under a repeated header, breaking pages as needed."""

    def __init__(self, pdf: canvas.Canvas, columns: Sequence[tuple[str, float, str]], font_size: float) -> None:
        self.pdf = pdf
        self.columns = columns
        self.font_size = font_size

    def _cells(self, y: float, values: Sequence[str], bold: bool) -> None:
        self.pdf.setFont("Helvetica-Bold" if bold else "Helvetica", self.font_size)
        x = LEFT
        baseline = y - ROW_HEIGHT + 2.3 * mm
        for (_, width_mm, align), value in zip(self.columns, values):
            width = width_mm * mm
            if align == "right":
                self.pdf.drawRightString(x + width - 1.5 * mm, baseline, value)
            else:
                self.pdf.drawString(x + 1.5 * mm, baseline, value)
            x += width

    def _width(self) -> float:
        return sum(width for _, width, _ in self.columns) * mm

    def header(self, y: float) -> float:
        self.pdf.saveState()
        self.pdf.setFillColor(BRAND_GREEN)
        self.pdf.rect(LEFT, y - ROW_HEIGHT, self._width(), ROW_HEIGHT, stroke=0, fill=1)
        self.pdf.setFillColor(WHITE)
        self._cells(y, [title for title, _, _ in self.columns], bold=True)
        self.pdf.restoreState()
        return y - ROW_HEIGHT

    def draw(self, y: float, rows: Sequence[Sequence[str]]) -> float:
        """Draw ``rows`` starting at ``y``; returns the y below the last row."""
        y = self.header(y)
        for index, row in enumerate(rows):
            if y - ROW_HEIGHT < BOTTOM_MARGIN:
                self.pdf.showPage()
                y = self.header(_top(14))
            if index % 2 == 1:
                self.pdf.saveState()
                self.pdf.setFillColor(ROW_SHADE)
                self.pdf.rect(LEFT, y - ROW_HEIGHT, self._width(), ROW_HEIGHT, stroke=0, fill=1)
                self.pdf.restoreState()
            self.pdf.setFillColor(BLACK)
            self._cells(y, row, bold=False)
            y -= ROW_HEIGHT
        return y


def _header_band(
    pdf: canvas.Canvas,
    branding: Branding,
    height_mm: float,
    title: str,
    subtitle_lines: Sequence[str],
) -> None:
    pdf.saveState()
    pdf.setFillColor(BRAND_GREEN)
    pdf.rect(0, _top(height_mm), PAGE_W, height_mm * mm, stroke=0, fill=1)
    pdf.setFillColor(WHITE)
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawString(LEFT, _top(16), branding.short_name)
    pdf.setFont("Helvetica", 9)
    pdf.drawString(LEFT, _top(24), branding.business_name)
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawRightString(RIGHT, _top(16), title)
    pdf.setFont("Helvetica", 9)
    for index, line in enumerate(subtitle_lines):
        pdf.drawRightString(RIGHT, _top(24 + 8 * index), line)
    pdf.restoreState()


def _total_box(pdf: canvas.Canvas, y: float, box_width_mm: float, label: str, value: str) -> float:
    """Draw the highlighted total box below ``y``; returns its bottom edge."""
    if y - 20 * mm < BOTTOM_MARGIN:
        pdf.showPage()
        y = _top(14)
    top = y - 4 * mm
    pdf.saveState()
    pdf.setFillColor(BRAND_GREEN)
    pdf.rect(RIGHT - box_width_mm * mm, top - 10 * mm, box_width_mm * mm, 10 * mm, stroke=0, fill=1)
    pdf.setFillColor(WHITE)
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(RIGHT - (box_width_mm - 4) * mm, top - 6.5 * mm, label)
    pdf.drawRightString(RIGHT - 2 * mm, top - 6.5 * mm, value)
    pdf.restoreState()
    return top - 10 * mm


def _footer(pdf: canvas.Canvas, y: float, text: str) -> None:
    pdf.saveState()
    pdf.setFillColor(FOOTER_GREY)
    pdf.setFont("Helvetica", 8)
    pdf.drawCentredString(PAGE_W / 2, y - 12 * mm, text)
    pdf.restoreState()


def render_order_pdf(order: Order, output_dir: Path, branding: Branding = Branding()) -> Path:
    """Write the purchase order, or the invoice once delivered, as a PDF.

    Returns:
        Path: Location of the written file inside ``output_dir``.
    """

    output_dir = Path(output_dir).expanduser().resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    destination = output_dir / order_filename(order)

    is_invoice = document_kind(order) is DocumentKind.INVOICE
    pdf = canvas.Canvas(str(destination), pagesize=A4)
    pdf.setTitle(f"{'Invoice' if is_invoice else 'Purchase Order'} {order.invoice_number or order.po_number}")
    pdf.setAuthor(branding.business_name)

    reference = f"Invoice #: {order.invoice_number}" if is_invoice else f"PO #: {order.po_number}"
    _header_band(
        pdf,
        branding,
        40,
        "INVOICE" if is_invoice else "PURCHASE ORDER",
        [reference, f"Date: {format_date(order.timestamp)}"],
    )

    y_mm = 52.0
    pdf.setFillColor(BLACK)
    pdf.setFont("Helvetica-Bold", 9)
    pdf.drawString(LEFT, _top(y_mm), "BILL TO:")
    pdf.setFont("Helvetica", 9)
    lines = [order.company_name, order.address]
    if order.gst_number:
        lines.append(f"GST: {order.gst_number}")
    lines.append(f"Store #: {order.store_number}")
    method = order.payment_method
    payment_label = PAYMENT_METHOD_LABELS.get(method, PAYMENT_METHOD_LABELS[OrderPaymentMethod.PAY_LATER.value])
    lines.append(f"Payment: {payment_label}")
    y_mm += 6
    for line in lines:
        pdf.drawString(LEFT, _top(y_mm), line)
        y_mm += 5

    rows = [
        [
            str(index),
            item.product_name,
            item.unit,
            str(item.qty),
            format_currency(item.rate, branding.currency),
            format_currency(item.amount, branding.currency),
        ]
        for index, item in enumerate(order.items, start=1)
    ]
    table_bottom = _Table(pdf, ORDER_COLUMNS, 9).draw(_top(y_mm + 7), rows)
    box_bottom = _total_box(pdf, table_bottom, 66, "TOTAL:", format_currency(order.total_amount, branding.currency))
    _footer(pdf, box_bottom, f"Thank you for your business! - {branding.business_name}")

    pdf.showPage()
    pdf.save()
    log.info("Wrote %s for order %s to %s", "invoice" if is_invoice else "purchase order", order.order_id, destination)
    return destination


def render_statement_pdf(statement: Statement, output_dir: Path, branding: Branding = Branding()) -> Path:
    """Write an account statement with its running balance as a PDF."""

    account_label = statement.company_name or statement.account_name
    output_dir = Path(output_dir).expanduser().resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    destination = output_dir / statement_filename(account_label, statement.period.label)

    pdf = canvas.Canvas(str(destination), pagesize=A4)
    pdf.setTitle(f"Account Statement {account_label}")
    pdf.setAuthor(branding.business_name)

    _header_band(pdf, branding, 36, "ACCOUNT STATEMENT", [f"Period: {statement.period.label}"])

    pdf.setFillColor(BLACK)
    pdf.setFont("Helvetica-Bold", 9)
    pdf.drawString(LEFT, _top(46), "ACCOUNT:")
    pdf.setFont("Helvetica", 9)
    pdf.drawString(LEFT, _top(52), account_label)
    if statement.store_number:
        pdf.drawString(LEFT, _top(58), f"Store #: {statement.store_number}")

    rows = []
    for row in statement.reconciliation.rows:
        entry = row.entry
        cells = [format_date(entry.entry_date)]
        if statement.is_combined:
            cells += [entry.store_number, entry.company_name[:18]]
        cells += [
            entry.entry_type,
            entry.reference_number,
            format_currency(entry.debit, branding.currency) if entry.debit > ZERO else "-",
            format_currency(entry.credit, branding.currency) if entry.credit > ZERO else "-",
            format_currency(row.balance, branding.currency),
        ]
        rows.append(cells)
    columns = COMBINED_STATEMENT_COLUMNS if statement.is_combined else STATEMENT_COLUMNS
    table_bottom = _Table(pdf, columns, 8).draw(_top(64), rows)
    box_bottom = _total_box(
        pdf,
        table_bottom,
        76,
        "CLOSING BALANCE:",
        format_currency(statement.closing_balance, branding.currency),
    )
    _footer(pdf, box_bottom, f"This is a computer-generated statement. - {branding.business_name}")

    pdf.showPage()
    pdf.save()
    log.info("Wrote statement for %s (%s) to %s", account_label, statement.period.label, destination)
    return destination


__all__ = [
    "Branding",
    "format_currency",
    "format_date",
    "order_filename",
    "statement_filename",
    "render_order_pdf",
    "render_statement_pdf",
]
