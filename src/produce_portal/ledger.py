"""Running-balance reconciliation of account statements.

The backend returns the statement entries that fall inside a date window in no
particular order. This module sorts them chronologically and folds them into
rows carrying the running balance (debits increase it, credits decrease it).
The same fold serves the single-customer statement and the combined statement
across all companies.

Statement windows are expressed as local calendar dates; before calling the
backend they are converted to nanosecond epoch bounds covering ``00:00:00`` of
the first day through ``23:59:59`` of the last day.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from . import log
from .backend import BackendService
from .constants import NANOS_PER_SECOND, ZERO
from .errors import ValidationError
from .models import StatementEntry
from .session import AdminSession, CustomerSession


ALL_COMPANIES_NAME = "All Companies"


class QuickRange(str, Enum):
    """Preset statement windows offered next to the date pickers."""

    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    LAST_3_MONTHS = "last_3_months"
    THIS_YEAR = "this_year"
    YEAR_RANGE = "year_range"


@dataclass(frozen=True)
class LedgerRow:
    """A statement entry paired with the balance after applying it."""

    entry: StatementEntry
    balance: Decimal


@dataclass(frozen=True)
class Reconciliation:
    """Chronological rows plus the closing balance of a statement."""

    rows: tuple[LedgerRow, ...]
    closing_balance: Decimal

    @property
    def amount_due(self) -> bool:
        return is_amount_due(self.closing_balance)

    @property
    def status_label(self) -> str:
        return balance_status(self.closing_balance)

    @property
    def total_debit(self) -> Decimal:
        return sum((row.entry.debit for row in self.rows), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((row.entry.credit for row in self.rows), ZERO)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class StatementPeriod:
    """Inclusive range of local calendar dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError("From date must be on or before the to date")

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

    def to_nanos(self) -> tuple[int, int]:
        return date_range_to_nanos(self.start, self.end)


@dataclass(frozen=True)
class Statement:
    """A reconciled statement ready for display or export."""

    account_name: str
    company_name: str
    store_number: Optional[str]
    period: StatementPeriod
    reconciliation: Reconciliation

    @property
    def entries(self) -> tuple[StatementEntry, ...]:
        return tuple(row.entry for row in self.reconciliation.rows)

    @property
    def closing_balance(self) -> Decimal:
        return self.reconciliation.closing_balance

    @property
    def is_combined(self) -> bool:
        return self.store_number is None


def reconcile(entries: Iterable[StatementEntry]) -> Reconciliation:
    """Sort ``entries`` by date and compute the running balance.

    The sort is stable, so entries sharing an ``entry_date`` keep the order in
    which the backend returned them. The function is pure; calling it again on
    its own output entries yields the same rows.

    Args:
        entries (Iterable[StatementEntry]): Entries in any order.

    Returns:
        Reconciliation: Rows in ascending date order and the closing balance,
            which is zero when there are no entries.
    """

    ordered = sorted(entries, key=lambda entry: entry.entry_date)
    balance = ZERO
    rows: list[LedgerRow] = []
    for entry in ordered:
        balance += entry.debit - entry.credit
        rows.append(LedgerRow(entry=entry, balance=balance))
    log.debug("Reconciled %d statement entries; closing balance %s", len(rows), balance)
    return Reconciliation(rows=tuple(rows), closing_balance=balance)


def is_amount_due(closing_balance: Decimal) -> bool:
    """A positive closing balance means the customer owes money."""
    return closing_balance > ZERO


def balance_status(closing_balance: Decimal) -> str:
    return "Amount Due" if is_amount_due(closing_balance) else "No Balance Due"


def date_range_to_nanos(start: date, end: date) -> tuple[int, int]:
    """Convert an inclusive local date range into nanosecond epoch bounds."""
    start_at = datetime.combine(start, time(0, 0, 0))
    end_at = datetime.combine(end, time(23, 59, 59))
    return int(start_at.timestamp()) * NANOS_PER_SECOND, int(end_at.timestamp()) * NANOS_PER_SECOND


def nanos_to_datetime(value: int) -> datetime:
    """Convert a nanosecond epoch timestamp into a local ``datetime``."""
    return datetime.fromtimestamp(value / NANOS_PER_SECOND)


def datetime_to_nanos(value: datetime) -> int:
    return int(value.timestamp() * 1_000_000) * 1_000


def _shift_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def quick_range(period: QuickRange | str, today: Optional[date] = None) -> StatementPeriod:
    """Resolve a preset window relative to ``today``.

    ``last_month`` covers the whole previous calendar month; ``last_3_months``
    starts on the first day of the month three months back; ``year_range`` goes
    back exactly one year from ``today``.

    Raises:
        ValidationError: If ``period`` is not a known preset.
    """

    today = today or date.today()
    try:
        preset = QuickRange(period)
    except ValueError as exc:
        raise ValidationError(f"Unknown statement period: {period}") from exc

    first_of_month = today.replace(day=1)
    if preset is QuickRange.THIS_MONTH:
        return StatementPeriod(first_of_month, today)
    if preset is QuickRange.LAST_MONTH:
        last_of_previous = first_of_month - timedelta(days=1)
        return StatementPeriod(last_of_previous.replace(day=1), last_of_previous)
    if preset is QuickRange.LAST_3_MONTHS:
        return StatementPeriod(_shift_months(first_of_month, -3), today)
    if preset is QuickRange.THIS_YEAR:
        return StatementPeriod(date(today.year, 1, 1), today)
    return StatementPeriod(_shift_months(today, -12), today)


async def load_my_statement(
    backend: BackendService,
    session: CustomerSession,
    period: StatementPeriod,
) -> Statement:
    """Fetch and reconcile the logged-in store's own statement."""
    from_ns, to_ns = period.to_nanos()
    entries = await backend.get_my_statement(session.require_token(), from_ns, to_ns)
    log.info("Loaded %d statement entries for store '%s' (%s)", len(entries), session.store_number, period.label)
    return Statement(
        account_name=session.company_name,
        company_name=session.company_name,
        store_number=session.store_number,
        period=period,
        reconciliation=reconcile(entries),
    )


async def load_customer_statement(
    backend: BackendService,
    session: AdminSession,
    store_number: str,
    period: StatementPeriod,
    *,
    account_name: Optional[str] = None,
    company_name: str = "",
) -> Statement:
    """Fetch and reconcile one customer's statement from the back office."""
    if not store_number or not store_number.strip():
        raise ValidationError("Please select a customer")
    store_number = store_number.strip()
    from_ns, to_ns = period.to_nanos()
    entries = await backend.get_customer_statement(session.require_token(), store_number, from_ns, to_ns)
    log.info("Loaded %d statement entries for store '%s' (%s)", len(entries), store_number, period.label)
    return Statement(
        account_name=account_name or store_number,
        company_name=company_name,
        store_number=store_number,
        period=period,
        reconciliation=reconcile(entries),
    )


async def load_company_statement(
    backend: BackendService,
    session: AdminSession,
    period: StatementPeriod,
    *,
    business_name: str,
) -> Statement:
    """Fetch and reconcile the combined statement across all companies."""
    from_ns, to_ns = period.to_nanos()
    entries = await backend.get_company_statement(session.require_token(), from_ns, to_ns)
    log.info("Loaded %d combined statement entries (%s)", len(entries), period.label)
    return Statement(
        account_name=ALL_COMPANIES_NAME,
        company_name=business_name,
        store_number=None,
        period=period,
        reconciliation=reconcile(entries),
    )


__all__ = [
    "ALL_COMPANIES_NAME",
    "QuickRange",
    "LedgerRow",
    "Reconciliation",
    "StatementPeriod",
    "Statement",
    "reconcile",
    "is_amount_due",
    "balance_status",
    "date_range_to_nanos",
    "nanos_to_datetime",
    "datetime_to_nanos",
    "quick_range",
    "load_my_statement",
    "load_customer_statement",
    "load_company_statement",
]
