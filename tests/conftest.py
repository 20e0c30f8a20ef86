"""Shared pytest fixtures and utilities for produce portal tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import AsyncMock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from produce_portal import constants, data_manager, security, workbook_backend  # noqa: E402
from produce_portal.backend import BackendService  # noqa: E402
from produce_portal.models import Order, OrderItem, Product, StatementEntry  # noqa: E402
from produce_portal.security import hash_password  # noqa: E402
from produce_portal.session import AdminSession, CustomerSession  # noqa: E402
from produce_portal.setup_workbook import create_portal_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
ADMIN_EMAIL = "admin@a1vs.test"
ADMIN_PASSWORD = "admin-secret"
STORE_PASSWORD = "store-secret"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Business]\n"
    "Name = {business_name}\n"
    "ShortName = A1VS\n"
    "Currency = Rs.\n\n"
    "[Documents]\n"
    "OutputDir = {output_dir}\n\n"
    "[Admin]\n"
    "Email = {admin_email}\n"
    "Password = {admin_password}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    output_dir: Path
    schema_version: str
    business_name: str


class FixedClock:
    """Callable clock whose current moment tests can move."""

    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(autouse=True)
def _fast_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Use the cheapest bcrypt cost factor so logins stay quick in tests."""

    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized portal workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        filename: str = "portal_workbook.xlsx",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_portal_workbook(
            workbook_path,
            admin_email=ADMIN_EMAIL,
            admin_password=ADMIN_PASSWORD,
            schema_version=schema_version,
            overwrite=True,
        )
        return workbook_path

    return _create_workbook


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        business_name: str = "Test Produce Co",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_dir.name)
        output_dir = bundle_dir / "exports"
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=workbook_path.name if make_relative else str(workbook_path),
                schema_version=schema_version,
                business_name=business_name,
                output_dir="exports" if make_relative else str(output_dir),
                admin_email=ADMIN_EMAIL,
                admin_password=ADMIN_PASSWORD,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            output_dir=output_dir,
            schema_version=schema_version,
            business_name=business_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> workbook_backend.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = workbook_backend.load_runtime_context(config_file)
    workbook_backend.ensure_schema_version(context)
    return context


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 15, 9, 30, tzinfo=UTC))


def seed_workbook(context: workbook_backend.RuntimeContext) -> None:
    """Write two stores and three products straight through the DAL."""

    workbook = context.workbook
    for store_number, company in (("1001", "Green Grocers"), ("1002", "Fresh Mart")):
        data_manager.append_customer(
            workbook,
            data_manager.CustomerRow(
                store_number=store_number,
                name=f"{company} Owner",
                phone="9876543210",
                company_name=company,
                address=f"{store_number} Market Road",
                gst_number="29ABCDE1234F1Z5" if store_number == "1001" else None,
                email=f"store{store_number}@example.com",
                password_hash=hash_password(STORE_PASSWORD),
            ),
        )
    for product_id, name, rate, unit, active in (
        (1, "Tomato", Decimal("40.00"), "KGS", True),
        (2, "Onion", Decimal("30.00"), "KGS", True),
        (3, "Coriander", Decimal("10.00"), "BUNCH", False),
    ):
        data_manager.append_product(
            workbook,
            data_manager.ProductRow(product_id, name, rate, unit, active),
        )
    workbook_backend.persist_context(context)


@pytest.fixture
def seeded_backend(runtime_context: workbook_backend.RuntimeContext, clock: FixedClock) -> workbook_backend.WorkbookBackend:
    """A workbook backend over a workbook holding two stores and three products."""

    seed_workbook(runtime_context)
    return workbook_backend.WorkbookBackend(workbook_backend.refresh_context(runtime_context), clock=clock)


# ---------------------------------------------------------------------------
# Client component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> AsyncMock:
    """Backend double whose coroutine methods are ``AsyncMock`` instances."""

    return AsyncMock(spec=BackendService)


@pytest.fixture
def customer_session() -> CustomerSession:
    return CustomerSession(
        kind=constants.PrincipalKind.CUSTOMER,
        token="customer-token",
        store_number="1001",
        company_name="Green Grocers",
        address="1001 Market Road",
        gst_number="29ABCDE1234F1Z5",
    )


@pytest.fixture
def admin_session() -> AdminSession:
    return AdminSession(kind=constants.PrincipalKind.MASTER_ADMIN, token="admin-token", email=ADMIN_EMAIL)


def make_product(product_id: int = 1, name: str = "Tomato", rate: str = "40.00", unit: str = "KGS", active: bool = True) -> Product:
    return Product(id=product_id, name=name, rate=Decimal(rate), unit=unit, active=active)


def make_order(
    order_id: str = "ORD1",
    *,
    status: str = "pending",
    items: tuple[OrderItem, ...] | None = None,
    timestamp: int = 1_700_000_000 * constants.NANOS_PER_SECOND,
    payment_method: str = "cod",
    store_number: str = "1001",
    company_name: str = "Green Grocers",
    po_number: str = "PO-0001",
    invoice_number: str | None = None,
) -> Order:
    items = items if items is not None else (OrderItem(1, "Tomato", 2, Decimal("40.00"), "KGS"),)
    return Order(
        order_id=order_id,
        po_number=po_number,
        status=status,
        items=items,
        total_amount=sum((item.amount for item in items), Decimal("0")),
        payment_method=payment_method,
        timestamp=timestamp,
        address="1001 Market Road",
        company_name=company_name,
        store_number=store_number,
        invoice_number=invoice_number,
    )


def make_entry(
    day: int,
    *,
    debit: str = "0",
    credit: str = "0",
    reference: str = "REF",
    entry_type: str = "invoice",
    store_number: str = "1001",
    company_name: str = "Green Grocers",
) -> StatementEntry:
    return StatementEntry(
        entry_date=day * 86_400 * constants.NANOS_PER_SECOND,
        entry_type=entry_type,
        reference_number=reference,
        store_number=store_number,
        company_name=company_name,
        debit=Decimal(debit),
        credit=Decimal(credit),
    )


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="produce-portal", description="Produce portal CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")
