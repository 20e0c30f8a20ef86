"""Bootstrap for the produce portal workbook.

The module doubles as a script (``produce-portal-setup``) and as a library used
by tests or other tooling, so the workbook bootstrap is identical regardless
of the execution path.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence
import sys

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.workbook import Workbook

from . import data_manager, log
from .catalog import DEFAULT_PRODUCTS
from .constants import EXPECTED_SCHEMA_VERSION, SheetName
from .models import ProductInput
from .security import hash_password


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.CUSTOMERS.value: [
        "StoreNumber",
        "Name",
        "Phone",
        "CompanyName",
        "Address",
        "GSTNumber",
        "Email",
        "PasswordHash",
    ],
    SheetName.PRODUCTS.value: [
        "ProductID",
        "ProductName",
        "Rate",
        "Unit",
        "IsActive",
    ],
    SheetName.ORDERS.value: [
        "OrderID",
        "PONumber",
        "InvoiceNumber",
        "Status",
        "TotalAmount",
        "PaymentMethod",
        "Timestamp",
        "DeliveredAt",
        "Address",
        "CompanyName",
        "StoreNumber",
        "GSTNumber",
    ],
    SheetName.ORDER_ITEMS.value: [
        "OrderID",
        "LineNo",
        "ProductID",
        "ProductName",
        "Qty",
        "Rate",
        "Unit",
    ],
    SheetName.PAYMENTS.value: [
        "PaymentID",
        "StoreNumber",
        "CompanyName",
        "Amount",
        "PaymentMethod",
        "Timestamp",
        "ChequeDetails",
        "UTRDetails",
    ],
    SheetName.SUB_USERS.value: [
        "Email",
        "PasswordHash",
        "RoleText",
        "IsActive",
    ],
    SheetName.SETTINGS.value: [
        "Key",
        "Value",
    ],
}

CONFIG_FILE = "config.ini"
HEADER_FILL = PatternFill("solid", fgColor="22552D")
HEADER_FONT = Font(bold=True, color="FFFFFF")


def _add_sheet(workbook: Workbook, title: str, columns: Sequence[str]) -> None:
    """Create ``title`` with a styled, frozen header row."""
    sheet = workbook.create_sheet(title=title)
    sheet.append(list(columns))
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        sheet.column_dimensions[cell.column_letter].width = max(12, len(str(cell.value)) + 4)
    sheet.freeze_panes = "A2"


def _seed_catalog(workbook: Workbook, items: Iterable[ProductInput]) -> int:
    count = 0
    for product_id, item in enumerate(items, start=1):
        data_manager.append_product(
            workbook,
            data_manager.ProductRow(
                product_id=product_id,
                product_name=item.name,
                rate=item.rate,
                unit=item.unit,
                is_active=True,
            ),
        )
        count = product_id
    return count


def create_portal_workbook(
    destination: Path,
    *,
    admin_email: str,
    admin_password: str,
    schema_version: str = EXPECTED_SCHEMA_VERSION,
    sheet_columns: Mapping[str, Sequence[str]] = SHEET_COLUMNS,
    products: Iterable[ProductInput] = (),
    overwrite: bool = False,
) -> Path:
    """Create an empty portal workbook at ``destination``.

    Every sheet gets its header row. ``Settings`` records the schema version,
    the master admin email and the hash of ``admin_password``; ``products``
    optionally seeds the catalog with ids numbered from 1.

    Raises:
        ValueError: If the admin email or password is blank.
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    if not admin_email.strip() or not admin_password:
        raise ValueError("Admin email and password are required to initialise the workbook")

    target = Path(destination).expanduser().resolve()
    if target.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing portal workbook: {target}")

    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for title, columns in sheet_columns.items():
        _add_sheet(workbook, title, columns)

    for key, value in (
        (data_manager.SETTING_SCHEMA_VERSION, schema_version),
        (data_manager.SETTING_ADMIN_EMAIL, admin_email.strip()),
        (data_manager.SETTING_ADMIN_PASSWORD, hash_password(admin_password)),
        (data_manager.SETTING_WEBHOOK_URL, ""),
    ):
        data_manager.set_setting(workbook, key, value)
    seeded = _seed_catalog(workbook, products)

    data_manager.save_workbook(workbook, target)
    log.info("Created portal workbook at '%s' with %d products", target, seeded)
    return target


def run_from_config(
    config_path: Path,
    *,
    overwrite: bool = False,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
    with_defaults: bool = False,
) -> Path:
    """Create the workbook named by ``config.ini``.

    The master admin comes from the ``[Admin]`` section unless overridden.
    """

    config_path = Path(config_path).expanduser().resolve()
    settings = data_manager.parse_settings(data_manager.read_config(config_path), base_path=config_path.parent)
    return create_portal_workbook(
        settings.data_file,
        admin_email=admin_email or settings.admin_email,
        admin_password=admin_password or settings.admin_password,
        schema_version=settings.schema_version,
        products=DEFAULT_PRODUCTS if with_defaults else (),
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="produce-portal-setup",
        description="Create the produce portal workbook named in config.ini.",
    )
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to config.ini (default: ./config.ini).")
    parser.add_argument("--admin-email", default=None, help="Master admin email; overrides [Admin] Email.")
    parser.add_argument("--admin-password", default=None, help="Master admin password; overrides [Admin] Password.")
    parser.add_argument("--with-defaults", action="store_true", help="Seed the catalog with the built-in produce list.")
    parser.add_argument("--force", action="store_true", help="Replace the workbook if it already exists.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``produce-portal-setup``; returns a process exit code."""

    args = parse_args(argv)
    print(f"Produce portal setup using {Path(args.config).expanduser().resolve()}")
    try:
        created = run_from_config(
            Path(args.config),
            overwrite=args.force,
            admin_email=args.admin_email,
            admin_password=args.admin_password,
            with_defaults=args.with_defaults,
        )
    except FileExistsError as exc:
        print(f"[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"[ERROR] {exc}")
        return 1
    except OSError as exc:
        print(f"[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"[SUCCESS] Created portal workbook at '{created}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
