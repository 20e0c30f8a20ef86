"""Back-office customer management.

The backend only offers a whole-list replace for customers, so editing or
deleting one customer submits the current list with that customer changed.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from . import log
from .backend import BackendService
from .errors import NotFound, ValidationError
from .models import Customer
from .session import AdminSession


REQUIRED_FIELDS_MESSAGE = "Store Number, Email, and Password are required."


def validate_customer(customer: Customer) -> Customer:
    """Strip text fields and check the required ones.

    Raises:
        ValidationError: If store number, email or password is blank.
    """

    cleaned = replace(
        customer,
        store_number=customer.store_number.strip(),
        name=customer.name.strip(),
        phone=customer.phone.strip(),
        company_name=customer.company_name.strip(),
        address=customer.address.strip(),
        email=customer.email.strip(),
        password=customer.password.strip(),
        gst_number=(customer.gst_number or "").strip() or None,
    )
    if not (cleaned.store_number and cleaned.email and cleaned.password):
        log.warning("Customer '%s' rejected: missing required fields", cleaned.store_number)
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)
    return cleaned


def find_customer(customers: Iterable[Customer], store_number: str) -> Optional[Customer]:
    for customer in customers:
        if customer.store_number == store_number:
            return customer
    return None


def search_customers(customers: Iterable[Customer], term: str) -> list[Customer]:
    """Case-insensitive match on store number, name, company and email."""
    needle = term.strip().lower()
    return [
        customer
        for customer in customers
        if not needle
        or any(
            needle in value.lower()
            for value in (customer.store_number, customer.name, customer.company_name, customer.email)
        )
    ]


async def load_customers(backend: BackendService, session: AdminSession) -> list[Customer]:
    return await backend.get_all_customers(session.require_token())


async def import_customers(backend: BackendService, session: AdminSession, customers: Sequence[Customer]) -> int:
    """Replace every customer with an uploaded list.

    Raises:
        ValidationError: If ``customers`` is empty.
    """

    if not customers:
        raise ValidationError("No valid customers found. Check column headers match the template.")
    cleaned = [validate_customer(customer) for customer in customers]
    await backend.replace_customers(session.require_token(), cleaned)
    log.info("Customer list replaced with %d customers", len(cleaned))
    return len(cleaned)


async def update_customer(
    backend: BackendService,
    session: AdminSession,
    customers: Sequence[Customer],
    original_store_number: str,
    updated: Customer,
) -> list[Customer]:
    """Submit ``customers`` with one entry replaced by ``updated``.

    Returns:
        list[Customer]: The list that was submitted.

    Raises:
        ValidationError: If ``updated`` lacks a required field.
        NotFound: If ``original_store_number`` is not in ``customers``.
    """

    cleaned = validate_customer(updated)
    if find_customer(customers, original_store_number) is None:
        raise NotFound(f"Customer not found: {original_store_number}")
    new_list = [cleaned if customer.store_number == original_store_number else customer for customer in customers]
    await backend.replace_customers(session.require_token(), new_list)
    log.info("Customer '%s' updated", original_store_number)
    return new_list


async def delete_customer(
    backend: BackendService,
    session: AdminSession,
    customers: Sequence[Customer],
    store_number: str,
) -> list[Customer]:
    """Submit ``customers`` without the one identified by ``store_number``."""
    if find_customer(customers, store_number) is None:
        raise NotFound(f"Customer not found: {store_number}")
    new_list = [customer for customer in customers if customer.store_number != store_number]
    await backend.replace_customers(session.require_token(), new_list)
    log.info("Customer '%s' deleted", store_number)
    return new_list


__all__ = [
    "REQUIRED_FIELDS_MESSAGE",
    "validate_customer",
    "find_customer",
    "search_customers",
    "load_customers",
    "import_customers",
    "update_customer",
    "delete_customer",
]
