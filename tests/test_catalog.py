"""Unit tests for catalog browsing and maintenance."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import make_product
from produce_portal import catalog
from produce_portal.errors import ValidationError
from produce_portal.models import ProductInput


def test_default_catalog_fits_upload_limit():
    assert len(catalog.DEFAULT_PRODUCTS) == catalog.MAX_CATALOG_SIZE
    assert all(item.rate >= 0 and item.unit for item in catalog.DEFAULT_PRODUCTS)


@pytest.mark.parametrize(("raw", "expected"), [("45", Decimal("45")), (" 12.50 ", Decimal("12.50")), ("0", Decimal("0"))])
def test_parse_rate_accepts_non_negative_numbers(raw, expected):
    assert catalog.parse_rate(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "-1", "nan", None])
def test_parse_rate_rejects_invalid_input(raw):
    with pytest.raises(ValidationError, match="Please enter a valid rate"):
        catalog.parse_rate(raw)


def test_search_products_is_case_insensitive():
    products = [make_product(1, "Tomato"), make_product(2, "Cherry Tomato"), make_product(3, "Onion")]

    assert [product.id for product in catalog.search_products(products, "TOMATO")] == [1, 2]
    assert len(catalog.search_products(products, "  ")) == 3


@pytest.mark.asyncio
async def test_storefront_hides_inactive_products(backend):
    backend.get_active_products.return_value = [make_product(1), make_product(2, "Okra", active=False)]

    products = await catalog.load_storefront_products(backend)

    assert [product.id for product in products] == [1]


@pytest.mark.asyncio
async def test_toggle_product(backend, admin_session):
    await catalog.toggle_product(backend, admin_session, make_product(7))

    backend.toggle_product.assert_awaited_once_with("admin-token", 7)


@pytest.mark.asyncio
async def test_update_rate_validates_before_submitting(backend, admin_session):
    with pytest.raises(ValidationError):
        await catalog.update_rate(backend, admin_session, make_product(1), "-5")
    backend.update_product_rate.assert_not_awaited()

    rate = await catalog.update_rate(backend, admin_session, make_product(1), "42.5")

    assert rate == Decimal("42.5")
    backend.update_product_rate.assert_awaited_once_with("admin-token", 1, Decimal("42.5"))


@pytest.mark.asyncio
async def test_replace_catalog_rejects_empty_upload(backend, admin_session):
    with pytest.raises(ValidationError):
        await catalog.replace_catalog(backend, admin_session, [])
    backend.replace_products_with_details.assert_not_awaited()


@pytest.mark.asyncio
async def test_replace_catalog_truncates_to_limit(backend, admin_session):
    items = [ProductInput(f"Item {index}", Decimal("1"), "KGS") for index in range(130)]

    submitted = await catalog.replace_catalog(backend, admin_session, items)

    assert submitted == catalog.MAX_CATALOG_SIZE
    sent = backend.replace_products_with_details.await_args.args[1]
    assert len(sent) == catalog.MAX_CATALOG_SIZE
    assert sent[-1].name == "Item 99"


@pytest.mark.asyncio
async def test_load_default_products(backend, admin_session):
    count = await catalog.load_default_products(backend, admin_session)

    assert count == len(catalog.DEFAULT_PRODUCTS)
    backend.replace_products_with_details.assert_awaited_once_with("admin-token", list(catalog.DEFAULT_PRODUCTS))
