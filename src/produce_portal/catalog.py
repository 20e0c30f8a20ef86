"""Product catalog: storefront browsing and back-office maintenance."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable, Sequence

from . import log
from .backend import BackendService
from .constants import ZERO
from .errors import ValidationError
from .models import Product, ProductInput
from .session import AdminSession


MAX_CATALOG_SIZE = 100

DEFAULT_PRODUCTS: tuple[ProductInput, ...] = (
    ProductInput("Tomato", Decimal("30"), "KGS"),
    ProductInput("Potato", Decimal("25"), "KGS"),
    ProductInput("Onion", Decimal("35"), "KGS"),
    ProductInput("Carrot", Decimal("40"), "KGS"),
    ProductInput("Capsicum", Decimal("60"), "KGS"),
    ProductInput("Cucumber", Decimal("25"), "KGS"),
    ProductInput("Brinjal", Decimal("30"), "KGS"),
    ProductInput("Cauliflower", Decimal("40"), "EACH"),
    ProductInput("Cabbage", Decimal("30"), "EACH"),
    ProductInput("Spinach", Decimal("20"), "KGS"),
    ProductInput("Peas", Decimal("80"), "KGS"),
    ProductInput("Beans", Decimal("60"), "KGS"),
    ProductInput("Ladyfinger", Decimal("40"), "KGS"),
    ProductInput("Bitter Gourd", Decimal("35"), "KGS"),
    ProductInput("Bottle Gourd", Decimal("25"), "EACH"),
    ProductInput("Ridge Gourd", Decimal("30"), "KGS"),
    ProductInput("Snake Gourd", Decimal("25"), "KGS"),
    ProductInput("Drumstick", Decimal("50"), "KGS"),
    ProductInput("Pumpkin", Decimal("30"), "KGS"),
    ProductInput("Ash Gourd", Decimal("20"), "KGS"),
    ProductInput("Radish", Decimal("20"), "KGS"),
    ProductInput("Turnip", Decimal("25"), "KGS"),
    ProductInput("Beetroot", Decimal("35"), "KGS"),
    ProductInput("Sweet Potato", Decimal("40"), "KGS"),
    ProductInput("Yam", Decimal("30"), "KGS"),
    ProductInput("Colocasia", Decimal("35"), "KGS"),
    ProductInput("Raw Banana", Decimal("30"), "KGS"),
    ProductInput("Plantain", Decimal("5"), "EACH"),
    ProductInput("Jackfruit", Decimal("40"), "KGS"),
    ProductInput("Raw Mango", Decimal("60"), "KGS"),
    ProductInput("Lemon", Decimal("80"), "KGS"),
    ProductInput("Ginger", Decimal("100"), "KGS"),
    ProductInput("Garlic", Decimal("120"), "KGS"),
    ProductInput("Green Chilli", Decimal("80"), "KGS"),
    ProductInput("Curry Leaves", Decimal("100"), "KGS"),
    ProductInput("Coriander", Decimal("60"), "KGS"),
    ProductInput("Fenugreek", Decimal("40"), "KGS"),
    ProductInput("Mint", Decimal("60"), "KGS"),
    ProductInput("Spring Onion", Decimal("40"), "KGS"),
    ProductInput("Celery", Decimal("80"), "KGS"),
    ProductInput("Broccoli", Decimal("80"), "KGS"),
    ProductInput("Baby Corn", Decimal("60"), "KGS"),
    ProductInput("Zucchini", Decimal("70"), "KGS"),
    ProductInput("Lettuce", Decimal("80"), "KGS"),
    ProductInput("Iceberg Lettuce", Decimal("60"), "EACH"),
    ProductInput("Cherry Tomato", Decimal("80"), "KGS"),
    ProductInput("Mushroom", Decimal("120"), "KGS"),
    ProductInput("Corn", Decimal("15"), "EACH"),
    ProductInput("Sweet Corn", Decimal("20"), "EACH"),
    ProductInput("Asparagus", Decimal("150"), "KGS"),
    ProductInput("Apple", Decimal("120"), "KGS"),
    ProductInput("Banana", Decimal("50"), "KGS"),
    ProductInput("Mango", Decimal("80"), "KGS"),
    ProductInput("Orange", Decimal("60"), "KGS"),
    ProductInput("Grapes", Decimal("80"), "KGS"),
    ProductInput("Watermelon", Decimal("25"), "KGS"),
    ProductInput("Muskmelon", Decimal("30"), "KGS"),
    ProductInput("Papaya", Decimal("30"), "KGS"),
    ProductInput("Pineapple", Decimal("60"), "EACH"),
    ProductInput("Guava", Decimal("40"), "KGS"),
    ProductInput("Pomegranate", Decimal("100"), "KGS"),
    ProductInput("Kiwi", Decimal("30"), "EACH"),
    ProductInput("Strawberry", Decimal("200"), "KGS"),
    ProductInput("Dragon Fruit", Decimal("100"), "EACH"),
    ProductInput("Avocado", Decimal("80"), "EACH"),
    ProductInput("Pear", Decimal("80"), "KGS"),
    ProductInput("Plum", Decimal("100"), "KGS"),
    ProductInput("Peach", Decimal("120"), "KGS"),
    ProductInput("Litchi", Decimal("100"), "KGS"),
    ProductInput("Coconut", Decimal("40"), "EACH"),
    ProductInput("Tender Coconut", Decimal("50"), "EACH"),
    ProductInput("Date", Decimal("150"), "KGS"),
    ProductInput("Fig", Decimal("200"), "KGS"),
    ProductInput("Blueberry", Decimal("300"), "KGS"),
    ProductInput("Raspberry", Decimal("250"), "KGS"),
    ProductInput("Sapota", Decimal("60"), "KGS"),
    ProductInput("Star Fruit", Decimal("80"), "KGS"),
    ProductInput("Passion Fruit", Decimal("120"), "KGS"),
    ProductInput("Wood Apple", Decimal("20"), "EACH"),
    ProductInput("Custard Apple", Decimal("60"), "KGS"),
    ProductInput("Red Capsicum", Decimal("80"), "KGS"),
    ProductInput("Yellow Capsicum", Decimal("80"), "KGS"),
    ProductInput("Baby Potato", Decimal("40"), "KGS"),
    ProductInput("Cherry", Decimal("200"), "KGS"),
    ProductInput("Amla", Decimal("60"), "KGS"),
    ProductInput("Arbi", Decimal("40"), "KGS"),
    ProductInput("Suran", Decimal("30"), "KGS"),
    ProductInput("Lotus Stem", Decimal("80"), "KGS"),
    ProductInput("Parsley", Decimal("80"), "KGS"),
    ProductInput("Rosemary", Decimal("100"), "KGS"),
    ProductInput("Basil", Decimal("80"), "KGS"),
    ProductInput("Thyme", Decimal("100"), "KGS"),
    ProductInput("Sage", Decimal("80"), "KGS"),
    ProductInput("Leek", Decimal("60"), "KGS"),
    ProductInput("Artichoke", Decimal("40"), "EACH"),
    ProductInput("Pak Choi", Decimal("60"), "KGS"),
    ProductInput("Bok Choy", Decimal("70"), "KGS"),
    ProductInput("Kale", Decimal("80"), "KGS"),
    ProductInput("Swiss Chard", Decimal("70"), "KGS"),
    ProductInput("Water Chestnut", Decimal("80"), "KGS"),
)


def parse_rate(raw: object) -> Decimal:
    """Parse a rate typed into the catalog editor; zero is allowed.

    Raises:
        ValidationError: If ``raw`` is not a number or is negative.
    """
    try:
        rate = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Please enter a valid rate") from exc
    if not rate.is_finite() or rate < ZERO:
        raise ValidationError("Please enter a valid rate")
    return rate


def search_products(products: Iterable[Product], term: str) -> list[Product]:
    """Case-insensitive name filter used by the storefront product picker."""
    needle = term.strip().lower()
    return [product for product in products if needle in product.name.lower()]


async def load_storefront_products(backend: BackendService) -> list[Product]:
    """Products offered to customers; inactive ones are never shown."""
    products = await backend.get_active_products()
    return [product for product in products if product.active]


async def toggle_product(backend: BackendService, session: AdminSession, product: Product) -> None:
    await backend.toggle_product(session.require_token(), product.id)
    log.info("Product %s (%s) toggled from active=%s", product.id, product.name, product.active)


async def update_rate(backend: BackendService, session: AdminSession, product: Product, raw_rate: object) -> Decimal:
    """Validate and submit a new current rate for ``product``.

    Orders already placed keep the rate they were placed at.
    """

    rate = parse_rate(raw_rate)
    await backend.update_product_rate(session.require_token(), product.id, rate)
    log.info("Product %s rate changed from %s to %s", product.name, product.rate, rate)
    return rate


async def replace_catalog(backend: BackendService, session: AdminSession, items: Sequence[ProductInput]) -> int:
    """Replace the whole catalog with ``items``.

    Only the first :data:`MAX_CATALOG_SIZE` rows are submitted.

    Returns:
        int: Number of products submitted.

    Raises:
        ValidationError: If ``items`` is empty.
    """

    if not items:
        raise ValidationError("No products found. Ensure columns are named 'Name', 'Unit', 'Rate'")
    if len(items) > MAX_CATALOG_SIZE:
        log.warning("Catalog upload truncated from %d to %d rows", len(items), MAX_CATALOG_SIZE)
        items = items[:MAX_CATALOG_SIZE]
    await backend.replace_products_with_details(session.require_token(), list(items))
    log.info("Catalog replaced with %d products", len(items))
    return len(items)


async def load_default_products(backend: BackendService, session: AdminSession) -> int:
    """Replace the catalog with the built-in produce list."""
    return await replace_catalog(backend, session, DEFAULT_PRODUCTS)


__all__ = [
    "MAX_CATALOG_SIZE",
    "DEFAULT_PRODUCTS",
    "parse_rate",
    "search_products",
    "load_storefront_products",
    "toggle_product",
    "update_rate",
    "replace_catalog",
    "load_default_products",
]
