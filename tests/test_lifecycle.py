"""Unit tests for the order status state machine and the order item editor."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import make_order, make_product
from produce_portal import lifecycle
from produce_portal.constants import OrderStatus
from produce_portal.errors import InvalidTransition, ValidationError
from produce_portal.models import OrderItem


@pytest.mark.parametrize(
    ("status", "target", "label"),
    [
        ("pending", OrderStatus.ACCEPTED, "Accept"),
        ("accepted", OrderStatus.ON_THE_WAY, "On the Way"),
        ("on_the_way", OrderStatus.DELIVERED, "Mark Delivered"),
    ],
)
def test_each_open_status_has_exactly_one_next_step(status, target, label):
    transition = lifecycle.next_transition(status)

    assert transition.target is target
    assert lifecycle.next_action(status) == label
    legal = [candidate for candidate in OrderStatus if lifecycle.is_legal_transition(status, candidate)]
    assert legal == [target]


def test_delivered_is_terminal():
    assert lifecycle.next_transition("delivered") is None
    assert lifecycle.next_action(OrderStatus.DELIVERED) is None
    assert not any(lifecycle.is_legal_transition("delivered", candidate) for candidate in OrderStatus)
    assert not lifecycle.is_editable("delivered")


def test_backward_and_skipping_moves_are_illegal():
    assert not lifecycle.is_legal_transition("accepted", "pending")
    assert not lifecycle.is_legal_transition("pending", "on_the_way")
    assert not lifecycle.is_legal_transition("pending", "delivered")


def test_parse_status_normalises_case_and_whitespace():
    assert lifecycle.parse_status("  On_The_Way ") is OrderStatus.ON_THE_WAY
    with pytest.raises(ValueError):
        lifecycle.parse_status("shipped")


def test_status_labels():
    assert lifecycle.status_label("on_the_way") == "On the Way"
    assert lifecycle.status_label(OrderStatus.PENDING) == "Pending"


def test_document_kind_follows_delivery():
    assert lifecycle.document_kind(make_order(status="accepted")) is lifecycle.DocumentKind.PURCHASE_ORDER
    delivered = make_order(status="delivered", invoice_number="INV-0001")
    assert lifecycle.document_kind(delivered) is lifecycle.DocumentKind.INVOICE


# ---------------------------------------------------------------------------
# advance_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_advance_order_submits_next_status(backend, admin_session):
    order = make_order(status="accepted")

    result = await lifecycle.advance_order(backend, admin_session, order)

    assert result is OrderStatus.ON_THE_WAY
    backend.update_order_status.assert_awaited_once_with("admin-token", "ORD1", "on_the_way")


@pytest.mark.asyncio
async def test_advance_order_rejects_delivered_without_calling_backend(backend, admin_session):
    with pytest.raises(InvalidTransition):
        await lifecycle.advance_order(backend, admin_session, make_order(status="delivered"))

    backend.update_order_status.assert_not_awaited()


# ---------------------------------------------------------------------------
# OrderEditor
# ---------------------------------------------------------------------------


def test_editor_refuses_delivered_orders():
    with pytest.raises(InvalidTransition):
        lifecycle.OrderEditor(make_order(status="delivered"))


def test_editor_add_product_merges_existing_line():
    editor = lifecycle.OrderEditor(make_order())

    editor.add_product(make_product(1))
    editor.add_product(make_product(2, "Onion", "30.00"))

    assert [(item.product_id, item.qty) for item in editor.items] == [(1, 3), (2, 1)]
    assert editor.total == Decimal("150.00")


def test_editor_keeps_order_rate_when_merging():
    editor = lifecycle.OrderEditor(make_order())

    editor.add_product(make_product(1, rate="55.00"))

    assert editor.items[0].rate == Decimal("40.00")


def test_editor_zero_quantity_removes_line():
    items = (OrderItem(1, "Tomato", 2, Decimal("40"), "KGS"), OrderItem(2, "Onion", 1, Decimal("30"), "KGS"))
    editor = lifecycle.OrderEditor(make_order(items=items))

    editor.set_quantity(1, 0)

    assert [item.product_id for item in editor.items] == [2]
    assert editor.total == Decimal("30")


def test_editor_rate_override():
    editor = lifecycle.OrderEditor(make_order())

    editor.set_rate(1, Decimal("35.50"))

    assert editor.total == Decimal("71.00")
    with pytest.raises(ValidationError):
        editor.set_rate(1, Decimal("-1"))


@pytest.mark.parametrize(
    "change",
    [
        lambda editor: editor.set_quantity(99, 3),
        lambda editor: editor.set_rate(99, Decimal("5")),
    ],
    ids=["quantity", "rate"],
)
def test_editor_rejects_products_not_on_the_order(change):
    editor = lifecycle.OrderEditor(make_order())

    with pytest.raises(ValidationError, match="Product 99 is not on order"):
        change(editor)
    assert editor.items == make_order().items


def test_editor_leaves_original_order_untouched():
    order = make_order()
    editor = lifecycle.OrderEditor(order)

    editor.set_quantity(1, 9)

    assert order.items[0].qty == 2


@pytest.mark.asyncio
async def test_editor_save_submits_whole_item_list(backend, admin_session):
    editor = lifecycle.OrderEditor(make_order())
    editor.add_product(make_product(2, "Onion", "30.00"))

    await editor.save(backend, admin_session)

    backend.edit_order_items.assert_awaited_once_with("admin-token", "ORD1", editor.items)


@pytest.mark.asyncio
async def test_editor_save_rejects_empty_order(backend, admin_session):
    editor = lifecycle.OrderEditor(make_order())
    editor.remove(1)

    with pytest.raises(ValidationError, match="at least one item"):
        await editor.save(backend, admin_session)

    backend.edit_order_items.assert_not_awaited()
