from __future__ import annotations

from decimal import Decimal

from tableside.draft import OrderDraft
from tableside.models import Extra, MenuItem, OrderItemExtra

BURGER = MenuItem(id="menu-burger", title="Burger", price=Decimal("10.00"))
FRIES = MenuItem(id="menu-fries", title="Fries", price=Decimal("4.25"))
CHEESE = Extra(id="extra-cheese", title="Cheese", price=Decimal("1.50"))


def _draft() -> OrderDraft:
    draft = OrderDraft(table_id="table-7")
    draft.set_available_extras([CHEESE])
    return draft


def test_subtotal_includes_extras_per_unit() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, quantity=2, extras=[OrderItemExtra(extra_id=CHEESE.id, quantity=1)])

    assert item.subtotal == Decimal("23.00")
    assert item.extras[0].title == "Cheese"
    assert draft.total == Decimal("23.00")


def test_total_is_sum_of_line_subtotals() -> None:
    draft = _draft()
    draft.add_item(BURGER, quantity=2, extras=[OrderItemExtra(extra_id=CHEESE.id, quantity=2)])
    draft.add_item(FRIES, quantity=3)

    assert draft.total == sum(item.subtotal for item in draft.items)
    assert draft.total == Decimal("38.75")
    assert draft.item_count == 2
    assert draft.total_quantity == 5


def test_same_menu_item_twice_makes_two_lines() -> None:
    draft = _draft()
    first = draft.add_item(BURGER, notes="no onion")
    second = draft.add_item(BURGER, notes="extra sauce")

    assert first.id != second.id
    assert draft.item_count == 2
    assert draft.quantity_for_menu_item(BURGER.id) == 2
    assert [item.notes for item in draft.items_for_menu_item(BURGER.id)] == ["no onion", "extra sauce"]


def test_update_quantity_clamps_and_recomputes() -> None:
    draft = _draft()
    item = draft.add_item(BURGER)

    assert draft.update_quantity(item.id, 0).quantity == 1
    assert draft.update_quantity(item.id, -3).quantity == 1
    updated = draft.update_quantity(item.id, 150)
    assert updated.quantity == 99
    assert updated.subtotal == Decimal("990.00")


def test_add_item_clamps_quantity() -> None:
    draft = _draft()
    assert draft.add_item(BURGER, quantity=0).quantity == 1
    assert draft.add_item(BURGER, quantity=500).quantity == 99


def test_extra_quantity_is_bounded_independently() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, extras=[OrderItemExtra(extra_id=CHEESE.id, quantity=250)])
    assert item.extras[0].quantity == 99


def test_update_on_unknown_item_is_a_no_op() -> None:
    draft = _draft()
    draft.add_item(BURGER)

    assert draft.update_quantity("local_missing", 5) is None
    assert draft.remove_item("local_missing") is False
    assert draft.duplicate_item("local_missing") is None
    assert draft.item_count == 1


def test_remove_leaves_other_lines_alone() -> None:
    draft = _draft()
    keep = draft.add_item(FRIES, quantity=2)
    drop = draft.add_item(BURGER)

    assert draft.remove_item(drop.id) is True
    assert draft.items == [keep]
    assert keep.quantity == 2


def test_duplicate_copies_line_under_new_id() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, quantity=3, notes="well done", extras=[OrderItemExtra(extra_id=CHEESE.id)])
    copy = draft.duplicate_item(item.id)

    assert copy.id != item.id
    assert (copy.quantity, copy.notes, copy.extras) == (item.quantity, item.notes, item.extras)
    assert copy.extras is not item.extras
    assert draft.total == item.subtotal * 2


def test_price_snapshot_survives_catalog_changes() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, quantity=2, extras=[OrderItemExtra(extra_id=CHEESE.id)])

    draft.set_available_extras([Extra(id=CHEESE.id, title="Cheese", price=Decimal("5.00"))])
    draft.recalculate_subtotals()

    assert item.unit_price == Decimal("10.00")
    assert item.subtotal == Decimal("23.00")


def test_extra_outside_catalog_uses_its_own_price() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, extras=[OrderItemExtra(extra_id="extra-bacon", quantity=2, price=Decimal("0.75"))])
    assert item.subtotal == Decimal("11.50")


def test_update_item_edits_notes_and_extras() -> None:
    draft = _draft()
    item = draft.add_item(BURGER)
    draft.update_item(item.id, notes="n" * 700, extras=[OrderItemExtra(extra_id=CHEESE.id, quantity=2)])

    assert len(item.notes) == 500
    assert item.subtotal == Decimal("13.00")


def test_clear_resets_modification_state() -> None:
    draft = _draft()
    assert draft.is_modified is False
    draft.add_item(BURGER)
    draft.set_notes("birthday")
    assert draft.is_modified is True
    assert draft.last_modified_at is not None

    draft.clear()

    assert draft.has_items is False
    assert draft.notes == ""
    assert draft.is_modified is False
    assert draft.last_modified_at is None


def test_update_quantity_truncates_and_survives_non_finite() -> None:
    draft = _draft()
    item = draft.add_item(BURGER, quantity=3)

    assert draft.update_quantity(item.id, 2.7).quantity == 2
    assert draft.update_quantity(item.id, float("nan")).quantity == 1
    assert draft.update_quantity(item.id, float("inf")).quantity == 1
    assert item.subtotal == Decimal("10.00")
