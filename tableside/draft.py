"""The local, not-yet-submitted order a waiter builds up for one table."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from tableside.models import Extra, LocalOrderItem, MenuItem, OrderItemExtra
from tableside.money import ZERO, clamp_quantity, truncate_notes

logger = logging.getLogger(__name__)


def generate_local_id() -> str:
    return f"local_{uuid4().hex}"


def extra_unit_price(extra: OrderItemExtra, catalog: dict[str, Extra]) -> Decimal:
    """Price of one unit of a selected extra.

    The snapshot taken at add time wins; the catalog only fills in extras
    that were added without a price.
    """
    if extra.price is not None:
        return extra.price
    known = catalog.get(extra.extra_id)
    if known is not None:
        return known.price
    return ZERO


def calculate_extras_total(extras: Iterable[OrderItemExtra], catalog: dict[str, Extra]) -> Decimal:
    return sum((extra_unit_price(extra, catalog) * extra.quantity for extra in extras), ZERO)


def calculate_item_subtotal(
    unit_price: Decimal, quantity: int, extras: Sequence[OrderItemExtra], catalog: dict[str, Extra]
) -> Decimal:
    """unit_price x quantity + (sum of extra unit prices x extra quantity) x quantity."""
    return unit_price * quantity + calculate_extras_total(extras, catalog) * quantity


def snapshot_extras(selected: Iterable[OrderItemExtra], catalog: dict[str, Extra]) -> list[OrderItemExtra]:
    """Bound each extra's quantity and copy title and price from the catalog."""
    snapshots = []
    for extra in selected:
        known = catalog.get(extra.extra_id)
        snapshots.append(
            OrderItemExtra(
                extra_id=extra.extra_id,
                quantity=clamp_quantity(extra.quantity),
                title=known.title if known is not None else extra.title,
                price=known.price if known is not None else extra.price,
            )
        )
    return snapshots


class OrderDraft:
    """Client-owned order lines for a single table until Send to Kitchen succeeds.

    Every add creates its own line, even for a menu item already in the
    draft, so each tap can carry different notes and extras.
    """

    def __init__(self, table_id: str = "", order_id: str | None = None) -> None:
        self.table_id = table_id
        # Set when adding items to an order that already exists on the server.
        self.order_id = order_id
        self.notes = ""
        self.items: list[LocalOrderItem] = []
        self.available_extras: dict[str, Extra] = {}
        self.is_modified = False
        self.last_modified_at: float | None = None
        # Bumped on every change, including clear().
        self.revision = 0

    def _touch(self) -> None:
        self.revision += 1
        self.is_modified = True
        self.last_modified_at = time.time()

    def set_available_extras(self, extras: Iterable[Extra]) -> None:
        self.available_extras = {extra.id: extra for extra in extras}

    def set_notes(self, notes: str) -> None:
        self.notes = truncate_notes(notes)
        self._touch()

    def add_item(
        self,
        menu_item: MenuItem,
        quantity: int = 1,
        notes: str = "",
        extras: Sequence[OrderItemExtra] = (),
    ) -> LocalOrderItem:
        clamped = clamp_quantity(quantity)
        line_extras = snapshot_extras(extras, self.available_extras)
        item = LocalOrderItem(
            id=generate_local_id(),
            menu_item_id=menu_item.id,
            menu_item=menu_item,
            quantity=clamped,
            notes=truncate_notes(notes),
            extras=line_extras,
            unit_price=menu_item.price,
            subtotal=calculate_item_subtotal(menu_item.price, clamped, line_extras, self.available_extras),
        )
        self.items.append(item)
        self._touch()
        logger.debug("draft add table=%s item=%s menu_item=%s qty=%s", self.table_id, item.id, menu_item.id, clamped)
        return item

    def get_item(self, item_id: str) -> LocalOrderItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def remove_item(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != item_id]
        if len(self.items) == before:
            return False
        self._touch()
        return True

    def update_quantity(self, item_id: str, quantity: int) -> LocalOrderItem | None:
        return self.update_item(item_id, quantity=quantity)

    def update_notes(self, item_id: str, notes: str) -> LocalOrderItem | None:
        return self.update_item(item_id, notes=notes)

    def update_extras(self, item_id: str, extras: Sequence[OrderItemExtra]) -> LocalOrderItem | None:
        return self.update_item(item_id, extras=extras)

    def update_item(
        self,
        item_id: str,
        *,
        quantity: int | None = None,
        notes: str | None = None,
        extras: Sequence[OrderItemExtra] | None = None,
    ) -> LocalOrderItem | None:
        item = self.get_item(item_id)
        if item is None:
            logger.debug("draft update ignored, unknown item=%s", item_id)
            return None
        if quantity is not None:
            item.quantity = clamp_quantity(quantity)
        if notes is not None:
            item.notes = truncate_notes(notes)
        if extras is not None:
            item.extras = snapshot_extras(extras, self.available_extras)
        item.subtotal = calculate_item_subtotal(item.unit_price, item.quantity, item.extras, self.available_extras)
        self._touch()
        return item

    def duplicate_item(self, item_id: str) -> LocalOrderItem | None:
        item = self.get_item(item_id)
        if item is None:
            return None
        copy = replace(item, id=generate_local_id(), extras=list(item.extras))
        self.items.append(copy)
        self._touch()
        return copy

    def items_for_menu_item(self, menu_item_id: str) -> list[LocalOrderItem]:
        return [item for item in self.items if item.menu_item_id == menu_item_id]

    def quantity_for_menu_item(self, menu_item_id: str) -> int:
        return sum(item.quantity for item in self.items_for_menu_item(menu_item_id))

    def recalculate_subtotals(self) -> None:
        for item in self.items:
            item.subtotal = calculate_item_subtotal(item.unit_price, item.quantity, item.extras, self.available_extras)

    def clear(self) -> None:
        """Empty the draft after a confirmed submission or an explicit discard."""
        self.items = []
        self.notes = ""
        self.revision += 1
        self.is_modified = False
        self.last_modified_at = None

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.items), ZERO)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def has_items(self) -> bool:
        return bool(self.items)
