"""Status and field mutations on persisted orders."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from tableside.cache import QueryCache, bills_by_order_key, order_key
from tableside.enums import OrderItemStatus, OrderStatus
from tableside.errors import InFlightError, ValidationError
from tableside.item_states import can_mark_served, ensure_order_active, ensure_transition
from tableside.models import Order, OrderItem
from tableside.money import truncate_notes

logger = logging.getLogger(__name__)


def select_items(order: Order, item_ids: Sequence[str]) -> list[OrderItem]:
    if not item_ids:
        raise ValidationError("Select at least one item")
    by_id = {item.id: item for item in order.items}
    missing = [item_id for item_id in item_ids if item_id not in by_id]
    if missing:
        raise ValidationError(f"Items not on order {order.id}: {', '.join(missing)}")
    return [by_id[item_id] for item_id in item_ids]


class OrderService:
    """Mutations on one order at a time, each confirmed by the server.

    Nothing is applied locally: after a successful call the cached order
    is invalidated and refetched, and after a failed call the error
    propagates with the cache untouched.
    """

    def __init__(self, api: Any, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache
        self.in_flight = False

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        if self.in_flight:
            raise InFlightError("Another order update is still in progress")
        self.in_flight = True
        try:
            yield
        finally:
            self.in_flight = False

    async def load_order(self, order_id: str) -> Order:
        return await self.cache.get(order_key(order_id), lambda: self.api.get_order(order_id))

    async def refresh_order(self, order_id: str) -> Order:
        self.cache.invalidate(order_key(order_id))
        return await self.load_order(order_id)

    async def mark_served(self, order: Order, item_ids: Sequence[str]) -> Order:
        ensure_order_active(order)
        items = select_items(order, item_ids)
        for item in items:
            if not can_mark_served(item.status):
                # Still sent; the backend's rejection is surfaced to the caller.
                logger.warning("mark_served on item=%s with status=%s", item.id, item.status.value)
        return await self._update_status(order, items, OrderItemStatus.SERVED)

    async def cancel_items(
        self, order: Order, item_ids: Sequence[str], reason: str | None = None, reason_id: str | None = None
    ) -> Order:
        ensure_order_active(order)
        items = select_items(order, item_ids)
        ensure_transition(items, OrderItemStatus.CANCELED)
        reason = (reason or "").strip() or None
        if reason is None and not reason_id:
            raise ValidationError("A cancellation reason is required")
        return await self._update_status(
            order, items, OrderItemStatus.CANCELED, cancel_reason=reason, cancel_reason_id=reason_id
        )

    async def decline_items(
        self, order: Order, item_ids: Sequence[str], reason: str | None = None, reason_id: str | None = None
    ) -> Order:
        ensure_order_active(order)
        items = select_items(order, item_ids)
        ensure_transition(items, OrderItemStatus.DECLINED)
        return await self._update_status(
            order,
            items,
            OrderItemStatus.DECLINED,
            decline_reason=(reason or "").strip() or None,
            decline_reason_id=reason_id,
        )

    async def change_table(self, order: Order, table_id: str) -> Order:
        ensure_order_active(order)
        if not table_id:
            raise ValidationError("Select a table")
        async with self._mutation():
            await self.api.update_order(order.id, table_id=table_id)
            return await self.refresh_order(order.id)

    async def update_order_notes(self, order: Order, notes: str) -> Order:
        ensure_order_active(order)
        async with self._mutation():
            await self.api.update_order(order.id, notes=truncate_notes(notes))
            return await self.refresh_order(order.id)

    async def cancel_order(self, order: Order, reason: str) -> Order:
        ensure_order_active(order)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A cancellation reason is required")
        async with self._mutation():
            await self.api.update_order(order.id, order_status=OrderStatus.CANCELLED, cancel_reason=reason)
            self.cache.invalidate(bills_by_order_key(order.id))
            return await self.refresh_order(order.id)

    async def _update_status(
        self, order: Order, items: Sequence[OrderItem], status: OrderItemStatus, **reasons: str | None
    ) -> Order:
        ids = [item.id for item in items]
        async with self._mutation():
            await self.api.batch_update_order_item_status(ids, status, **reasons)
            logger.info("order=%s items=%s -> %s", order.id, ids, status.value)
            return await self.refresh_order(order.id)
