from __future__ import annotations

import asyncio

import pytest

from tableside.cache import EntryState, QueryCache, order_key
from tableside.enums import OrderItemStatus, OrderStatus
from tableside.errors import ApiClientError, InFlightError, TransitionError, ValidationError
from tableside.orders import OrderService
from tests.fakes import FakeApi, make_item, make_order


def _seed(api: FakeApi, *statuses: OrderItemStatus) -> None:
    items = [make_item(status, f"item-{idx + 1}") for idx, status in enumerate(statuses)]
    api.orders["order-1"] = make_order(*items)


def test_cancel_served_item_is_rejected_before_any_request(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.SERVED)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    with pytest.raises(TransitionError):
        asyncio.run(service.cancel_items(order, ["item-1"], reason="Customer left"))

    assert api.called("batch_update_order_item_status") == []


def test_cancel_requires_reason(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.PENDING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    with pytest.raises(ValidationError, match="reason"):
        asyncio.run(service.cancel_items(order, ["item-1"], reason="   "))
    assert api.called("batch_update_order_item_status") == []


def test_cancel_refetches_order(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.PENDING, OrderItemStatus.PREPARING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    updated = asyncio.run(service.cancel_items(order, ["item-1", "item-2"], reason="Customer left"))

    ((args, kwargs),) = api.called("batch_update_order_item_status")
    assert args == (["item-1", "item-2"], OrderItemStatus.CANCELED)
    assert kwargs["cancel_reason"] == "Customer left"
    assert [item.status for item in updated.items] == [OrderItemStatus.CANCELED, OrderItemStatus.CANCELED]
    assert len(api.called("get_order")) == 2
    assert cache.snapshot(order_key("order-1")).state is EntryState.FRESH


def test_cancel_with_reason_template(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.SENT_TO_PREPARE)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    asyncio.run(service.cancel_items(order, ["item-1"], reason_id="reason-3"))

    ((_, kwargs),) = api.called("batch_update_order_item_status")
    assert kwargs["cancel_reason_id"] == "reason-3"
    assert kwargs["cancel_reason"] is None


def test_failed_mutation_leaves_cache_untouched(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.READY)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))
    api.failures["batch_update_order_item_status"] = ApiClientError("Conflict", 409, "CLIENT_ERROR")

    with pytest.raises(ApiClientError):
        asyncio.run(service.mark_served(order, ["item-1"]))

    snapshot = cache.snapshot(order_key("order-1"))
    assert snapshot.state is EntryState.FRESH
    assert snapshot.value.items[0].status is OrderItemStatus.READY
    assert len(api.called("get_order")) == 1
    assert service.in_flight is False


def test_mark_served_on_ready_item(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.READY, OrderItemStatus.PREPARING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    updated = asyncio.run(service.mark_served(order, ["item-1"]))

    assert updated.items[0].status is OrderItemStatus.SERVED
    assert updated.items[1].status is OrderItemStatus.PREPARING


def test_mark_served_on_unready_item_surfaces_server_error(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.PREPARING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))
    api.failures["batch_update_order_item_status"] = ApiClientError("Item is not ready", 400, "CLIENT_ERROR")

    with pytest.raises(ApiClientError, match="Item is not ready"):
        asyncio.run(service.mark_served(order, ["item-1"]))

    assert len(api.called("batch_update_order_item_status")) == 1


def test_inactive_order_rejects_item_mutations(api: FakeApi, cache: QueryCache) -> None:
    order = make_order(make_item(OrderItemStatus.PENDING), status=OrderStatus.CANCELLED)
    service = OrderService(api, cache)

    with pytest.raises(TransitionError):
        asyncio.run(service.cancel_items(order, ["item-1"], reason="dup"))
    assert api.calls == []


def test_unknown_item_ids_are_rejected(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.READY)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    with pytest.raises(ValidationError):
        asyncio.run(service.mark_served(order, ["item-404"]))
    with pytest.raises(ValidationError):
        asyncio.run(service.mark_served(order, []))


def test_decline_items_records_reason(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.PREPARING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    updated = asyncio.run(service.decline_items(order, ["item-1"], reason="Out of stock"))

    assert updated.items[0].status is OrderItemStatus.DECLINED
    assert updated.items[0].decline_reason == "Out of stock"


def test_order_level_updates(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.PENDING)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))

    order = asyncio.run(service.change_table(order, "table-9"))
    assert order.table_id == "table-9"

    order = asyncio.run(service.update_order_notes(order, "n" * 600))
    assert len(order.notes) == 500

    with pytest.raises(ValidationError):
        asyncio.run(service.change_table(order, ""))
    with pytest.raises(ValidationError):
        asyncio.run(service.cancel_order(order, " "))

    order = asyncio.run(service.cancel_order(order, "Guest walked out"))
    assert order.order_status is OrderStatus.CANCELLED
    assert order.cancel_reason == "Guest walked out"


def test_one_mutation_at_a_time(api: FakeApi, cache: QueryCache) -> None:
    _seed(api, OrderItemStatus.READY)
    service = OrderService(api, cache)
    order = asyncio.run(service.load_order("order-1"))
    service.in_flight = True

    with pytest.raises(InFlightError):
        asyncio.run(service.mark_served(order, ["item-1"]))
    assert api.called("batch_update_order_item_status") == []
