"""Preparation-state rules for submitted order items."""

from __future__ import annotations

from collections.abc import Iterable
from typing import assert_never

from tableside.enums import OrderItemStatus, OrderStatus
from tableside.errors import TransitionError
from tableside.models import Order, OrderItem

# Forward moves the backend accepts. Terminal states have no outgoing edges.
TRANSITIONS: dict[OrderItemStatus, frozenset[OrderItemStatus]] = {
    OrderItemStatus.PENDING: frozenset(
        {OrderItemStatus.SENT_TO_PREPARE, OrderItemStatus.CANCELED, OrderItemStatus.DECLINED}
    ),
    OrderItemStatus.SENT_TO_PREPARE: frozenset(
        {OrderItemStatus.PREPARING, OrderItemStatus.CANCELED, OrderItemStatus.DECLINED}
    ),
    OrderItemStatus.PREPARING: frozenset(
        {OrderItemStatus.READY, OrderItemStatus.CANCELED, OrderItemStatus.DECLINED}
    ),
    OrderItemStatus.READY: frozenset({OrderItemStatus.SERVED, OrderItemStatus.DECLINED}),
    OrderItemStatus.SERVED: frozenset(),
    OrderItemStatus.DECLINED: frozenset(),
    OrderItemStatus.CANCELED: frozenset(),
}


def can_mark_served(status: OrderItemStatus) -> bool:
    return status is OrderItemStatus.READY


def can_cancel_item(status: OrderItemStatus) -> bool:
    match status:
        case OrderItemStatus.PENDING | OrderItemStatus.SENT_TO_PREPARE | OrderItemStatus.PREPARING:
            return True
        case (
            OrderItemStatus.READY
            | OrderItemStatus.SERVED
            | OrderItemStatus.DECLINED
            | OrderItemStatus.CANCELED
        ):
            return False
        case _:
            assert_never(status)


def is_terminal(status: OrderItemStatus) -> bool:
    match status:
        case OrderItemStatus.SERVED | OrderItemStatus.DECLINED | OrderItemStatus.CANCELED:
            return True
        case (
            OrderItemStatus.PENDING
            | OrderItemStatus.SENT_TO_PREPARE
            | OrderItemStatus.PREPARING
            | OrderItemStatus.READY
        ):
            return False
        case _:
            assert_never(status)


def is_item_cancelled(status: OrderItemStatus) -> bool:
    """True for the two negative terminal states."""
    return status in (OrderItemStatus.DECLINED, OrderItemStatus.CANCELED)


def can_transition(current: OrderItemStatus, target: OrderItemStatus) -> bool:
    return target in TRANSITIONS[current]


def is_order_active(status: OrderStatus) -> bool:
    match status:
        case OrderStatus.PENDING | OrderStatus.IN_PROGRESS:
            return True
        case OrderStatus.COMPLETED | OrderStatus.CANCELLED:
            return False
        case _:
            assert_never(status)


def status_label(status: OrderItemStatus) -> str:
    match status:
        case OrderItemStatus.PENDING:
            return "Pending"
        case OrderItemStatus.SENT_TO_PREPARE:
            return "Sent"
        case OrderItemStatus.PREPARING:
            return "Preparing"
        case OrderItemStatus.READY:
            return "Ready"
        case OrderItemStatus.SERVED:
            return "Served"
        case OrderItemStatus.DECLINED:
            return "Declined"
        case OrderItemStatus.CANCELED:
            return "Canceled"
        case _:
            assert_never(status)


def count_items_by_status(items: Iterable[OrderItem] | None, status: OrderItemStatus) -> int:
    if not items:
        return 0
    return sum(1 for item in items if item.status is status)


def ensure_order_active(order: Order) -> None:
    if not is_order_active(order.order_status):
        raise TransitionError(
            f"Order {order.order_code or order.id} is {order.order_status.value} and can no longer be changed",
            current=order.order_status.value,
            target=order.order_status.value,
        )


def ensure_transition(items: Iterable[OrderItem], target: OrderItemStatus) -> None:
    """Reject the whole batch if any item cannot move to ``target``.

    Serving and cancelling use the waiter-facing rules; declining only
    needs the item to be non-terminal.
    """
    for item in items:
        match target:
            case OrderItemStatus.SERVED:
                allowed = can_mark_served(item.status)
            case OrderItemStatus.CANCELED:
                allowed = can_cancel_item(item.status)
            case OrderItemStatus.DECLINED:
                allowed = not is_terminal(item.status)
            case (
                OrderItemStatus.PENDING
                | OrderItemStatus.SENT_TO_PREPARE
                | OrderItemStatus.PREPARING
                | OrderItemStatus.READY
            ):
                allowed = can_transition(item.status, target)
            case _:
                assert_never(target)
        if not allowed:
            raise TransitionError(
                f"{item.title} is {status_label(item.status)} and cannot be marked {status_label(target)}",
                current=item.status.value,
                target=target.value,
            )
