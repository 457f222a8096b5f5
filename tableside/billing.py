"""Bill derivation from order items, previews, and discount application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, assert_never

from tableside.cache import QueryCache, bill_key, bills_by_order_key, order_key
from tableside.enums import BillStatus, OrderItemStatus, ServiceFeeType
from tableside.errors import InFlightError, ValidationError
from tableside.item_states import is_item_cancelled
from tableside.models import Bill, BillCalculation, BillItem, Order, OrderItem
from tableside.money import ZERO, Amount, parse_decimal, round_cents

logger = logging.getLogger(__name__)


def get_billable_items(items: Iterable[OrderItem] | None) -> list[OrderItem]:
    """Everything except CANCELED and DECLINED items; PENDING stays billable."""
    if not items:
        return []
    return [item for item in items if not is_item_cancelled(item.status)]


def can_bill_items(items: Iterable[OrderItem] | None) -> bool:
    """True once at least one live item has entered the kitchen pipeline."""
    if not items:
        return False
    return any(item.status is not OrderItemStatus.PENDING and not is_item_cancelled(item.status) for item in items)


def items_subtotal(items: Iterable[OrderItem]) -> Decimal:
    return sum((item.subtotal for item in items), ZERO)


def bill_items_from(items: Iterable[OrderItem]) -> list[BillItem]:
    return [BillItem(order_item_id=item.id, quantity=item.billable_quantity, price=item.subtotal) for item in items]


def compute_service_fee(
    subtotal: Amount,
    fee_type: ServiceFeeType | None,
    percent: Amount = None,
    amount: Amount = None,
) -> Decimal:
    match fee_type:
        case None:
            return ZERO
        case ServiceFeeType.PERCENTAGE:
            return round_cents(parse_decimal(subtotal) * parse_decimal(percent) / 100)
        case ServiceFeeType.FIXED:
            return round_cents(amount)
        case _:
            assert_never(fee_type)


def service_fee_for_order(order: Order, subtotal: Amount) -> Decimal:
    return compute_service_fee(subtotal, order.service_fee_type, order.service_fee_percent, order.service_fee_amount)


def compute_bill_totals(subtotal: Amount, discount_amount: Amount, service_fee_amount: Amount) -> BillCalculation:
    """total = subtotal - discount + service fee, every part non-negative."""
    subtotal = round_cents(subtotal)
    discount = round_cents(discount_amount)
    fee = round_cents(service_fee_amount)
    if subtotal < 0 or discount < 0 or fee < 0:
        raise ValidationError("Bill amounts cannot be negative")
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal")
    return BillCalculation(
        subtotal=subtotal,
        discount_amount=discount,
        service_fee_amount=fee,
        total_amount=subtotal - discount + fee,
    )


def discounts_editable(bill: Bill) -> bool:
    """Discounts may change only before any payment lands."""
    match bill.status:
        case BillStatus.DRAFT | BillStatus.FINALIZED:
            return not bill.payments and bill.paid_amount <= 0
        case BillStatus.PAID | BillStatus.CANCELLED:
            return False
        case _:
            assert_never(bill.status)


def validate_discount_selection(discount_ids: Sequence[str], custom_amount: Amount) -> Decimal | None:
    custom = parse_decimal(custom_amount) if custom_amount is not None else None
    if custom is not None and custom < 0:
        raise ValidationError("Custom discount cannot be negative")
    if custom is not None and custom.is_zero():
        custom = None
    if not discount_ids and custom is None:
        raise ValidationError("Please select at least one discount or enter a custom amount")
    return custom


@dataclass(frozen=True)
class BillPreview:
    """Server calculation plus the exact item snapshot a confirmed bill will use."""

    order_id: str
    customer_id: str | None
    items: tuple[BillItem, ...]
    local_subtotal: Decimal
    calculation: BillCalculation


class BillingService:
    """Bill creation and discounts for one order."""

    def __init__(self, api: Any, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache
        self.in_flight = False

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        if self.in_flight:
            raise InFlightError("Another bill update is still in progress")
        self.in_flight = True
        try:
            yield
        finally:
            self.in_flight = False

    async def load_bill_for_order(self, order_id: str) -> Bill | None:
        bills = await self.cache.get(bills_by_order_key(order_id), lambda: self.api.get_bills_for_order(order_id))
        return bills[0] if bills else None

    async def load_bill(self, bill_id: str) -> Bill:
        return await self.cache.get(bill_key(bill_id), lambda: self.api.get_bill(bill_id))

    async def preview_bill(self, order: Order) -> BillPreview:
        billable = get_billable_items(order.items)
        if not billable:
            raise ValidationError("No billable items in this order")
        if not can_bill_items(order.items):
            raise ValidationError("Send at least one item to the kitchen before billing")
        if await self.load_bill_for_order(order.id) is not None:
            raise ValidationError("This order already has a bill")

        calculation = await self.api.calculate_bill(order.id)
        preview = BillPreview(
            order_id=order.id,
            customer_id=order.customer_id,
            items=tuple(bill_items_from(billable)),
            local_subtotal=items_subtotal(billable),
            calculation=calculation,
        )
        if preview.local_subtotal != calculation.subtotal:
            logger.info(
                "bill preview subtotal differs order=%s local=%s server=%s",
                order.id,
                preview.local_subtotal,
                calculation.subtotal,
            )
        return preview

    async def create_bill(self, preview: BillPreview, *, revalidate: bool = True) -> Bill:
        """Persist the bill from the previewed snapshot.

        With ``revalidate`` the order is refetched first and the commit is
        refused if its billable items changed since the preview.
        """
        async with self._mutation():
            if revalidate:
                self.cache.invalidate(order_key(preview.order_id))
                order = await self.cache.get(
                    order_key(preview.order_id), lambda: self.api.get_order(preview.order_id)
                )
                current = tuple(bill_items_from(get_billable_items(order.items)))
                if current != preview.items:
                    raise ValidationError("Order items changed since the preview; review the bill again")

            await self.api.create_bill(preview.order_id, list(preview.items), preview.customer_id)
            logger.info("bill created order=%s items=%s", preview.order_id, len(preview.items))
            self.cache.invalidate(bills_by_order_key(preview.order_id))
            bill = await self.load_bill_for_order(preview.order_id)
        if bill is None:
            raise ValidationError("Bill was created but could not be loaded")
        return bill

    async def apply_discounts(
        self, bill: Bill, discount_ids: Sequence[str], custom_discount_amount: Amount = None
    ) -> Bill:
        """Replace the bill's whole discount set; the server computes the amount."""
        if not discounts_editable(bill):
            raise ValidationError("Discounts cannot be changed once payment has started")
        custom = validate_discount_selection(discount_ids, custom_discount_amount)
        async with self._mutation():
            await self.api.update_bill_discounts(bill.id, list(discount_ids), custom)
            logger.info("bill=%s discounts=%s custom=%s", bill.id, list(discount_ids), custom)
            self.cache.invalidate(bill_key(bill.id))
            self.cache.invalidate(bills_by_order_key(bill.order_id))
            return await self.load_bill(bill.id)
