"""Screen-scoped state for one table: draft, cache, and the mutation flows."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from tableside.billing import BillingService
from tableside.cache import QueryCache, order_key
from tableside.draft import OrderDraft
from tableside.enums import OrderType
from tableside.errors import ValidationError
from tableside.kitchen import SendResult, SendToKitchenFlow
from tableside.models import Bill, Order
from tableside.orders import OrderService
from tableside.payments import PaymentService
from tableside.persistence import SubmissionJournal

logger = logging.getLogger(__name__)


class TableSession:
    """Everything a waiter's screen for a table needs, created on entry and torn down on exit.

    Use as ``async with TableSession(api, table_id) as session: ...``.
    """

    def __init__(
        self,
        api: Any,
        table_id: str = "",
        order_id: str | None = None,
        *,
        journal: SubmissionJournal | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.table_id = table_id
        self.order_id = order_id
        self.journal = journal
        self.cache = QueryCache(clock=clock)
        self.draft = OrderDraft(table_id=table_id, order_id=order_id)
        self.kitchen = SendToKitchenFlow(api, journal=journal, clock=clock)
        self.orders = OrderService(api, self.cache)
        self.billing = BillingService(api, self.cache)
        self.payments = PaymentService(api, self.cache)
        self.is_open = False

    async def __aenter__(self) -> TableSession:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self.journal is not None:
            self.journal.bootstrap_schema()
        self.is_open = True
        logger.debug("session open table=%s order=%s", self.table_id, self.order_id)

    def close(self) -> None:
        self.cache.clear()
        self.draft.clear()
        self.kitchen.reset()
        self.is_open = False
        logger.debug("session closed table=%s order=%s", self.table_id, self.order_id)

    async def send_to_kitchen(self, order_type: OrderType = OrderType.DINE_IN) -> SendResult:
        result = await self.kitchen.send(self.draft, order_type)
        if result.success and result.order_id:
            self.order_id = result.order_id
            self.cache.invalidate(order_key(result.order_id))
        return result

    async def current_order(self) -> Order:
        if not self.order_id:
            raise ValidationError("No order has been sent for this table yet")
        return await self.orders.load_order(self.order_id)

    async def current_bill(self) -> Bill | None:
        if not self.order_id:
            return None
        return await self.billing.load_bill_for_order(self.order_id)
