"""Payments against a bill and remaining-balance math."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, assert_never

from tableside.cache import QueryCache, bill_key, bills_by_order_key
from tableside.enums import BillStatus, PaymentMethod
from tableside.errors import ApiClientError, InFlightError, ValidationError
from tableside.models import Bill, Payment
from tableside.money import ZERO, Amount, round_cents

logger = logging.getLogger(__name__)


def calculate_remaining_balance(bill: Bill) -> Decimal:
    """total - paid, never below zero."""
    return max(ZERO, round_cents(bill.total_amount - bill.paid_amount))


def is_fully_paid(bill: Bill) -> bool:
    return calculate_remaining_balance(bill) <= 0


def is_overpaid(bill: Bill) -> bool:
    return round_cents(bill.paid_amount) > round_cents(bill.total_amount)


def requires_transaction_id(method: PaymentMethod) -> bool:
    match method:
        case PaymentMethod.BANK_CARD:
            return True
        case PaymentMethod.CASH | PaymentMethod.GAPJYK_PAY | PaymentMethod.CUSTOMER_ACCOUNT:
            return False
        case _:
            assert_never(method)


def accepts_payments(bill: Bill) -> bool:
    match bill.status:
        case BillStatus.DRAFT | BillStatus.FINALIZED:
            return True
        case BillStatus.PAID | BillStatus.CANCELLED:
            return False
        case _:
            assert_never(bill.status)


def validate_payment(
    amount: Amount, method: PaymentMethod, remaining: Amount, transaction_id: str | None = None
) -> Decimal:
    """Return the amount rounded to cents, or raise ``ValidationError``."""
    value = round_cents(amount)
    if value <= 0:
        raise ValidationError("Please enter a valid amount")
    if value > round_cents(remaining):
        raise ValidationError("Amount cannot exceed remaining balance")
    if requires_transaction_id(method) and not (transaction_id or "").strip():
        raise ValidationError("Transaction ID is required for card payments")
    return value


@dataclass(frozen=True)
class PaymentOutcome:
    """A confirmed payment, the provisional balance, and the refetched bill.

    The provisional figures are derived from the bill the caller paid
    against; ``bill`` is the server's view after the refetch and is the
    one to trust. When that refetch fails the payment still stands:
    ``reconciled`` is False and ``bill`` is a provisional copy.
    """

    payment: Payment
    paid_amount: Decimal
    remaining_balance: Decimal
    is_fully_paid: bool
    bill: Bill
    reconciled: bool = True


class PaymentService:
    """Records payments. Never retries a payment on its own."""

    def __init__(self, api: Any, cache: QueryCache) -> None:
        self.api = api
        self.cache = cache
        self.in_flight = False

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        if self.in_flight:
            raise InFlightError("A payment is already being processed")
        self.in_flight = True
        try:
            yield
        finally:
            self.in_flight = False

    async def list_payments(self, bill_id: str) -> list[Payment]:
        return await self.api.get_payments(bill_id)

    async def submit_payment(
        self,
        bill: Bill,
        amount: Amount,
        method: PaymentMethod,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> PaymentOutcome:
        if not accepts_payments(bill):
            raise ValidationError(f"Bill is {bill.status.value} and cannot take payments")
        remaining = calculate_remaining_balance(bill)
        value = validate_payment(amount, method, remaining, transaction_id)
        transaction_id = (transaction_id or "").strip() or None

        previous_paid = bill.paid_amount
        previous_payments = list(bill.payments)
        async with self._mutation():
            payment = await self.api.create_payment(bill.id, value, method, transaction_id, notes or None)
            logger.info("payment bill=%s amount=%s method=%s", bill.id, value, method.value)

            paid = round_cents(previous_paid + value)
            provisional_remaining = max(ZERO, round_cents(bill.total_amount - paid))
            self.cache.invalidate(bills_by_order_key(bill.order_id))
            self.cache.invalidate(bill_key(bill.id))
            reconciled = True
            try:
                refreshed = await self.cache.get(bill_key(bill.id), lambda: self.api.get_bill(bill.id))
            except ApiClientError as exc:
                # The payment is recorded; only the follow-up read failed.
                logger.warning("bill=%s refetch after payment=%s failed: %r", bill.id, payment.id, exc)
                reconciled = False
                refreshed = replace(bill, paid_amount=paid, payments=[*previous_payments, payment])
        return PaymentOutcome(
            payment=payment,
            paid_amount=paid,
            remaining_balance=provisional_remaining,
            is_fully_paid=provisional_remaining <= 0,
            bill=refreshed,
            reconciled=reconciled,
        )

