"""Rendering helpers for draft lines, item statuses and bill summaries."""

from __future__ import annotations

from typing import assert_never

from rich.text import Text

from tableside.enums import OrderItemStatus, PaymentMethod
from tableside.item_states import status_label
from tableside.models import Bill, LocalOrderItem, OrderItem
from tableside.money import format_price
from tableside.payments import calculate_remaining_balance


def badge_style(status: OrderItemStatus) -> str:
    """Return a consistent badge style for item status tags."""
    match status:
        case OrderItemStatus.PENDING:
            return "bold #0b1f0f on #d9d9d9"
        case OrderItemStatus.SENT_TO_PREPARE | OrderItemStatus.PREPARING:
            return "bold #ffffff on #2f6db5"
        case OrderItemStatus.READY:
            return "bold #0b1f0f on #5fbf72"
        case OrderItemStatus.SERVED:
            return "bold #ffffff on #4a4a4a"
        case OrderItemStatus.DECLINED | OrderItemStatus.CANCELED:
            return "bold #ffffff on #b23a48"
        case _:
            assert_never(status)


def payment_method_label(method: PaymentMethod) -> str:
    match method:
        case PaymentMethod.CASH:
            return "Cash"
        case PaymentMethod.BANK_CARD:
            return "Bank card"
        case PaymentMethod.GAPJYK_PAY:
            return "Gapjyk Pay"
        case PaymentMethod.CUSTOMER_ACCOUNT:
            return "Customer account"
        case _:
            assert_never(method)


def format_status_tag(status: OrderItemStatus) -> Text:
    return Text(f" {status_label(status)} ", style=badge_style(status))


def format_draft_line(item: LocalOrderItem) -> Text:
    """Render a draft line as ``2x Burger  $23.00`` with notes and extras below."""
    text = Text()
    text.append(f"{item.quantity}x ", style="bold")
    text.append(item.menu_item.title)
    text.append(f"  {format_price(item.subtotal)}", style="cyan")
    for extra in item.extras:
        text.append(f"\n  + {extra.quantity}x {extra.title or extra.extra_id}", style="dim")
    if item.notes:
        text.append(f"\n  [{item.notes}]", style="white")
    return text


def format_order_item(item: OrderItem) -> Text:
    text = format_status_tag(item.status)
    text.append(f" {item.display_quantity}x {item.title}")
    text.append(f"  {format_price(item.subtotal)}", style="cyan")
    if item.cancel_reason or item.decline_reason:
        text.append(f"\n  {item.cancel_reason or item.decline_reason}", style="dim")
    return text


def format_bill_summary(bill: Bill) -> Text:
    """Render bill totals, one row per line, with the remaining balance last."""
    rows = [
        ("Subtotal", format_price(bill.subtotal)),
        ("Discount", f"-{format_price(bill.discount_amount)}"),
        ("Service fee", format_price(bill.service_fee_amount)),
        ("Total", format_price(bill.total_amount)),
        ("Paid", format_price(bill.paid_amount)),
        ("Remaining", format_price(calculate_remaining_balance(bill))),
    ]
    text = Text()
    for idx, (label, value) in enumerate(rows):
        if idx > 0:
            text.append("\n")
        style = "bold" if label in {"Total", "Remaining"} else ""
        text.append(f"{label:<12}{value:>12}", style=style)
    for payment in bill.payments:
        text.append(f"\n  {payment_method_label(payment.method)} {format_price(payment.amount)}", style="dim")
    return text
