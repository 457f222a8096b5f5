"""Domain models for tableside."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from tableside.enums import BillStatus, OrderItemStatus, OrderStatus, OrderType, PaymentMethod, ServiceFeeType
from tableside.money import ZERO, format_currency, parse_decimal, parse_quantity

Wire = dict[str, Any]


def translated(value: object, default: str = "") -> str:
    """Pick the English text out of a ``{en, ru, tm}`` translation object."""
    if isinstance(value, dict):
        for lang in ("en", "ru", "tm"):
            text = value.get(lang)
            if text:
                return str(text)
        return default
    if value:
        return str(value)
    return default


def _optional_enum(enum_type: type, value: object):  # type: ignore[no-untyped-def]
    if value is None or value == "":
        return None
    return enum_type(value)


@dataclass(frozen=True)
class MenuItem:
    """Menu item snapshot taken when it is added to a draft."""

    id: str
    title: str
    price: Decimal

    @classmethod
    def from_wire(cls, data: Wire) -> MenuItem:
        return cls(id=str(data["id"]), title=translated(data.get("title"), "Item"), price=parse_decimal(data.get("price")))


@dataclass(frozen=True)
class Extra:
    """An add-on from the extras catalog."""

    id: str
    title: str
    price: Decimal

    @classmethod
    def from_wire(cls, data: Wire) -> Extra:
        return cls(
            id=str(data["id"]),
            title=translated(data.get("title"), "Extra"),
            price=parse_decimal(data.get("actualPrice", data.get("price"))),
        )


@dataclass(frozen=True)
class OrderItemExtra:
    """A selected extra with its own quantity and an optional price snapshot."""

    extra_id: str
    quantity: int = 1
    title: str | None = None
    price: Decimal | None = None

    @classmethod
    def from_wire(cls, data: Wire) -> OrderItemExtra:
        price = data.get("price")
        return cls(
            extra_id=str(data["extraId"]),
            quantity=parse_quantity(data.get("quantity"), default=1),
            title=translated(data.get("title")) or None,
            price=parse_decimal(price) if price is not None else None,
        )

    def to_wire(self) -> Wire:
        return {"extraId": self.extra_id, "quantity": self.quantity}


@dataclass
class LocalOrderItem:
    """A draft line. ``unit_price`` is frozen at add time."""

    id: str
    menu_item_id: str
    menu_item: MenuItem
    quantity: int
    notes: str
    extras: list[OrderItemExtra]
    unit_price: Decimal
    subtotal: Decimal


@dataclass
class OrderItem:
    """A server-persisted order item."""

    id: str
    order_id: str
    menu_item_id: str | None
    quantity: str
    status: OrderItemStatus
    title: str = "Item"
    item_price: Decimal = ZERO
    subtotal: Decimal = ZERO
    notes: str = ""
    extras: list[OrderItemExtra] = field(default_factory=list)
    decline_reason: str | None = None
    cancel_reason: str | None = None
    created_at: str | None = None

    @property
    def display_quantity(self) -> int:
        return parse_quantity(self.quantity, default=0)

    @property
    def billable_quantity(self) -> int:
        return parse_quantity(self.quantity, default=1) or 1

    @classmethod
    def from_wire(cls, data: Wire) -> OrderItem:
        menu_item_id = data.get("menuItemId")
        return cls(
            id=str(data["id"]),
            order_id=str(data.get("orderId", "")),
            menu_item_id=str(menu_item_id) if menu_item_id is not None else None,
            quantity=str(data.get("quantity", "")),
            status=OrderItemStatus(data["status"]),
            title=translated(data.get("itemTitle"), "Item"),
            item_price=parse_decimal(data.get("itemPrice")),
            subtotal=parse_decimal(data.get("subtotal")),
            notes=data.get("notes") or "",
            extras=[OrderItemExtra.from_wire(extra) for extra in data.get("extras") or []],
            decline_reason=data.get("declineReason"),
            cancel_reason=data.get("cancelReason"),
            created_at=data.get("createdAt"),
        )


@dataclass
class Order:
    """A persisted order with its items."""

    id: str
    order_type: OrderType
    order_status: OrderStatus
    order_code: str = ""
    order_number: int | None = None
    table_id: str | None = None
    customer_id: str | None = None
    total_amount: Decimal = ZERO
    service_fee_type: ServiceFeeType | None = None
    service_fee_percent: Decimal | None = None
    service_fee_amount: Decimal | None = None
    notes: str = ""
    cancel_reason: str | None = None
    items: list[OrderItem] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.order_status in (OrderStatus.PENDING, OrderStatus.IN_PROGRESS)

    @classmethod
    def from_wire(cls, data: Wire) -> Order:
        percent = data.get("serviceFeePercent")
        fee_amount = data.get("serviceFeeAmount")
        order_number = data.get("orderNumber")
        return cls(
            id=str(data["id"]),
            order_type=OrderType(data.get("orderType", OrderType.DINE_IN.value)),
            order_status=OrderStatus(data.get("orderStatus", OrderStatus.PENDING.value)),
            order_code=data.get("orderCode") or "",
            order_number=int(order_number) if order_number is not None else None,
            table_id=data.get("tableId"),
            customer_id=data.get("customerId"),
            total_amount=parse_decimal(data.get("totalAmount")),
            service_fee_type=_optional_enum(ServiceFeeType, data.get("serviceFeeType")),
            service_fee_percent=parse_decimal(percent) if percent is not None else None,
            service_fee_amount=parse_decimal(fee_amount) if fee_amount is not None else None,
            notes=data.get("notes") or "",
            cancel_reason=data.get("cancelReason"),
            items=[OrderItem.from_wire(item) for item in data.get("orderItems") or []],
        )


@dataclass(frozen=True)
class BillItem:
    """One line of the item snapshot a bill is created from."""

    order_item_id: str
    quantity: int
    price: Decimal

    def to_wire(self) -> Wire:
        return {"orderItemId": self.order_item_id, "quantity": self.quantity, "price": format_currency(self.price)}


@dataclass(frozen=True)
class BillDiscount:
    id: str
    discount_id: str
    discount_amount: Decimal
    title: str = ""

    @classmethod
    def from_wire(cls, data: Wire) -> BillDiscount:
        return cls(
            id=str(data.get("id", "")),
            discount_id=str(data["discountId"]),
            discount_amount=parse_decimal(data.get("discountAmount")),
            title=translated(data.get("discountTitle")),
        )


@dataclass(frozen=True)
class Payment:
    """An immutable ledger entry against a bill."""

    id: str
    bill_id: str
    amount: Decimal
    method: PaymentMethod
    transaction_id: str | None = None
    created_at: str | None = None

    @classmethod
    def from_wire(cls, data: Wire) -> Payment:
        return cls(
            id=str(data["id"]),
            bill_id=str(data.get("billId", "")),
            amount=parse_decimal(data.get("amount")),
            method=PaymentMethod(data.get("paymentMethod", data.get("method"))),
            transaction_id=data.get("transactionId") or None,
            created_at=data.get("createdAt"),
        )


@dataclass
class Bill:
    """A bill as reported by the server."""

    id: str
    order_id: str
    subtotal: Decimal
    discount_amount: Decimal
    service_fee_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    status: BillStatus = BillStatus.DRAFT
    customer_id: str | None = None
    discounts: list[BillDiscount] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)

    @property
    def discount_ids(self) -> list[str]:
        return [discount.discount_id for discount in self.discounts]

    @classmethod
    def from_wire(cls, data: Wire) -> Bill:
        return cls(
            id=str(data["id"]),
            order_id=str(data.get("orderId", "")),
            subtotal=parse_decimal(data.get("subtotal")),
            discount_amount=parse_decimal(data.get("discountAmount")),
            service_fee_amount=parse_decimal(data.get("serviceFeeAmount")),
            total_amount=parse_decimal(data.get("totalAmount")),
            paid_amount=parse_decimal(data.get("paidAmount")),
            status=_optional_enum(BillStatus, data.get("status")) or BillStatus.DRAFT,
            customer_id=data.get("customerId"),
            discounts=[BillDiscount.from_wire(d) for d in data.get("discounts") or []],
            payments=[Payment.from_wire(p) for p in data.get("payments") or []],
        )


@dataclass(frozen=True)
class BillCalculation:
    """Non-committing server preview of a bill's amounts."""

    subtotal: Decimal
    discount_amount: Decimal
    service_fee_amount: Decimal
    total_amount: Decimal

    @classmethod
    def from_wire(cls, data: Wire) -> BillCalculation:
        return cls(
            subtotal=parse_decimal(data.get("subtotal")),
            discount_amount=parse_decimal(data.get("discountAmount")),
            service_fee_amount=parse_decimal(data.get("serviceFeeAmount")),
            total_amount=parse_decimal(data.get("totalAmount")),
        )
