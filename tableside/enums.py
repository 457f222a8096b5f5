"""Status domains shared with the backend wire format."""

from __future__ import annotations

import enum


class OrderItemStatus(str, enum.Enum):
    PENDING = "Pending"
    SENT_TO_PREPARE = "SentToPrepare"
    PREPARING = "Preparing"
    READY = "Ready"
    SERVED = "Served"
    DECLINED = "Declined"
    CANCELED = "Canceled"


class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class OrderType(str, enum.Enum):
    DELIVERY = "Delivery"
    DINE_IN = "Dine-in"
    TO_GO = "To go"


class BillStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    BANK_CARD = "BankCard"
    GAPJYK_PAY = "GapjykPay"
    CUSTOMER_ACCOUNT = "CustomerAccount"


class ServiceFeeType(str, enum.Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"
