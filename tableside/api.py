"""HTTP client and endpoint calls for the restaurant backend."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from tableside.config import (
    API_BASE_URL,
    API_MAX_RETRIES,
    API_RETRY_DELAY_SECONDS,
    API_RETRYABLE_STATUS_CODES,
    API_TIMEOUT_SECONDS,
)
from tableside.enums import OrderItemStatus, OrderStatus, OrderType, PaymentMethod
from tableside.errors import ApiClientError
from tableside.models import Bill, BillCalculation, BillItem, Order, OrderItem, Payment, Wire
from tableside.money import format_currency

logger = logging.getLogger(__name__)


@dataclass
class SessionInfo:
    """Session and device identity sent with every authenticated request."""

    session_id: str
    device_id: str
    device_type: str = "mobile"
    device_platform: str = "android"
    device_name: str | None = None
    app_version: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "maestro-session-id": self.session_id,
            "x-device-id": self.device_id,
            "x-device-type": self.device_type,
            "x-device-platform": self.device_platform,
        }
        if self.device_name:
            headers["x-device-name"] = self.device_name
        if self.app_version:
            headers["x-app-version"] = self.app_version
        return headers


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or "An error occurred"


def _status_code(status: int) -> str:
    if 400 <= status < 500:
        return "CLIENT_ERROR"
    if status >= 500:
        return "SERVER_ERROR"
    return "UNKNOWN_ERROR"


class ApiClient:
    """Thin async wrapper around ``httpx.AsyncClient``.

    Reads are retried with exponential backoff on network failures and
    retryable status codes. Writes are sent once; a failed write is
    reported to the caller, who decides whether the user retries.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        timeout: float = API_TIMEOUT_SECONDS,
        max_retries: int = API_MAX_RETRIES,
        retry_delay: float = API_RETRY_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session_info: SessionInfo | None = None
        self.on_unauthorized: Callable[[], None] | None = None
        self.on_forbidden: Callable[[str], None] | None = None
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", url, params=params)

    async def post(self, url: str, data: Any = None) -> Any:
        return await self._request("POST", url, json=data)

    async def put(self, url: str, data: Any = None) -> Any:
        return await self._request("PUT", url, json=data)

    async def patch(self, url: str, data: Any = None) -> Any:
        return await self._request("PATCH", url, json=data)

    async def delete(self, url: str) -> Any:
        return await self._request("DELETE", url)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        attempts = self.max_retries if method == "GET" else 0
        retry = 0
        while True:
            try:
                return await self._send(method, url, **kwargs)
            except ApiClientError as exc:
                if not exc.is_retryable or retry >= attempts:
                    raise
                delay = self.retry_delay * 2**retry + random.uniform(0, 0.1)
                logger.info("retrying %s %s in %.2fs after %s", method, url, delay, exc.code)
                await asyncio.sleep(delay)
                retry += 1

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = self.session_info.headers() if self.session_info else {}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise ApiClientError(str(exc) or "Request timed out", 0, "TIMEOUT", True) from exc
        except httpx.TransportError as exc:
            raise ApiClientError(str(exc) or "Network error", 0, "NETWORK_ERROR", True) from exc

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        status = response.status_code
        message = _error_message(response)
        logger.warning("%s %s failed status=%s message=%s", method, url, status, message)
        if status == 401:
            self.session_info = None
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise ApiClientError(message, 401, "UNAUTHORIZED")
        if status == 403:
            if self.on_forbidden is not None:
                self.on_forbidden(message)
            raise ApiClientError(message, 403, "FORBIDDEN")
        raise ApiClientError(message, status, _status_code(status), status in API_RETRYABLE_STATUS_CODES)


def _unwrap_list(body: Any) -> list[Wire]:
    if isinstance(body, dict):
        body = body.get("data", [])
    return list(body or [])


def _compact(payload: Wire) -> Wire:
    return {key: value for key, value in payload.items() if value is not None}


class BackendApi:
    """Endpoint calls the order and billing core depends on."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def create_order(
        self,
        items: Sequence[Wire],
        *,
        order_type: OrderType = OrderType.DINE_IN,
        table_id: str | None = None,
        customer_id: str | None = None,
        notes: str | None = None,
    ) -> Order:
        payload = _compact(
            {
                "orderType": order_type.value,
                "tableId": table_id,
                "customerId": customer_id,
                "notes": notes or None,
                "items": list(items),
            }
        )
        return Order.from_wire(await self.client.post("/order", payload))

    async def add_order_items(self, order_id: str, items: Sequence[Wire]) -> list[OrderItem]:
        body = await self.client.post("/order-item/batch", {"orderId": order_id, "items": list(items)})
        return [OrderItem.from_wire(item) for item in _unwrap_list(body)]

    async def get_order(self, order_id: str) -> Order:
        return Order.from_wire(await self.client.get(f"/order/{order_id}"))

    async def update_order(
        self,
        order_id: str,
        *,
        order_status: OrderStatus | None = None,
        table_id: str | None = None,
        customer_id: str | None = None,
        notes: str | None = None,
        cancel_reason: str | None = None,
    ) -> Order:
        payload = _compact(
            {
                "orderStatus": order_status.value if order_status else None,
                "tableId": table_id,
                "customerId": customer_id,
                "notes": notes,
                "cancelReason": cancel_reason,
            }
        )
        return Order.from_wire(await self.client.put(f"/order/{order_id}", payload))

    async def batch_update_order_item_status(
        self,
        ids: Sequence[str],
        status: OrderItemStatus,
        *,
        cancel_reason: str | None = None,
        cancel_reason_id: str | None = None,
        decline_reason: str | None = None,
        decline_reason_id: str | None = None,
    ) -> list[OrderItem]:
        payload = _compact(
            {
                "ids": list(ids),
                "status": status.value,
                "cancelReason": cancel_reason,
                "cancelReasonId": cancel_reason_id,
                "declineReason": decline_reason,
                "declineReasonId": decline_reason_id,
            }
        )
        body = await self.client.patch("/order-item/batch/status", payload)
        return [OrderItem.from_wire(item) for item in _unwrap_list(body)]

    async def calculate_bill(
        self,
        order_id: str,
        discount_ids: Sequence[str] | None = None,
        custom_discount_amount: Decimal | None = None,
    ) -> BillCalculation:
        payload = _compact(
            {
                "orderId": order_id,
                "discountIds": list(discount_ids) if discount_ids else None,
                "customDiscountAmount": (
                    format_currency(custom_discount_amount) if custom_discount_amount is not None else None
                ),
            }
        )
        return BillCalculation.from_wire(await self.client.post("/bill/calculate", payload))

    async def create_bill(self, order_id: str, items: Sequence[BillItem], customer_id: str | None = None) -> Bill:
        payload = _compact(
            {"orderId": order_id, "customerId": customer_id, "items": [item.to_wire() for item in items]}
        )
        return Bill.from_wire(await self.client.post("/bill", payload))

    async def get_bill(self, bill_id: str) -> Bill:
        return Bill.from_wire(await self.client.get(f"/bill/{bill_id}"))

    async def get_bills_for_order(self, order_id: str) -> list[Bill]:
        body = await self.client.get("/bill", params={"orderId": order_id})
        return [Bill.from_wire(bill) for bill in _unwrap_list(body)]

    async def update_bill_discounts(
        self, bill_id: str, discount_ids: Sequence[str], custom_discount_amount: Decimal | None = None
    ) -> Bill:
        payload = _compact(
            {
                "discountIds": list(discount_ids),
                "customDiscountAmount": (
                    format_currency(custom_discount_amount) if custom_discount_amount is not None else None
                ),
            }
        )
        return Bill.from_wire(await self.client.put(f"/bill/{bill_id}/discounts", payload))

    async def create_payment(
        self,
        bill_id: str,
        amount: Decimal,
        method: PaymentMethod,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> Payment:
        payload = _compact(
            {
                "billId": bill_id,
                "amount": format_currency(amount),
                "method": method.value,
                "transactionId": transaction_id,
                "notes": notes,
            }
        )
        return Payment.from_wire(await self.client.post("/payment", payload))

    async def get_payments(self, bill_id: str) -> list[Payment]:
        body = await self.client.get("/payment", params={"billId": bill_id})
        return [Payment.from_wire(payment) for payment in _unwrap_list(body)]
