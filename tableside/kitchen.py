"""Send to Kitchen: turn a draft into a persisted order in one request."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from tableside.config import SEND_COOLDOWN_SECONDS
from tableside.draft import OrderDraft
from tableside.enums import OrderType
from tableside.errors import ApiClientError, InFlightError, SubmissionLockedError, ValidationError
from tableside.models import LocalOrderItem, Order, OrderItem, Wire
from tableside.persistence import SubmissionJournal

logger = logging.getLogger(__name__)


class SendState(str, enum.Enum):
    CONFIRM = "confirm"
    SENDING = "sending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class SubmissionLock:
    """Post-success lockout, independent of any UI timer."""

    unlock_at: float | None = None

    def locked(self, now: float) -> bool:
        return self.unlock_at is not None and now < self.unlock_at

    def remaining(self, now: float) -> float:
        if self.unlock_at is None or now >= self.unlock_at:
            return 0.0
        return self.unlock_at - now

    def lock(self, now: float, seconds: float) -> None:
        self.unlock_at = now + seconds


@dataclass(frozen=True)
class SubmissionRequest:
    """The exact batch sent for a draft; a retry re-sends this unchanged."""

    table_id: str
    order_id: str | None
    order_type: OrderType
    notes: str
    items: tuple[Wire, ...]

    def to_payload(self) -> dict[str, Any]:
        return {
            "tableId": self.table_id,
            "orderId": self.order_id,
            "orderType": self.order_type.value,
            "notes": self.notes,
            "items": list(self.items),
        }


@dataclass(frozen=True)
class SendResult:
    success: bool
    order_id: str | None = None
    order: Order | None = None
    order_items: list[OrderItem] = field(default_factory=list)
    error: str | None = None


def to_submission_item(item: LocalOrderItem) -> Wire:
    record: Wire = {"menuItemId": item.menu_item_id, "quantity": item.quantity}
    if item.notes:
        record["notes"] = item.notes
    if item.extras:
        record["extras"] = [extra.to_wire() for extra in item.extras]
    return record


def build_submission(draft: OrderDraft, order_type: OrderType = OrderType.DINE_IN) -> SubmissionRequest:
    """Validate the draft and freeze it into a submission request."""
    if not draft.has_items:
        raise ValidationError("No items to send")
    if not draft.table_id and not draft.order_id:
        raise ValidationError("Select a table before sending to the kitchen")
    return SubmissionRequest(
        table_id=draft.table_id,
        order_id=draft.order_id,
        order_type=order_type,
        notes=draft.notes,
        items=tuple(to_submission_item(item) for item in draft.items),
    )


def get_error_message(error: BaseException) -> str:
    """User-facing text for a failed submission."""
    if isinstance(error, ApiClientError):
        if error.code == "NETWORK_ERROR":
            return "Unable to connect to server. Please check your connection and try again."
        if error.code == "TIMEOUT":
            return "Request timed out. Please try again."
        return error.message
    return "An unexpected error occurred. Please try again."


class SendToKitchenFlow:
    """confirm -> sending -> success | error, with error -> sending on retry.

    A failed send leaves the draft untouched. A successful send clears the
    draft and locks further submits for a short cool-down so a double tap
    behind the success message cannot create a second order.
    """

    def __init__(
        self,
        api: Any,
        *,
        journal: SubmissionJournal | None = None,
        cooldown_seconds: float = SEND_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.journal = journal
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.state = SendState.CONFIRM
        self.error: str | None = None
        self.last_sent_order_id: str | None = None
        self.lock = SubmissionLock()
        self._pending: SubmissionRequest | None = None
        self._pending_draft: OrderDraft | None = None
        self._pending_revision: int | None = None
        self._submission_id: str | None = None

    @property
    def is_sending(self) -> bool:
        return self.state is SendState.SENDING

    @property
    def is_locked(self) -> bool:
        return self.lock.locked(self._clock())

    def can_submit(self, draft: OrderDraft) -> bool:
        return draft.has_items and not self.is_sending and not self.is_locked

    async def send(self, draft: OrderDraft, order_type: OrderType = OrderType.DINE_IN) -> SendResult:
        self._check_ready()
        request = build_submission(draft, order_type)
        self._pending = request
        self._pending_draft = draft
        self._pending_revision = draft.revision
        self._submission_id = None
        if self.journal is not None:
            record = self.journal.record_submission(request.table_id, request.order_id, request.to_payload())
            self._submission_id = record.submission_id
        return await self._submit(request)

    async def retry(self) -> SendResult | None:
        """Re-issue the identical payload of the last failed send."""
        if self.state is not SendState.ERROR or self._pending is None:
            return None
        self._check_ready()
        if self._pending_draft is not None and self._pending_draft.revision != self._pending_revision:
            raise ValidationError("The order changed after the failed send; review it and send again")
        if self.journal is not None and self._submission_id is not None:
            self.journal.mark_retry(self._submission_id)
        return await self._submit(self._pending)

    def reset(self) -> None:
        """Back to confirm. The cool-down lock keeps running."""
        self.state = SendState.CONFIRM
        self.error = None
        self.last_sent_order_id = None
        self._pending = None
        self._pending_draft = None
        self._pending_revision = None
        self._submission_id = None

    def clear_error(self) -> None:
        self.error = None

    def _check_ready(self) -> None:
        if self.is_sending:
            raise InFlightError("Send to Kitchen is already in progress")
        now = self._clock()
        if self.lock.locked(now):
            raise SubmissionLockedError(self.lock.remaining(now))

    async def _submit(self, request: SubmissionRequest) -> SendResult:
        self.state = SendState.SENDING
        self.error = None
        logger.info(
            "send_to_kitchen table=%s order=%s items=%s", request.table_id, request.order_id, len(request.items)
        )
        order: Order | None = None
        try:
            if request.order_id:
                order_id = request.order_id
                order_items = await self.api.add_order_items(order_id, request.items)
            else:
                order = await self.api.create_order(
                    request.items,
                    order_type=request.order_type,
                    table_id=request.table_id or None,
                    notes=request.notes or None,
                )
                order_id = order.id
                order_items = order.items
        except ApiClientError as exc:
            logger.warning("send_to_kitchen failed table=%s error=%r", request.table_id, exc)
            return self._fail(exc)
        except Exception as exc:
            # Unreadable response or similar; the flow still has to leave SENDING.
            logger.exception("send_to_kitchen failed table=%s", request.table_id)
            return self._fail(exc)

        self.state = SendState.SUCCESS
        self.last_sent_order_id = order_id
        self.lock.lock(self._clock(), self.cooldown_seconds)
        if self._pending_draft is not None:
            self._pending_draft.clear()
        if self.journal is not None and self._submission_id is not None:
            self.journal.mark_sent(self._submission_id, order_id)
        self._pending = None
        self._pending_draft = None
        self._pending_revision = None
        logger.info("send_to_kitchen sent table=%s order=%s", request.table_id, order_id)
        return SendResult(success=True, order_id=order_id, order=order, order_items=list(order_items))

    def _fail(self, exc: Exception) -> SendResult:
        self.state = SendState.ERROR
        self.error = get_error_message(exc)
        if self.journal is not None and self._submission_id is not None:
            self.journal.mark_failed(self._submission_id, self.error)
        return SendResult(success=False, error=self.error)
