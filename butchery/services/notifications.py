from __future__ import annotations

import threading
from typing import Any, Optional, Protocol

from ..logging import get_logger

# Order status -> notification kind. Statuses not listed are not announced.
NOTIFICATION_KINDS: dict[str, str] = {
    "pending": "order_placed",
    "confirmed": "order_confirmed",
    "processing": "order_processing",
    "ready_for_pickup": "order_ready",
    "out_for_delivery": "order_shipped",
    "delivered": "order_delivered",
    "cancelled": "order_cancelled",
    "refunded": "order_refunded",
}

MESSAGES: dict[str, str] = {
    "order_placed": "We received your order {order_number}.",
    "order_confirmed": "Your order {order_number} has been confirmed.",
    "order_processing": "Your order {order_number} is being prepared.",
    "order_ready": "Your order {order_number} is ready.",
    "order_shipped": "Your order {order_number} is on its way.",
    "order_delivered": "Your order {order_number} has been delivered. Enjoy!",
    "order_cancelled": "Your order {order_number} has been cancelled.",
    "order_refunded": "Your order {order_number} has been refunded.",
}


def render_message(kind: str, payload: dict[str, Any]) -> str:
    template = MESSAGES.get(kind, "Update on order {order_number}.")
    return template.format(order_number=payload.get("order_number", ""))


class NotificationDispatcher(Protocol):
    """Fire-and-forget, at-least-once delivery of user-facing notifications."""

    def notify(self, actor_id: str, kind: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotificationDispatcher:
    """Writes notifications to the application log instead of SMS/e-mail/push."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)

    def notify(self, actor_id: str, kind: str, payload: dict[str, Any]) -> None:
        self.logger.info(f"Notify {actor_id} [{kind}]: {render_message(kind, payload)}")


class RecordingNotificationDispatcher:
    """Keeps every notification in memory; used by tests and the seed script."""

    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.fail_with = fail_with
        self.sent: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def notify(self, actor_id: str, kind: str, payload: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.sent.append({"actor_id": actor_id, "kind": kind, "payload": payload})

    def kinds(self) -> list[str]:
        with self._lock:
            return [n["kind"] for n in self.sent]
