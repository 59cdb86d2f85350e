from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ..domain.models import StatusChangedEvent
from ..logging import get_logger
from .notifications import NOTIFICATION_KINDS, NotificationDispatcher


class EventDispatcher:
    """Delivers committed status changes to the notification collaborator.

    Callers only publish after their state change has been written. Delivery
    either runs inline or on a small thread pool; in both cases a failing
    dispatcher is logged and never reaches the caller.
    """

    def __init__(self, notifier: NotificationDispatcher, workers: int = 0) -> None:
        self.notifier = notifier
        self.logger = get_logger(__name__)
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") if workers > 0 else None
        )

    def publish(self, event: StatusChangedEvent) -> None:
        kind = NOTIFICATION_KINDS.get(event.new_status)
        if kind is None:
            return
        payload = {
            "order_id": event.order_id,
            "order_number": event.order_number,
            "old_status": event.old_status,
            "new_status": event.new_status,
            "changed_by": event.changed_by,
            "occurred_at": event.occurred_at.isoformat(),
        }
        if self._executor is not None:
            try:
                self._executor.submit(self._deliver, event.customer_id, kind, payload)
            except RuntimeError:
                # Executor already shut down; the status change itself is committed
                self.logger.exception(f"Could not queue notification {kind} for order {event.order_number}")
        else:
            self._deliver(event.customer_id, kind, payload)

    def _deliver(self, actor_id: str, kind: str, payload: dict) -> None:
        try:
            self.notifier.notify(actor_id, kind, payload)
        except Exception:
            self.logger.exception(f"Notification {kind} for order {payload['order_number']} failed")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
