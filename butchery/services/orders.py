"""
Order status machine.

`transition()` is the only way an order's status changes after placement.
A transition is applied to a working copy under the order's lock and
committed in one write; its side effects (ledger credits, gateway refunds,
notifications) are collected in `Effects` and settled only after the commit,
outside the lock.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Literal, Optional

from pydantic import BaseModel

from ..config import AppConfig, get_config
from ..data.repositories import Repositories
from ..domain.errors import IllegalTransition, InvalidRequest, NotFound, PromoError, Unauthorized
from ..domain.models import (
    Actor,
    LedgerEvent,
    Order,
    StatusChangedEvent,
    StatusHistoryEntry,
)
from ..domain.result import Result
from ..domain.util import money, to_decimal, utc_now
from ..logging import get_logger
from .events import EventDispatcher
from .ledger import LedgerService
from .locks import EntityLocks, order_key, promo_key
from .payments import PaymentGateway
from .promotions import mark_used

LEGAL_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"out_for_delivery", "cancelled"}),
    "ready_for_pickup": frozenset({"out_for_delivery", "cancelled"}),
    "out_for_delivery": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}

# Reachable only through OrderStatusMachine.refund()
REFUND_TRANSITION = ("delivered", "refunded")

CUSTOMER_CANCELLABLE = frozenset({"pending", "confirmed"})


def is_legal(current: str, requested: str) -> bool:
    return requested in LEGAL_TRANSITIONS.get(current, frozenset())


def history_is_legal(order: Order) -> bool:
    """Every consecutive pair of the status history is a permitted transition."""
    history = order.status_history
    if not history or history[0].status != "pending":
        return False
    for prev, nxt in zip(history, history[1:]):
        if not (is_legal(prev.status, nxt.status) or (prev.status, nxt.status) == REFUND_TRANSITION):
            return False
    return history[-1].status == order.status


def status_event(order: Order, old_status: Optional[str], changed_by: str, now: datetime) -> StatusChangedEvent:
    return StatusChangedEvent(
        order_id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        old_status=old_status,
        new_status=order.status,
        changed_by=changed_by,
        occurred_at=now,
    )


@dataclass
class RefundInstruction:
    order_id: str
    order_number: str
    customer_id: str
    amount: Decimal
    reason: str
    payment_reference: Optional[str]
    to_wallet: bool
    outcome: Literal["refunded", "partially_refunded"]


@dataclass
class Effects:
    """Side effects collected while a transition is prepared, settled after commit."""
    events: list[StatusChangedEvent] = field(default_factory=list)
    ledger_events: list[LedgerEvent] = field(default_factory=list)
    refunds: list[RefundInstruction] = field(default_factory=list)


class OrderStatusMachine:
    def __init__(
        self,
        repos: Repositories,
        ledger: LedgerService,
        dispatcher: EventDispatcher,
        gateway: PaymentGateway,
        locks: Optional[EntityLocks] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repos = repos
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.gateway = gateway
        self.locks = locks or EntityLocks()
        self.config = config or get_config()
        self.clock = clock
        self.logger = get_logger(__name__)

    # ---------- public operations ----------

    def transition(self, order_id: str, requested: str, actor: Actor, notes: Optional[str] = None) -> Result[Order]:
        snapshot = self.repos.orders.get(order_id)
        if snapshot is None:
            return Result.failure(NotFound(f"Order {order_id} not found", entity="order", key=order_id))

        keys = [order_key(order_id)]
        # promo_code is fixed at placement, so it is safe to read before locking
        if requested == "confirmed" and snapshot.promo_code:
            keys.append(promo_key(snapshot.promo_code))

        effects = Effects()
        with self.locks.hold(*keys):
            order = self.repos.orders.get(order_id)
            denied = self._authorize(order, requested, actor)
            if denied is not None:
                self.logger.warning(f"{actor.id} may not move {order.order_number} to {requested}")
                return Result.failure(denied)
            prepared = self._guard_active_delivery(order, requested)
            if prepared is None:
                prepared = self.prepare(order, requested, actor.id, effects, notes)
            if not prepared.ok:
                self.logger.warning(f"Transition of {order.order_number} to {requested} rejected: {prepared.error}")
                return Result.failure(prepared.error)
            self.repos.commit(order, *prepared.value)
            self.logger.info(f"Order {order.order_number}: {effects.events[-1].old_status} -> {requested} by {actor.id}")

        self.settle(effects)
        return Result.success(order)

    def confirm(self, order_id: str, actor: Actor) -> Result[Order]:
        return self.transition(order_id, "confirmed", actor)

    def cancel(self, order_id: str, actor: Actor, reason: Optional[str] = None) -> Result[Order]:
        return self.transition(order_id, "cancelled", actor, notes=reason)

    def refund(
        self,
        order_id: str,
        actor: Actor,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
    ) -> Result[Order]:
        """Refund a delivered order and move it to the terminal `refunded` status."""
        if not actor.is_back_office:
            return Result.failure(Unauthorized("Only admin or staff may refund orders", actor_id=actor.id))

        effects = Effects()
        with self.locks.hold(order_key(order_id)):
            order = self.repos.orders.get(order_id)
            if order is None:
                return Result.failure(NotFound(f"Order {order_id} not found", entity="order", key=order_id))
            if order.status != REFUND_TRANSITION[0]:
                return Result.failure(
                    IllegalTransition(
                        f"Only delivered orders can be refunded, {order.order_number} is {order.status}",
                        current=order.status,
                        requested="refunded",
                    )
                )
            amount = money(to_decimal(amount)) if amount is not None else order.total
            if amount <= 0 or amount > order.total:
                return Result.failure(InvalidRequest(f"Refund amount must be in (0, {order.total}]", field="amount"))

            now = self.clock()
            old_status = order.status
            self._record_status(order, "refunded", actor.id, now, reason)
            if order.payment_status == "captured":
                outcome = "refunded" if amount == order.total else "partially_refunded"
                self._queue_refund(order, amount, reason or "Order refunded", outcome, effects)
            effects.events.append(status_event(order, old_status, actor.id, now))
            self.repos.orders.put(order)
            self.logger.info(f"Order {order.order_number} refunded ({amount}) by {actor.id}")

        self.settle(effects)
        return Result.success(order)

    # ---------- transition core (caller holds the order lock) ----------

    def prepare(
        self,
        order: Order,
        requested: str,
        changed_by: str,
        effects: Effects,
        notes: Optional[str] = None,
    ) -> Result[list[BaseModel]]:
        """Apply a transition to a working copy of `order`.

        Returns the other entities that must be committed together with the
        order. Nothing is written here; on failure `order` must be discarded.
        """
        current = order.status
        if not is_legal(current, requested):
            return Result.failure(
                IllegalTransition(
                    f"Order {order.order_number} cannot go from {current} to {requested}",
                    current=current,
                    requested=requested,
                )
            )

        now = self.clock()
        extra: list[BaseModel] = []

        if requested == "confirmed" and order.promo_code:
            promo = self.repos.promos.get(order.promo_code)
            if promo is None:
                return Result.failure(PromoError("Invalid promo code", reason="not_found", code=order.promo_code))
            used = mark_used(promo, now)
            if not used.ok:
                return Result.failure(used.error)
            extra.append(promo)

        self._record_status(order, requested, changed_by, now, notes)

        if requested == "delivered":
            order.delivered_at = now
            if order.payment_method == "cod" and order.payment_status == "pending":
                # Cash collected at the door
                order.payment_status = "captured"
            self._queue_delivery_rewards(order, effects)

        if requested == "cancelled" and order.payment_status == "captured":
            self._queue_refund(order, order.total - order.refunded_amount, notes or "Order cancelled", "refunded", effects)

        effects.events.append(status_event(order, current, changed_by, now))
        return Result.success(extra)

    def settle(self, effects: Effects) -> None:
        """Run the side effects of committed transitions. Never raises for collaborator faults."""
        for event in effects.ledger_events:
            self.ledger.apply_event(event)
        for refund in effects.refunds:
            self._settle_refund(refund)
        for event in effects.events:
            self.dispatcher.publish(event)

    # ---------- helpers ----------

    def _authorize(self, order: Order, requested: str, actor: Actor) -> Optional[Unauthorized]:
        if actor.is_back_office:
            return None
        if actor.role == "customer":
            if order.customer_id != actor.id:
                return Unauthorized("Customers may only change their own orders", actor_id=actor.id)
            if requested != "cancelled":
                return Unauthorized("Customers may only cancel orders", actor_id=actor.id)
            if order.status not in CUSTOMER_CANCELLABLE:
                return Unauthorized(f"Order can no longer be cancelled by the customer ({order.status})", actor_id=actor.id)
            return None
        # Drivers move orders through their delivery tracking only
        return Unauthorized(f"Role {actor.role} cannot change order status directly", actor_id=actor.id)

    def _guard_active_delivery(self, order: Order, requested: str) -> Optional[Result]:
        """An order with a tracking record is only delivered by completing that tracking."""
        if requested != "delivered":
            return None
        # Tracking creation and steps hold the order lock, so this read is stable
        tracking = self.repos.trackings.get_for_order(order.id)
        if tracking is None or tracking.status == "delivered":
            return None
        return Result.failure(
            IllegalTransition(
                f"Order {order.order_number} has a delivery in progress ({tracking.status}); complete it through its tracking",
                current=order.status,
                requested=requested,
            )
        )

    @staticmethod
    def _record_status(order: Order, status: str, changed_by: str, now: datetime, notes: Optional[str]) -> None:
        order.status_history.append(StatusHistoryEntry(status=status, changed_at=now, changed_by=changed_by, notes=notes))
        order.status = status
        order.updated_at = now

    def _queue_delivery_rewards(self, order: Order, effects: Effects) -> None:
        if self.config.cashback_enabled:
            cashback = money(order.total * self.config.cashback_rate)
            if cashback > 0:
                effects.ledger_events.append(
                    LedgerEvent(
                        kind="cashback",
                        customer_id=order.customer_id,
                        order_id=order.id,
                        reference=f"cashback:{order.order_number}",
                        description=f"Cashback from order #{order.order_number}",
                        amount=cashback,
                    )
                )
        if self.config.loyalty_enabled:
            effects.ledger_events.append(
                LedgerEvent(
                    kind="loyalty",
                    customer_id=order.customer_id,
                    order_id=order.id,
                    reference=f"loyalty:{order.order_number}",
                    description=f"Points for order #{order.order_number}",
                    amount=order.total,
                )
            )

    def _queue_refund(self, order: Order, amount: Decimal, reason: str, outcome: str, effects: Effects) -> None:
        if amount <= 0:
            return
        effects.refunds.append(
            RefundInstruction(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                amount=money(amount),
                reason=reason,
                payment_reference=order.payment_reference,
                to_wallet=order.payment_method == "wallet" or self.config.refund_destination == "wallet",
                outcome=outcome,
            )
        )

    def _settle_refund(self, refund: RefundInstruction) -> None:
        if refund.to_wallet:
            result = self.ledger.apply_event(
                LedgerEvent(
                    kind="refund",
                    customer_id=refund.customer_id,
                    order_id=refund.order_id,
                    reference=f"refund:{refund.order_number}",
                    description=f"Refund for order #{refund.order_number}",
                    amount=refund.amount,
                )
            )
            succeeded = result.ok
        else:
            try:
                succeeded = self.gateway.refund(
                    refund.payment_reference or refund.order_id, refund.amount, refund.reason
                ).success
            except Exception:
                self.logger.exception(f"Gateway refund for {refund.order_number} raised")
                succeeded = False

        with self.locks.hold(order_key(refund.order_id)):
            order = self.repos.orders.get(refund.order_id)
            if succeeded:
                order.payment_status = refund.outcome
                order.refunded_amount = money(order.refunded_amount + refund.amount)
            else:
                # Left for staff to retry by hand
                order.payment_status = "failed"
            order.updated_at = self.clock()
            self.repos.orders.put(order)

        if succeeded:
            self.logger.info(f"Refunded {refund.amount} for order {refund.order_number}")
        else:
            self.logger.error(f"Refund of {refund.amount} for order {refund.order_number} failed")
