from __future__ import annotations

import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from pydantic import BaseModel, Field

from ..config import AppConfig, get_config
from ..data.repositories import Repositories
from ..domain.errors import IllegalTransition, InvalidRequest, NotFound, Unauthorized
from ..domain.models import Actor, Order, OrderItem, PaymentMethod, StatusHistoryEntry
from ..domain.result import Result
from ..domain.util import money, new_id, utc_now
from ..logging import get_logger
from .events import EventDispatcher
from .ledger import LedgerService, post_debit
from .locks import EntityLocks, ledger_key, order_key
from .orders import OrderStatusMachine, status_event
from .payments import PaymentGateway
from .promotions import PromoCodeValidator

CAPTURABLE = frozenset({"pending", "authorized", "failed"})


class LineItem(BaseModel):
    """A cart line as submitted at checkout."""
    product_id: str
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)


class OrderService:
    """Order placement and payment capture."""

    def __init__(
        self,
        repos: Repositories,
        machine: OrderStatusMachine,
        promos: PromoCodeValidator,
        ledger: LedgerService,
        dispatcher: EventDispatcher,
        gateway: PaymentGateway,
        locks: Optional[EntityLocks] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repos = repos
        self.machine = machine
        self.promos = promos
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.gateway = gateway
        self.locks = locks or EntityLocks()
        self.config = config or get_config()
        self.clock = clock
        self.logger = get_logger(__name__)
        self._in_flight: set[str] = set()
        self._in_flight_guard = threading.Lock()

    def quote(
        self,
        items: list[LineItem],
        promo_code: Optional[str] = None,
        delivery_fee: Optional[Decimal] = None,
    ) -> Result[dict[str, Decimal]]:
        """Price a cart the way place_order would, without writing anything."""
        if not items:
            return Result.failure(InvalidRequest("An order needs at least one item", field="items"))
        subtotal = money(sum((money(i.quantity * i.unit_price) for i in items), Decimal("0")))
        if subtotal < self.config.min_order_value:
            return Result.failure(
                InvalidRequest(f"Minimum order value is {self.config.min_order_value}", field="items")
            )
        discount = Decimal("0.00")
        if promo_code:
            checked = self.promos.check(promo_code, subtotal)
            if not checked.ok:
                return Result.failure(checked.error)
            discount = checked.value

        threshold = self.config.free_delivery_threshold
        if threshold is not None and subtotal >= threshold:
            delivery_fee = Decimal("0.00")
        elif delivery_fee is None:
            delivery_fee = money(self.config.default_delivery_fee)
        else:
            delivery_fee = money(delivery_fee)
        vat_amount = money((subtotal - discount) * self.config.vat_rate)
        total = money(subtotal - discount + delivery_fee + vat_amount)
        return Result.success(
            {
                "subtotal": subtotal,
                "discount": discount,
                "delivery_fee": delivery_fee,
                "vat_amount": vat_amount,
                "total": total,
            }
        )

    def place_order(
        self,
        customer_id: str,
        items: list[LineItem],
        payment_method: PaymentMethod,
        actor: Actor,
        promo_code: Optional[str] = None,
        delivery_fee: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> Result[Order]:
        if actor.role == "delivery" or (actor.role == "customer" and actor.id != customer_id):
            return Result.failure(Unauthorized("Orders are placed by the customer or back office", actor_id=actor.id))

        priced = self.quote(items, promo_code, delivery_fee)
        if not priced.ok:
            self.logger.warning(f"Order for {customer_id} rejected: {priced.error}")
            return Result.failure(priced.error)
        totals = priced.value

        now = self.clock()
        order = Order(
            id=new_id("order"),
            order_number=self.repos.orders.next_order_number(),
            customer_id=customer_id,
            payment_method=payment_method,
            items=[
                OrderItem(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                    total_price=money(i.quantity * i.unit_price),
                )
                for i in items
            ],
            promo_code=promo_code,
            vat_rate=self.config.vat_rate,
            notes=notes,
            status_history=[StatusHistoryEntry(status="pending", changed_at=now, changed_by=actor.id)],
            created_at=now,
            updated_at=now,
            **totals,
        )
        self.repos.orders.put(order)
        self.logger.info(f"Placed order {order.order_number} for {customer_id}, total {order.total}")
        self.dispatcher.publish(status_event(order, None, actor.id, now))
        return Result.success(order)

    def _payment_denied(self, order: Order, actor: Actor) -> Optional[Unauthorized]:
        if actor.is_back_office or (actor.role == "customer" and actor.id == order.customer_id):
            return None
        return Unauthorized("Only the customer or back office may pay for an order", actor_id=actor.id)

    @staticmethod
    def _not_capturable(order: Order) -> Optional[IllegalTransition]:
        if order.status in ("cancelled", "refunded") or order.payment_status not in CAPTURABLE:
            return IllegalTransition(
                f"Payment of {order.order_number} cannot be captured ({order.status}/{order.payment_status})",
                current=order.payment_status,
                requested="captured",
            )
        return None

    def capture_payment(self, order_id: str, actor: Actor) -> Result[Order]:
        """Capture a card or bank transfer payment through the gateway.

        The gateway is called without holding the order lock; a decline is
        recorded as payment_status=failed and still returned as a success.
        If the order stopped being capturable meanwhile, the answer is
        discarded and a successful capture is refunded.
        """
        order = self.repos.orders.get(order_id)
        if order is None:
            return Result.failure(NotFound(f"Order {order_id} not found", entity="order", key=order_id))
        denied = self._payment_denied(order, actor)
        if denied is not None:
            return Result.failure(denied)
        if order.payment_method not in ("card", "bank_transfer"):
            return Result.failure(
                InvalidRequest(f"{order.payment_method} orders are not captured through the gateway", field="payment_method")
            )
        blocked = self._not_capturable(order)
        if blocked is not None:
            return Result.failure(blocked)

        with self._in_flight_guard:
            if order_id in self._in_flight:
                return Result.failure(
                    IllegalTransition("A capture is already in progress", current=order.payment_status, requested="captured")
                )
            self._in_flight.add(order_id)
        try:
            try:
                captured = self.gateway.capture(order.id, order.total)
            except Exception:
                self.logger.exception(f"Gateway capture for {order.order_number} raised")
                captured = None

            succeeded = captured is not None and captured.success
            with self.locks.hold(order_key(order_id)):
                order = self.repos.orders.get(order_id)
                # The order may have been cancelled or paid while the gateway was busy
                blocked = self._not_capturable(order)
                if blocked is None:
                    if succeeded:
                        order.payment_status = "captured"
                        order.payment_reference = captured.transaction_id
                        self.logger.info(f"Captured {order.total} for order {order.order_number}")
                    else:
                        order.payment_status = "failed"
                        self.logger.warning(f"Payment for order {order.order_number} failed")
                    order.updated_at = self.clock()
                    self.repos.orders.put(order)

            if blocked is not None:
                self.logger.warning(f"Capture for {order.order_number} discarded: {blocked}")
                if succeeded:
                    self._reverse_capture(order_id, captured.transaction_id, order.total)
                return Result.failure(blocked)
            return Result.success(order)
        finally:
            with self._in_flight_guard:
                self._in_flight.discard(order_id)

    def _reverse_capture(self, order_id: str, transaction_id: Optional[str], amount: Decimal) -> None:
        """Refund a capture that landed on an order which can no longer take it."""
        try:
            reversed_ok = self.gateway.refund(transaction_id or order_id, amount, "Order no longer payable").success
        except Exception:
            self.logger.exception(f"Gateway refund of stray capture {transaction_id} raised")
            reversed_ok = False

        with self.locks.hold(order_key(order_id)):
            order = self.repos.orders.get(order_id)
            if order.payment_status in CAPTURABLE:
                # Nothing else recorded a payment, so the stray capture is this order's payment state
                order.payment_status = "refunded" if reversed_ok else "failed"
                order.payment_reference = transaction_id
                order.updated_at = self.clock()
                self.repos.orders.put(order)

        if reversed_ok:
            self.logger.info(f"Refunded stray capture {transaction_id} of {amount} for order {order.order_number}")
        else:
            self.logger.error(f"Stray capture {transaction_id} of {amount} for order {order.order_number} was not refunded")

    def pay_with_wallet(self, order_id: str, actor: Actor) -> Result[Order]:
        """Debit the customer's wallet and mark the order captured in one write."""
        snapshot = self.repos.orders.get(order_id)
        if snapshot is None:
            return Result.failure(NotFound(f"Order {order_id} not found", entity="order", key=order_id))
        denied = self._payment_denied(snapshot, actor)
        if denied is not None:
            return Result.failure(denied)

        with self.locks.hold(order_key(order_id), ledger_key(snapshot.customer_id)):
            order = self.repos.orders.get(order_id)
            blocked = self._not_capturable(order)
            if blocked is not None:
                return Result.failure(blocked)
            account = self.ledger.load_for_update(order.customer_id)
            now = self.clock()
            paid = post_debit(
                account,
                order.total,
                f"Payment for order #{order.order_number}",
                now,
                reference=order.order_number,
                created_by=actor.id,
            )
            if not paid.ok:
                self.logger.warning(f"Wallet payment for {order.order_number} rejected: {paid.error}")
                return Result.failure(paid.error)
            order.payment_method = "wallet"
            order.payment_status = "captured"
            order.payment_reference = paid.value.id
            order.updated_at = now
            self.repos.commit(order, account)
        self.logger.info(f"Order {order.order_number} paid from wallet ({order.total})")
        return Result.success(order)
