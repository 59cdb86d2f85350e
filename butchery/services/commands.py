from __future__ import annotations

from typing import Callable

from ..domain.errors import InvalidRequest
from ..domain.models import (
    AdjustWalletCommand,
    AdvanceDeliveryCommand,
    AssignDriverCommand,
    CancelOrderCommand,
    Command,
    CompleteDeliveryCommand,
    ConfirmOrderCommand,
    RefundOrderCommand,
    TransitionOrderCommand,
    UpdateLocationCommand,
)
from ..domain.result import Result
from ..logging import get_logger
from .ledger import LedgerService
from .orders import OrderStatusMachine
from .tracking import DeliveryTrackingMachine


class CommandProcessor:
    """Routes validated commands from the outer surface to the state machines."""

    def __init__(self, orders: OrderStatusMachine, delivery: DeliveryTrackingMachine, ledger: LedgerService) -> None:
        self.orders = orders
        self.delivery = delivery
        self.ledger = ledger
        self.logger = get_logger(__name__)
        self._handlers: dict[type, Callable[..., Result]] = {
            ConfirmOrderCommand: lambda c: self.orders.confirm(c.order_id, c.actor),
            TransitionOrderCommand: lambda c: self.orders.transition(c.order_id, c.status, c.actor, c.notes),
            CancelOrderCommand: lambda c: self.orders.cancel(c.order_id, c.actor, c.reason),
            RefundOrderCommand: lambda c: self.orders.refund(c.order_id, c.actor, c.amount, c.reason),
            AssignDriverCommand: lambda c: self.delivery.assign_driver(c.order_id, c.driver, c.actor),
            AdvanceDeliveryCommand: lambda c: self.delivery.advance(c.tracking_id, c.actor, c.notes),
            CompleteDeliveryCommand: lambda c: self.delivery.complete(
                c.tracking_id, c.actor, c.notes, c.signature, c.photo
            ),
            UpdateLocationCommand: lambda c: self.delivery.update_location(
                c.tracking_id, c.latitude, c.longitude, c.actor
            ),
            AdjustWalletCommand: lambda c: self.ledger.adjust_by_admin(c.customer_id, c.amount, c.reason, c.actor),
        }

    def handle(self, command: Command) -> Result:
        handler = self._handlers.get(type(command))
        if handler is None:
            return Result.failure(InvalidRequest(f"Unsupported command {type(command).__name__}", field="command"))
        self.logger.debug(f"Handling {command.command} from {command.actor.id}")
        return handler(command)
