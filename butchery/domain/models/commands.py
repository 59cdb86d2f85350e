from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from .actors import Actor
from .orders import OrderStatus


class ConfirmOrderCommand(BaseModel):
    command: Literal["confirm_order"] = "confirm_order"
    order_id: str
    actor: Actor


class TransitionOrderCommand(BaseModel):
    command: Literal["transition_order"] = "transition_order"
    order_id: str
    status: OrderStatus
    actor: Actor
    notes: Optional[str] = None


class CancelOrderCommand(BaseModel):
    command: Literal["cancel_order"] = "cancel_order"
    order_id: str
    actor: Actor
    reason: Optional[str] = None


class RefundOrderCommand(BaseModel):
    command: Literal["refund_order"] = "refund_order"
    order_id: str
    actor: Actor
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: Optional[str] = None


class AssignDriverCommand(BaseModel):
    command: Literal["assign_driver"] = "assign_driver"
    order_id: str
    driver: Actor
    actor: Actor


class AdvanceDeliveryCommand(BaseModel):
    command: Literal["advance_delivery"] = "advance_delivery"
    tracking_id: str
    actor: Actor
    notes: Optional[str] = None


class CompleteDeliveryCommand(BaseModel):
    command: Literal["complete_delivery"] = "complete_delivery"
    tracking_id: str
    actor: Actor
    notes: Optional[str] = None
    signature: Optional[str] = None
    photo: Optional[str] = None


class UpdateLocationCommand(BaseModel):
    command: Literal["update_location"] = "update_location"
    tracking_id: str
    actor: Actor
    latitude: float
    longitude: float


class AdjustWalletCommand(BaseModel):
    command: Literal["adjust_wallet"] = "adjust_wallet"
    customer_id: str
    amount: Decimal
    reason: str
    actor: Actor


Command = Union[
    ConfirmOrderCommand,
    TransitionOrderCommand,
    CancelOrderCommand,
    RefundOrderCommand,
    AssignDriverCommand,
    AdvanceDeliveryCommand,
    CompleteDeliveryCommand,
    UpdateLocationCommand,
    AdjustWalletCommand,
]
