from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..util import money

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "ready_for_pickup",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "refunded",
]
PaymentStatus = Literal["pending", "authorized", "captured", "failed", "refunded", "partially_refunded"]
PaymentMethod = Literal["card", "cod", "bank_transfer", "wallet"]


class OrderItem(BaseModel):
    """A priced order line. Quantity may be fractional for weight-based cuts."""
    product_id: str = Field(description="Catalogue product identifier")
    quantity: Decimal = Field(gt=0, description="Units or kilograms ordered")
    unit_price: Decimal = Field(ge=0, description="Price per unit at order time")
    total_price: Decimal = Field(ge=0, description="quantity * unit_price, rounded to 2 decimals")


class StatusHistoryEntry(BaseModel):
    """One append-only entry of an order's status history."""
    status: OrderStatus
    changed_at: datetime
    changed_by: str
    notes: Optional[str] = None


class Order(BaseModel):
    """A customer order and its payment state."""
    id: str = Field(description="Unique order identifier")
    order_number: str = Field(description="Human readable number, e.g. ORD-000042")
    customer_id: str = Field(description="Customer who placed the order")
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: Decimal
    discount: Decimal = Decimal("0.00")
    promo_code: Optional[str] = None
    delivery_fee: Decimal = Decimal("0.00")
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    refunded_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    delivered_at: Optional[datetime] = None

    @field_validator("promo_code")
    @classmethod
    def _normalize_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else None

    def totals_consistent(self) -> bool:
        """total == subtotal - discount + delivery_fee + vat_amount, to the cent."""
        expected = money(self.subtotal - self.discount + self.delivery_fee + self.vat_amount)
        return money(self.total) == expected
