from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class StatusChangedEvent(BaseModel):
    """Published after an order status change has been committed."""
    order_id: str
    order_number: str
    customer_id: str
    old_status: Optional[str] = Field(default=None, description="None for a newly placed order")
    new_status: str
    changed_by: str
    occurred_at: datetime


class LedgerEvent(BaseModel):
    """A monetary side effect of an order transition, applied to the customer's ledger."""
    kind: Literal["refund", "cashback", "loyalty"]
    customer_id: str
    order_id: str
    reference: str = Field(description="Idempotency key, e.g. refund:ORD-000001")
    description: str
    amount: Decimal = Decimal("0.00")
