from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


def _matches(value, wanted: Optional[str | list[str]]) -> bool:
    if wanted is None:
        return True
    if isinstance(wanted, str):
        return value == wanted
    return value in wanted


class OrderFilters(BaseModel):
    """Filters for listing orders."""
    customer_id: Optional[str | list[str]] = Field(default=None, description="Customer filter (single id or list of ids)")
    status: Optional[str | list[str]] = Field(default=None, description="Status filter (single status or list of statuses)")
    payment_status: Optional[str | list[str]] = Field(default=None, description="Payment status filter")
    start_ts: Optional[datetime] = Field(default=None, description="Start timestamp for order creation range")
    end_ts: Optional[datetime] = Field(default=None, description="End timestamp for order creation range")

    def matches(self, order) -> bool:
        if not _matches(order.customer_id, self.customer_id):
            return False
        if not _matches(order.status, self.status):
            return False
        if not _matches(order.payment_status, self.payment_status):
            return False
        if self.start_ts and order.created_at < self.start_ts:
            return False
        if self.end_ts and order.created_at > self.end_ts:
            return False
        return True


class TrackingFilters(BaseModel):
    """Filters for listing delivery trackings."""
    order_id: Optional[str | list[str]] = Field(default=None, description="Order filter (single id or list of ids)")
    driver_id: Optional[str | list[str]] = Field(default=None, description="Driver filter (single id or list of ids)")
    status: Optional[str | list[str]] = Field(default=None, description="Tracking status filter")

    def matches(self, tracking) -> bool:
        return (
            _matches(tracking.order_id, self.order_id)
            and _matches(tracking.driver_id, self.driver_id)
            and _matches(tracking.status, self.status)
        )
