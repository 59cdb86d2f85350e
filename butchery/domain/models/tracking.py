from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TrackingStatus = Literal["preparing", "ready", "picked_up", "in_transit", "nearby", "delivered"]

TRACKING_SEQUENCE: tuple[str, ...] = ("preparing", "ready", "picked_up", "in_transit", "nearby", "delivered")

# The driver app reports "on_the_way" for the in-transit leg
STATUS_ALIASES = {"on_the_way": "in_transit"}


def normalize_tracking_status(value: str) -> str:
    return STATUS_ALIASES.get(value, value)


class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    updated_at: Optional[datetime] = None


class TimelineEntry(BaseModel):
    status: TrackingStatus
    timestamp: datetime
    notes: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _alias(cls, value):
        return normalize_tracking_status(value) if isinstance(value, str) else value


class DeliveryProof(BaseModel):
    signature: Optional[str] = None
    photo: Optional[str] = None
    notes: Optional[str] = None


class DeliveryTracking(BaseModel):
    """Delivery progress of a single order, advanced by its assigned driver."""
    id: str
    order_id: str
    order_number: str
    status: TrackingStatus = "preparing"
    driver_id: Optional[str] = None
    current_location: Optional[Location] = None
    timeline: list[TimelineEntry] = Field(default_factory=list)
    proof: Optional[DeliveryProof] = None
    created_at: datetime
    updated_at: datetime
    delivered_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _alias(cls, value):
        return normalize_tracking_status(value) if isinstance(value, str) else value

    @property
    def position(self) -> int:
        return TRACKING_SEQUENCE.index(self.status)
