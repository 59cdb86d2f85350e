from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PromoCode(BaseModel):
    """A promo code as configured in the admin console."""
    code: str = Field(description="Unique code, stored uppercase")
    discount: Decimal = Field(gt=0, description="Percent (0-100] or fixed amount")
    type: Literal["percent", "fixed"]
    min_order: Optional[Decimal] = Field(default=None, description="Minimum subtotal to apply")
    max_discount: Optional[Decimal] = Field(default=None, description="Cap for percent discounts")
    max_uses: Optional[int] = Field(default=None, ge=0)
    used_count: int = Field(default=0, ge=0)
    expiry_date: Optional[datetime] = None
    enabled: bool = True
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("expiry_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date < now
