from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..data.repositories import Repositories
from ..domain.errors import PromoError
from ..domain.models import PromoCode
from ..domain.result import Result
from ..domain.util import money, to_decimal, utc_now
from ..logging import get_logger
from .locks import EntityLocks, promo_key


def discount_for(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """Discount a promo grants on a subtotal, never more than the subtotal."""
    subtotal = to_decimal(subtotal)
    if promo.type == "percent":
        discount = subtotal * promo.discount / Decimal(100)
        if promo.max_discount is not None:
            discount = min(discount, promo.max_discount)
    else:
        discount = promo.discount
    return money(min(discount, subtotal))


def _usage_error(promo: PromoCode, now: datetime) -> Optional[PromoError]:
    if not promo.enabled:
        return PromoError("Promo code is disabled", reason="disabled", code=promo.code)
    if promo.is_expired(now):
        return PromoError("Promo code has expired", reason="expired", code=promo.code)
    if promo.max_uses is not None and promo.used_count >= promo.max_uses:
        return PromoError("Promo code usage limit reached", reason="usage_exhausted", code=promo.code)
    return None


def mark_used(promo: PromoCode, now: datetime) -> Result[PromoCode]:
    """Count one use of a promo held under its lock; refuses to pass max_uses."""
    error = _usage_error(promo, now)
    if error is not None:
        return Result.failure(error)
    promo.used_count += 1
    return Result.success(promo)


class PromoCodeValidator:
    """Checks promo codes against an order subtotal and counts their use."""

    def __init__(
        self,
        repos: Repositories,
        locks: Optional[EntityLocks] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repos = repos
        self.locks = locks or EntityLocks()
        self.clock = clock
        self.logger = get_logger(__name__)

    @staticmethod
    def validate(promo: Optional[PromoCode], subtotal: Decimal, now: datetime) -> Result[Decimal]:
        """Pure check; returns the discount the promo grants on `subtotal`."""
        if promo is None:
            return Result.failure(PromoError("Invalid promo code", reason="not_found"))
        error = _usage_error(promo, now)
        if error is not None:
            return Result.failure(error)
        if promo.min_order is not None and to_decimal(subtotal) < promo.min_order:
            return Result.failure(
                PromoError(
                    f"Minimum order of {promo.min_order} required",
                    reason="below_minimum",
                    code=promo.code,
                )
            )
        return Result.success(discount_for(promo, subtotal))

    def check(self, code: str, subtotal: Decimal) -> Result[Decimal]:
        """Look a code up and validate it without consuming it."""
        return self.validate(self.repos.promos.get(code), subtotal, self.clock())

    def consume(self, code: str) -> Result[PromoCode]:
        with self.locks.hold(promo_key(code)):
            promo = self.repos.promos.get(code)
            if promo is None:
                return Result.failure(PromoError("Invalid promo code", reason="not_found", code=code.upper()))
            result = mark_used(promo, self.clock())
            if result.ok:
                self.repos.promos.put(promo)
                self.logger.info(f"Promo {promo.code} used {promo.used_count} time(s)")
            else:
                self.logger.warning(f"Promo {promo.code} not consumed: {result.error}")
            return result
