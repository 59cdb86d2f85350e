from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol
from uuid import uuid4


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class RefundResult:
    success: bool


class PaymentGateway(Protocol):
    """Card/bank payment provider. Never called while an entity lock is held."""

    def capture(self, order_id: str, amount: Decimal) -> CaptureResult:
        ...

    def refund(self, payment_id: str, amount: Decimal, reason: str) -> RefundResult:
        ...


class DummyGateway:
    """In-process gateway for local runs and tests; outcomes are switchable."""

    def __init__(self, capture_succeeds: bool = True, refund_succeeds: bool = True) -> None:
        self.capture_succeeds = capture_succeeds
        self.refund_succeeds = refund_succeeds
        self.captures: list[tuple[str, Decimal]] = []
        self.refunds: list[tuple[str, Decimal, str]] = []

    def capture(self, order_id: str, amount: Decimal) -> CaptureResult:
        self.captures.append((order_id, amount))
        if not self.capture_succeeds:
            return CaptureResult(success=False)
        return CaptureResult(success=True, transaction_id=f"DUMMY-{uuid4().hex[:12]}")

    def refund(self, payment_id: str, amount: Decimal, reason: str) -> RefundResult:
        self.refunds.append((payment_id, amount, reason))
        return RefundResult(success=self.refund_succeeds)
