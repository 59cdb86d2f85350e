"""
Error kinds returned by the order, delivery and ledger services.

These are values, not exceptions: every service operation returns a
``Result`` whose ``error`` holds one of the classes below.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Literal, Optional


PromoErrorReason = Literal["disabled", "expired", "below_minimum", "usage_exhausted", "not_found"]


@dataclass(frozen=True)
class DomainError:
    message: str
    kind: ClassVar[str] = "DomainError"

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(frozen=True)
class IllegalTransition(DomainError):
    current: Optional[str] = None
    requested: Optional[str] = None
    kind: ClassVar[str] = "IllegalTransition"


@dataclass(frozen=True)
class Unauthorized(DomainError):
    actor_id: Optional[str] = None
    kind: ClassVar[str] = "Unauthorized"


@dataclass(frozen=True)
class NoFurtherTransition(DomainError):
    kind: ClassVar[str] = "NoFurtherTransition"


@dataclass(frozen=True)
class InsufficientBalance(DomainError):
    balance: Decimal = Decimal("0")
    requested: Decimal = Decimal("0")
    kind: ClassVar[str] = "InsufficientBalance"


@dataclass(frozen=True)
class InsufficientPoints(DomainError):
    available: int = 0
    requested: int = 0
    kind: ClassVar[str] = "InsufficientPoints"


@dataclass(frozen=True)
class PromoError(DomainError):
    reason: PromoErrorReason = "not_found"
    code: Optional[str] = None
    kind: ClassVar[str] = "PromoError"


@dataclass(frozen=True)
class NotFound(DomainError):
    entity: str = ""
    key: str = ""
    kind: ClassVar[str] = "NotFound"


@dataclass(frozen=True)
class InvalidRequest(DomainError):
    field: Optional[str] = None
    kind: ClassVar[str] = "InvalidRequest"
