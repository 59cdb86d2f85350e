from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

TransactionType = Literal["credit", "debit", "refund", "topup", "cashback", "admin_adjustment"]
LoyaltyTransactionType = Literal["earn", "redeem", "bonus", "admin_adjustment"]


class LoyaltyTier(BaseModel):
    id: str
    name: str
    min_points: int
    multiplier: Decimal


# Tier is decided by lifetime earned points, never by the spendable balance
LOYALTY_TIERS: tuple[LoyaltyTier, ...] = (
    LoyaltyTier(id="bronze", name="Bronze", min_points=0, multiplier=Decimal("1")),
    LoyaltyTier(id="silver", name="Silver", min_points=500, multiplier=Decimal("1.5")),
    LoyaltyTier(id="gold", name="Gold", min_points=1500, multiplier=Decimal("2")),
    LoyaltyTier(id="platinum", name="Platinum", min_points=5000, multiplier=Decimal("3")),
)


def tier_for(lifetime_earned: int) -> LoyaltyTier:
    current = LOYALTY_TIERS[0]
    for tier in LOYALTY_TIERS:
        if lifetime_earned >= tier.min_points:
            current = tier
    return current


class Transaction(BaseModel):
    """A wallet ledger entry. Amount is signed: debits are negative."""
    id: str
    type: TransactionType
    amount: Decimal
    description: str
    reference: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class LoyaltyTransaction(BaseModel):
    """A loyalty ledger entry. Points are signed: redemptions are negative."""
    id: str
    type: LoyaltyTransactionType
    points: int
    description: str
    reference: Optional[str] = None
    created_at: datetime


class LedgerAccount(BaseModel):
    """Wallet balance and loyalty points of one customer, backed by append-only logs."""
    customer_id: str
    balance: Decimal = Decimal("0.00")
    loyalty_points: int = 0
    loyalty_lifetime_earned: int = 0
    transactions: list[Transaction] = Field(default_factory=list)
    loyalty_transactions: list[LoyaltyTransaction] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @property
    def tier(self) -> LoyaltyTier:
        return tier_for(self.loyalty_lifetime_earned)

    def is_consistent(self) -> bool:
        """Both balances equal the sum of their logs and neither is negative."""
        wallet_sum = sum((t.amount for t in self.transactions), Decimal("0"))
        points_sum = sum(t.points for t in self.loyalty_transactions)
        return (
            wallet_sum == self.balance
            and points_sum == self.loyalty_points
            and self.balance >= 0
            and self.loyalty_points >= 0
        )

    def has_reference(self, reference: str) -> bool:
        return any(t.reference == reference for t in self.transactions) or any(
            t.reference == reference for t in self.loyalty_transactions
        )
