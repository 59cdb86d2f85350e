"""
Customer ledger: wallet balance and loyalty points.

Both balances are projections of append-only logs. Every mutation runs under
the account's lock on a fresh copy of the account and is persisted only when
it succeeds, so a rejected debit or redemption leaves no trace.
"""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Callable, Optional

from ..config import AppConfig, get_config
from ..data.repositories import Repositories
from ..domain.errors import InsufficientBalance, InsufficientPoints, InvalidRequest, Unauthorized
from ..domain.models import (
    Actor,
    LedgerAccount,
    LedgerEvent,
    LoyaltyTransaction,
    Transaction,
    TransactionType,
)
from ..domain.result import Result
from ..domain.util import money, new_id, to_decimal, utc_now
from ..logging import get_logger
from .locks import EntityLocks, ledger_key

CREDIT_TYPES = {"credit", "refund", "topup", "cashback"}


# ---------- pure posting helpers (caller holds the account lock) ----------

def post_credit(
    account: LedgerAccount,
    amount: Decimal,
    type: TransactionType,
    description: str,
    now: datetime,
    reference: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Result[Transaction]:
    amount = money(amount)
    if amount <= 0:
        return Result.failure(InvalidRequest("Credit amount must be positive", field="amount"))
    if type not in CREDIT_TYPES:
        return Result.failure(InvalidRequest(f"'{type}' is not a credit transaction type", field="type"))
    txn = Transaction(
        id=new_id(f"txn_{type}"),
        type=type,
        amount=amount,
        description=description,
        reference=reference,
        created_by=created_by,
        created_at=now,
    )
    account.transactions.append(txn)
    account.balance = money(account.balance + amount)
    account.updated_at = now
    return Result.success(txn)


def post_debit(
    account: LedgerAccount,
    amount: Decimal,
    description: str,
    now: datetime,
    reference: Optional[str] = None,
    created_by: Optional[str] = None,
    type: TransactionType = "debit",
) -> Result[Transaction]:
    amount = money(amount)
    if amount <= 0:
        return Result.failure(InvalidRequest("Debit amount must be positive", field="amount"))
    if amount > account.balance:
        return Result.failure(
            InsufficientBalance(
                f"Balance {account.balance} does not cover {amount}",
                balance=account.balance,
                requested=amount,
            )
        )
    txn = Transaction(
        id=new_id(f"txn_{type}"),
        type=type,
        amount=-amount,
        description=description,
        reference=reference,
        created_by=created_by,
        created_at=now,
    )
    account.transactions.append(txn)
    account.balance = money(account.balance - amount)
    account.updated_at = now
    return Result.success(txn)


def post_points(
    account: LedgerAccount,
    points: int,
    type: str,
    description: str,
    now: datetime,
    reference: Optional[str] = None,
) -> Result[LoyaltyTransaction]:
    if points == 0:
        return Result.failure(InvalidRequest("Points must be non-zero", field="points"))
    if points < 0 and -points > account.loyalty_points:
        return Result.failure(
            InsufficientPoints(
                f"{account.loyalty_points} points available, {-points} requested",
                available=account.loyalty_points,
                requested=-points,
            )
        )
    txn = LoyaltyTransaction(
        id=new_id(f"pts_{type}"),
        type=type,
        points=points,
        description=description,
        reference=reference,
        created_at=now,
    )
    account.loyalty_transactions.append(txn)
    account.loyalty_points += points
    if points > 0:
        account.loyalty_lifetime_earned += points
    account.updated_at = now
    return Result.success(txn)


class LedgerService:
    """Operations on LedgerAccounts, one single-writer section per customer."""

    def __init__(
        self,
        repos: Repositories,
        locks: Optional[EntityLocks] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repos = repos
        self.locks = locks or EntityLocks()
        self.config = config or get_config()
        self.clock = clock
        self.logger = get_logger(__name__)

    # ---------- account access ----------

    def _new_account(self, customer_id: str) -> LedgerAccount:
        now = self.clock()
        account = LedgerAccount(customer_id=customer_id, created_at=now, updated_at=now)
        if self.config.welcome_bonus_enabled and self.config.welcome_bonus > 0:
            post_credit(
                account,
                self.config.welcome_bonus,
                "credit",
                "Welcome bonus! Start shopping with us",
                now,
                reference="welcome",
            )
        return account

    def load_for_update(self, customer_id: str) -> LedgerAccount:
        """Return a working copy of the account; the caller must hold its lock."""
        return self.repos.ledgers.get(customer_id) or self._new_account(customer_id)

    def get_account(self, customer_id: str) -> LedgerAccount:
        """Read an account, creating it on first access."""
        with self.locks.hold(ledger_key(customer_id)):
            account = self.repos.ledgers.get(customer_id)
            if account is None:
                account = self._new_account(customer_id)
                self.repos.ledgers.put(account)
                self.logger.info(f"Opened ledger account for customer {customer_id}")
            return account

    def points_value(self, points: int) -> Decimal:
        """Wallet value of a number of loyalty points."""
        return money(Decimal(points) / Decimal(self.config.points_to_aed_rate))

    def _mutate(self, customer_id: str, operation: Callable[[LedgerAccount, datetime], Result]) -> Result:
        with self.locks.hold(ledger_key(customer_id)):
            account = self.load_for_update(customer_id)
            result = operation(account, self.clock())
            if result.ok:
                self.repos.ledgers.put(account)
            return result

    # ---------- wallet ----------

    def credit(
        self,
        customer_id: str,
        amount: Decimal,
        type: TransactionType = "credit",
        description: str = "Wallet credit",
        reference: Optional[str] = None,
    ) -> Result[Transaction]:
        result = self._mutate(
            customer_id,
            lambda account, now: post_credit(account, to_decimal(amount), type, description, now, reference),
        )
        if result.ok:
            self.logger.info(f"Credited {result.value.amount} ({type}) to customer {customer_id}")
        return result

    def top_up(self, customer_id: str, amount: Decimal, payment_method: str) -> Result[Transaction]:
        return self.credit(customer_id, amount, "topup", f"Wallet top-up via {payment_method}")

    def debit(
        self,
        customer_id: str,
        amount: Decimal,
        description: str,
        reference: Optional[str] = None,
    ) -> Result[Transaction]:
        result = self._mutate(
            customer_id,
            lambda account, now: post_debit(account, to_decimal(amount), description, now, reference),
        )
        if result.ok:
            self.logger.info(f"Debited {-result.value.amount} from customer {customer_id}")
        else:
            self.logger.warning(f"Debit for customer {customer_id} rejected: {result.error}")
        return result

    def adjust_by_admin(self, customer_id: str, signed_amount: Decimal, reason: str, actor: Actor) -> Result[Transaction]:
        if not actor.is_back_office:
            return Result.failure(Unauthorized("Only admin or staff may adjust wallets", actor_id=actor.id))
        signed_amount = money(to_decimal(signed_amount))
        if signed_amount == 0:
            return Result.failure(InvalidRequest("Adjustment must be non-zero", field="amount"))

        def operation(account: LedgerAccount, now: datetime) -> Result[Transaction]:
            description = reason or ("Admin credit" if signed_amount > 0 else "Admin debit")
            if signed_amount < 0:
                return post_debit(
                    account, -signed_amount, description, now,
                    reference="admin", created_by=actor.id, type="admin_adjustment",
                )
            txn = Transaction(
                id=new_id("txn_admin_adjustment"),
                type="admin_adjustment",
                amount=signed_amount,
                description=description,
                reference="admin",
                created_by=actor.id,
                created_at=now,
            )
            account.transactions.append(txn)
            account.balance = money(account.balance + signed_amount)
            account.updated_at = now
            return Result.success(txn)

        result = self._mutate(customer_id, operation)
        if result.ok:
            self.logger.info(f"Admin {actor.id} adjusted wallet of {customer_id} by {signed_amount}: {reason}")
        else:
            self.logger.warning(f"Admin adjustment for {customer_id} rejected: {result.error}")
        return result

    # ---------- loyalty ----------

    def award_loyalty_points(
        self,
        customer_id: str,
        points: int,
        reference: Optional[str] = None,
        description: str = "Loyalty points earned",
    ) -> Result[LoyaltyTransaction]:
        if points <= 0:
            return Result.failure(InvalidRequest("Points to award must be positive", field="points"))
        return self._mutate(
            customer_id,
            lambda account, now: post_points(account, points, "earn", description, now, reference),
        )

    def redeem_loyalty_points(
        self,
        customer_id: str,
        points: int,
        reference: Optional[str] = None,
        description: str = "Points redeemed",
    ) -> Result[LoyaltyTransaction]:
        if points <= 0:
            return Result.failure(InvalidRequest("Points to redeem must be positive", field="points"))
        return self._mutate(
            customer_id,
            lambda account, now: post_points(account, -points, "redeem", description, now, reference),
        )

    def adjust_loyalty_by_admin(self, customer_id: str, points: int, reason: str, actor: Actor) -> Result[LoyaltyTransaction]:
        if not actor.is_back_office:
            return Result.failure(Unauthorized("Only admin or staff may adjust loyalty points", actor_id=actor.id))
        description = reason or ("Bonus points added by admin" if points > 0 else "Points deducted by admin")
        return self._mutate(
            customer_id,
            lambda account, now: post_points(account, points, "admin_adjustment", description, now, "admin"),
        )

    def redeem_points_to_wallet(self, customer_id: str, points: int) -> Result[Transaction]:
        """Convert loyalty points into wallet credit at the configured rate."""
        value = self.points_value(points)
        if points <= 0 or value <= 0:
            return Result.failure(InvalidRequest("Not enough points for one unit of credit", field="points"))

        def operation(account: LedgerAccount, now: datetime) -> Result[Transaction]:
            reference = new_id("redeem")
            redeemed = post_points(account, -points, "redeem", f"Redeemed for {value} wallet credit", now, reference)
            if not redeemed.ok:
                return Result.failure(redeemed.error)
            return post_credit(account, value, "credit", f"Redeemed {points} loyalty points", now, reference)

        return self._mutate(customer_id, operation)

    # ---------- order side effects ----------

    def loyalty_points_for(self, account: LedgerAccount, order_total: Decimal) -> int:
        raw = to_decimal(order_total) * self.config.points_per_aed * account.tier.multiplier
        return int(raw.to_integral_value(rounding=ROUND_FLOOR))

    def apply_event(self, event: LedgerEvent) -> Result:
        """Apply a refund/cashback/loyalty event once; replays of the same reference are no-ops."""

        def operation(account: LedgerAccount, now: datetime) -> Result:
            if account.has_reference(event.reference):
                return Result.success(None)
            if event.kind == "loyalty":
                points = self.loyalty_points_for(account, event.amount)
                if points <= 0:
                    return Result.success(None)
                return post_points(account, points, "earn", event.description, now, event.reference)
            return post_credit(account, event.amount, event.kind, event.description, now, event.reference)

        result = self._mutate(event.customer_id, operation)
        if not result.ok:
            self.logger.error(f"Ledger event {event.reference} for {event.customer_id} failed: {result.error}")
        elif result.value is None:
            self.logger.debug(f"Ledger event {event.reference} already applied or empty, skipped")
        else:
            self.logger.info(f"Applied ledger event {event.reference} to customer {event.customer_id}")
        return result
