from decimal import Decimal

import pytest

from butchery.config import get_config, set_config_for_test
from butchery.domain.errors import InsufficientBalance, InsufficientPoints, InvalidRequest, Unauthorized
from butchery.domain.models import LedgerEvent
from butchery.services.ledger import LedgerService


@pytest.fixture
def ledger(repos, clock):
    return LedgerService(repos, clock=clock)


def test_lazy_account_creation(ledger, repos):
    assert repos.ledgers.get("cust-1") is None
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("0.00")
    assert account.transactions == []
    assert repos.ledgers.get("cust-1") is not None


def test_welcome_bonus_on_first_access(repos, clock):
    set_config_for_test(welcome_bonus_enabled=True, welcome_bonus=Decimal("50"))
    ledger = LedgerService(repos, config=get_config(), clock=clock)
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("50.00")
    assert [t.type for t in account.transactions] == ["credit"]
    assert account.is_consistent()


def test_credit_then_debit(ledger):
    ledger.credit("cust-1", Decimal("100"), "topup", "Top up").unwrap()
    txn = ledger.debit("cust-1", Decimal("30.50"), "order payment").unwrap()
    assert txn.amount == Decimal("-30.50")
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("69.50")
    assert account.is_consistent()


def test_debit_exceeding_balance_fails_atomically(ledger):
    ledger.credit("cust-1", Decimal("50.00")).unwrap()
    result = ledger.debit("cust-1", Decimal("75.00"), "order payment")
    assert not result.ok
    assert isinstance(result.error, InsufficientBalance)
    assert result.error.balance == Decimal("50.00")
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("50.00")
    assert len(account.transactions) == 1
    assert account.is_consistent()


def test_failed_debit_on_new_customer_persists_nothing(ledger, repos):
    result = ledger.debit("ghost", Decimal("1"), "x")
    assert isinstance(result.error, InsufficientBalance)
    assert repos.ledgers.get("ghost") is None


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_credit_requires_positive_amount(ledger, amount):
    result = ledger.credit("cust-1", amount)
    assert isinstance(result.error, InvalidRequest)


def test_credit_rejects_debit_type(ledger):
    result = ledger.credit("cust-1", Decimal("5"), "debit")
    assert isinstance(result.error, InvalidRequest)


def test_admin_adjustment(ledger, admin, customer):
    ledger.adjust_by_admin("cust-1", Decimal("40"), "Goodwill", admin).unwrap()
    ledger.adjust_by_admin("cust-1", Decimal("-15"), "Correction", admin).unwrap()
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("25.00")
    assert [t.type for t in account.transactions] == ["admin_adjustment", "admin_adjustment"]
    assert account.transactions[0].created_by == "admin-1"
    assert account.is_consistent()

    overdraw = ledger.adjust_by_admin("cust-1", Decimal("-100"), "Too much", admin)
    assert isinstance(overdraw.error, InsufficientBalance)
    assert ledger.get_account("cust-1").balance == Decimal("25.00")

    denied = ledger.adjust_by_admin("cust-1", Decimal("10"), "Self service", customer)
    assert isinstance(denied.error, Unauthorized)


def test_loyalty_award_and_redeem(ledger):
    ledger.award_loyalty_points("cust-1", 120, reference="promo").unwrap()
    ledger.redeem_loyalty_points("cust-1", 20).unwrap()
    account = ledger.get_account("cust-1")
    assert account.loyalty_points == 100
    assert account.loyalty_lifetime_earned == 120

    result = ledger.redeem_loyalty_points("cust-1", 101)
    assert isinstance(result.error, InsufficientPoints)
    account = ledger.get_account("cust-1")
    assert account.loyalty_points == 100
    assert len(account.loyalty_transactions) == 2
    assert account.is_consistent()


def test_admin_loyalty_adjustment_does_not_lower_lifetime(ledger, staff):
    ledger.award_loyalty_points("cust-1", 300).unwrap()
    ledger.adjust_loyalty_by_admin("cust-1", -50, "Expired points", staff).unwrap()
    account = ledger.get_account("cust-1")
    assert account.loyalty_points == 250
    assert account.loyalty_lifetime_earned == 300


def test_redeem_points_to_wallet(ledger):
    ledger.award_loyalty_points("cust-1", 250).unwrap()
    txn = ledger.redeem_points_to_wallet("cust-1", 200).unwrap()
    assert txn.amount == Decimal("20.00")
    account = ledger.get_account("cust-1")
    assert account.loyalty_points == 50
    assert account.balance == Decimal("20.00")
    assert account.is_consistent()

    short = ledger.redeem_points_to_wallet("cust-1", 500)
    assert isinstance(short.error, InsufficientPoints)
    assert ledger.get_account("cust-1").balance == Decimal("20.00")


def test_points_value(ledger):
    assert ledger.points_value(100) == Decimal("10.00")


def test_apply_event_is_idempotent(ledger):
    event = LedgerEvent(
        kind="cashback",
        customer_id="cust-1",
        order_id="o1",
        reference="cashback:ORD-000001",
        description="Cashback",
        amount=Decimal("2.40"),
    )
    ledger.apply_event(event).unwrap()
    ledger.apply_event(event).unwrap()
    account = ledger.get_account("cust-1")
    assert account.balance == Decimal("2.40")
    assert len(account.transactions) == 1


def test_loyalty_event_uses_tier_multiplier(ledger):
    ledger.award_loyalty_points("cust-1", 600).unwrap()  # silver
    event = LedgerEvent(
        kind="loyalty",
        customer_id="cust-1",
        order_id="o1",
        reference="loyalty:ORD-000001",
        description="Points",
        amount=Decimal("101.99"),
    )
    ledger.apply_event(event).unwrap()
    account = ledger.get_account("cust-1")
    # floor(101.99 * 1 * 1.5) = 152
    assert account.loyalty_points == 752


def test_balance_matches_log_after_mixed_operations(ledger, admin):
    ops = [
        lambda: ledger.credit("cust-1", Decimal("10.10")),
        lambda: ledger.debit("cust-1", Decimal("3.05"), "a"),
        lambda: ledger.debit("cust-1", Decimal("999"), "b"),
        lambda: ledger.adjust_by_admin("cust-1", Decimal("-2"), "c", admin),
        lambda: ledger.top_up("cust-1", Decimal("0.99"), "card"),
        lambda: ledger.adjust_by_admin("cust-1", Decimal("-50"), "d", admin),
    ]
    for op in ops:
        op()
        account = ledger.get_account("cust-1")
        assert account.is_consistent()
    assert ledger.get_account("cust-1").balance == Decimal("6.04")
