from datetime import timedelta
from decimal import Decimal

import pandas as pd

from butchery.reports import ledger_statement, order_stats, wallet_summary


def test_ledger_statement_running_balance(shop, customer, admin, clock):
    shop.ledger.top_up(customer.id, Decimal("100"), "card").unwrap()
    clock.advance(minutes=5)
    shop.ledger.debit(customer.id, Decimal("30.25"), "Order").unwrap()
    clock.advance(minutes=5)
    shop.ledger.adjust_by_admin(customer.id, Decimal("5"), "Goodwill", admin).unwrap()

    account = shop.ledger.get_account(customer.id)
    statement = ledger_statement(account)
    assert list(statement["type"]) == ["topup", "debit", "admin_adjustment"]
    assert list(statement["running_balance"]) == [Decimal("100.00"), Decimal("69.75"), Decimal("74.75")]
    assert statement["running_balance"].iloc[-1] == account.balance


def test_empty_statement(shop, customer):
    statement = ledger_statement(shop.ledger.get_account(customer.id))
    assert statement.empty
    assert "running_balance" in statement.columns


def test_order_stats(shop, place, admin, clock):
    old = place()
    clock.advance(days=10)
    place()
    cancelled = place()
    shop.machine.cancel(cancelled.id, admin).unwrap()
    shop.machine.confirm(old.id, admin).unwrap()

    stats = order_stats(shop.repos.orders.list(), clock())
    assert stats["total_orders"] == 3
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["confirmed"] == 1
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["delivered"] == 0
    assert stats["today_orders"] == 1
    assert stats["week_orders"] == 1
    assert stats["month_orders"] == 2
    assert stats["total_sales"] == 240.0
    assert stats["average_order_value"] == 120.0


def test_order_stats_empty(clock):
    stats = order_stats([], clock())
    assert stats["total_orders"] == 0
    assert stats["average_order_value"] == 0.0


def test_wallet_summary(shop, clock):
    shop.ledger.top_up("cust-a", Decimal("10"), "card").unwrap()
    shop.ledger.top_up("cust-b", Decimal("40"), "card").unwrap()
    shop.ledger.award_loyalty_points("cust-b", 600).unwrap()

    summary = wallet_summary(shop.repos.ledgers.list())
    assert isinstance(summary, pd.DataFrame)
    assert list(summary["customer_id"]) == ["cust-b", "cust-a"]
    assert list(summary["tier"]) == ["silver", "bronze"]
    assert summary.loc[0, "loyalty_points"] == 600
    assert wallet_summary([]).empty
