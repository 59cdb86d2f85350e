"""
Read-only projections for the admin console, built with pandas.

Nothing here mutates state; balances come from the ledger's own logs.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from itertools import accumulate
from typing import Iterable

import pandas as pd

from .domain.models import LedgerAccount, Order

STATEMENT_COLUMNS = ["created_at", "id", "type", "description", "reference", "amount", "running_balance"]
ORDER_STATUSES = [
    "pending",
    "confirmed",
    "processing",
    "ready_for_pickup",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "refunded",
]


def ledger_statement(account: LedgerAccount) -> pd.DataFrame:
    """Wallet transactions oldest first, with the balance after each line."""
    if not account.transactions:
        return pd.DataFrame(columns=STATEMENT_COLUMNS)

    df = pd.DataFrame([t.model_dump() for t in account.transactions])
    df = df.sort_values("created_at", kind="stable").reset_index(drop=True)
    # Decimals accumulated in Python to keep exact cents
    df["running_balance"] = list(accumulate(df["amount"]))
    return df[STATEMENT_COLUMNS]


def _orders_frame(orders: Iterable[Order]) -> pd.DataFrame:
    rows = [
        {
            "order_number": o.order_number,
            "status": o.status,
            "total": float(o.total),
            "created_at": pd.Timestamp(o.created_at),
        }
        for o in orders
    ]
    return pd.DataFrame(rows, columns=["order_number", "status", "total", "created_at"])


def order_stats(orders: Iterable[Order], now: datetime) -> dict:
    """Dashboard counters: orders per status, period counts and sales, average order value.

    Sales and averages exclude cancelled orders.
    """
    df = _orders_frame(orders)
    counts = df["status"].value_counts()
    by_status = {status: int(counts.get(status, 0)) for status in ORDER_STATUSES}
    stats: dict = {"total_orders": int(len(df)), "by_status": by_status}
    if df.empty:
        for name in ("today", "week", "month"):
            stats[f"{name}_orders"] = 0
            stats[f"{name}_sales"] = 0.0
        stats["total_sales"] = 0.0
        stats["average_order_value"] = 0.0
        return stats

    now_ts = pd.Timestamp(now)
    start_of_day = now_ts.normalize()
    periods = {
        "today": start_of_day,
        "week": now_ts - timedelta(days=7),
        "month": now_ts - timedelta(days=30),
    }

    billable = df[df["status"] != "cancelled"]
    for name, since in periods.items():
        window = billable[billable["created_at"] >= since]
        stats[f"{name}_orders"] = int(len(window))
        stats[f"{name}_sales"] = round(float(window["total"].sum()), 2) if not window.empty else 0.0

    stats["total_sales"] = round(float(billable["total"].sum()), 2) if not billable.empty else 0.0
    stats["average_order_value"] = round(float(billable["total"].mean()), 2) if not billable.empty else 0.0
    return stats


def wallet_summary(accounts: Iterable[LedgerAccount]) -> pd.DataFrame:
    """One row per customer, highest balance first."""
    rows = [
        {
            "customer_id": a.customer_id,
            "balance": float(a.balance),
            "loyalty_points": a.loyalty_points,
            "lifetime_points": a.loyalty_lifetime_earned,
            "tier": a.tier.id,
            "transactions": len(a.transactions),
        }
        for a in accounts
    ]
    cols = ["customer_id", "balance", "loyalty_points", "lifetime_points", "tier", "transactions"]
    if not rows:
        return pd.DataFrame(columns=cols)
    out = pd.DataFrame(rows, columns=cols)
    return out.sort_values(["balance", "customer_id"], ascending=[False, True]).reset_index(drop=True)
