#!/usr/bin/env python3
"""
seed_data.py

Builds a demo storefront in a JSON record store (default: sample_data/storefront.json).
Every order is driven through the real services, so the generated state
satisfies the same invariants as production data.

Entities:
- promo_codes, ledger_accounts, orders, delivery_tracking

Run:
  python -m butchery.seed_data --customers 10 --orders 25 --seed 42
"""

from __future__ import annotations
import argparse
import os
import random
import sys
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .config import get_config
from .data.backends.json_backend import JsonFileRecordStore
from .data.repositories import Repositories
from .domain.models import Actor, PromoCode
from .logging import get_logger
from .services.checkout import LineItem
from .services.notifications import RecordingNotificationDispatcher
from .services.util import Storefront, build_storefront

# -----------------------------
# Catalogue & helper structures
# -----------------------------

@dataclass
class Cut:
    product_id: str
    name: str
    price: Decimal
    by_weight: bool

CATALOGUE: List[Cut] = [
    Cut("beef-steak", "Premium Beef Steak", Decimal("89.99"), True),
    Cut("lamb-chops", "Lamb Chops", Decimal("74.50"), True),
    Cut("chicken-breast", "Chicken Breast", Decimal("34.99"), True),
    Cut("ground-beef", "Ground Beef", Decimal("45.00"), True),
    Cut("beef-brisket", "Beef Brisket", Decimal("95.00"), True),
    Cut("sheep-leg", "Sheep Leg", Decimal("125.00"), False),
    Cut("lamb-leg", "Lamb Leg", Decimal("125.00"), False),
    Cut("sheep-ribs", "Sheep Ribs", Decimal("85.00"), False),
]

DEFAULT_PROMO_CODES: List[Dict] = [
    {"code": "WELCOME10", "discount": 10, "type": "percent", "description": "Welcome discount for new users"},
    {"code": "SAVE20", "discount": 20, "type": "fixed", "description": "Save 20 AED on your order"},
    {"code": "MEAT15", "discount": 15, "type": "percent", "min_order": 100, "description": "15% off on orders over 100 AED"},
    {"code": "FIRSTORDER", "discount": 25, "type": "fixed", "description": "25 AED off first order"},
    {"code": "FRESH20", "discount": 20, "type": "percent", "min_order": 150, "description": "20% off fresh meat"},
    {"code": "MEAT50", "discount": 50, "type": "fixed", "min_order": 200, "description": "50 AED off orders over 200"},
    {"code": "EIDJOY", "discount": 30, "type": "percent", "min_order": 300, "expiry_date": "2026-12-31T23:59:59",
     "description": "Eid special discount"},
]

PAYMENT_METHODS = ["card", "cod", "bank_transfer", "wallet"]

# Where each demo order stops in its lifecycle, with relative weights
JOURNEYS = {
    "pending": 2,
    "confirmed": 2,
    "processing": 2,
    "in_transit": 2,
    "delivered": 6,
    "cancelled": 2,
    "refunded": 1,
}

ADMIN = Actor(id="admin", role="admin")
DRIVERS = [Actor(id="driver-1", role="delivery"), Actor(id="driver-2", role="delivery")]


# -----------------------------
# Generators
# -----------------------------

def ensure_dir(path: str) -> None:
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)

def gen_promo_codes() -> List[PromoCode]:
    return [PromoCode(**p) for p in DEFAULT_PROMO_CODES]

def gen_customers(n: int) -> List[Actor]:
    return [Actor(id=f"customer-{i:03d}", role="customer") for i in range(1, n + 1)]

def gen_basket() -> List[LineItem]:
    lines = []
    for cut in random.sample(CATALOGUE, k=random.randint(1, 3)):
        if cut.by_weight:
            quantity = Decimal(random.choice(["0.5", "1", "1.5", "2", "2.5"]))
        else:
            quantity = Decimal(random.randint(1, 2))
        lines.append(LineItem(product_id=cut.product_id, quantity=quantity, unit_price=cut.price))
    return lines

def pick_journey() -> str:
    names = list(JOURNEYS)
    return random.choices(names, weights=[JOURNEYS[n] for n in names], k=1)[0]


def drive_order(shop: Storefront, customer: Actor, journey: str) -> Optional[str]:
    """Place one order and walk it to `journey`; returns the order number or None if rejected."""
    method = random.choice(PAYMENT_METHODS)
    promo = random.choice([None, None, None, "WELCOME10", "SAVE20", "MEAT15"])
    placed = shop.orders.place_order(customer.id, gen_basket(), "card" if method == "wallet" else method, customer,
                                     promo_code=promo)
    if not placed.ok and promo is not None:
        placed = shop.orders.place_order(customer.id, gen_basket(), "card", customer)
    if not placed.ok:
        return None
    order = placed.value

    if method == "wallet":
        shop.ledger.top_up(customer.id, order.total, "card")
        shop.orders.pay_with_wallet(order.id, customer)
    elif method in ("card", "bank_transfer"):
        shop.orders.capture_payment(order.id, customer)

    if journey == "pending":
        return order.order_number
    if journey == "cancelled":
        shop.machine.cancel(order.id, ADMIN, reason="Out of stock")
        return order.order_number

    if not shop.machine.confirm(order.id, ADMIN).ok:
        return order.order_number
    if journey == "confirmed":
        return order.order_number
    shop.machine.transition(order.id, "processing", ADMIN)
    if journey == "processing":
        return order.order_number

    driver = random.choice(DRIVERS)
    tracking = shop.delivery.assign_driver(order.id, driver, ADMIN).unwrap()
    stop = "in_transit" if journey == "in_transit" else "delivered"
    while tracking.status != stop:
        tracking = shop.delivery.advance(tracking.id, driver).unwrap()
        if tracking.status == "nearby" and stop == "delivered":
            tracking = shop.delivery.complete(tracking.id, driver, notes="Left with customer", signature="signed").unwrap()

    if journey == "refunded":
        shop.machine.refund(order.id, ADMIN, reason="Quality complaint")
    return order.order_number


# -----------------------------
# Entry point
# -----------------------------

def main(argv: Optional[List[str]] = None) -> int:
    config = get_config()
    logger = get_logger(__name__)

    parser = argparse.ArgumentParser(description="Generate a demo storefront in a JSON record store.")
    parser.add_argument("--data-dir", type=str, default=config.data_dir)
    parser.add_argument("--customers", type=int, default=config.default_seed_customers)
    parser.add_argument("--orders", type=int, default=config.default_seed_orders)
    parser.add_argument("--seed", type=int, default=config.default_seed_value)
    parser.add_argument("--no-overwrite", action="store_true", help="Fail if the store file already exists.")
    args = parser.parse_args(argv)

    if args.customers < 1:
        print("--customers must be at least 1", file=sys.stderr)
        return 2

    random.seed(args.seed)
    store = JsonFileRecordStore(data_dir=args.data_dir)
    store_path = store.path
    if store_path.exists():
        if args.no_overwrite:
            print(f"Refusing to overwrite existing file: {store_path}", file=sys.stderr)
            return 2
        store_path.unlink()
        store = JsonFileRecordStore(data_dir=args.data_dir)
    ensure_dir(str(store.data_dir))

    repos = Repositories.from_store(store)
    shop = build_storefront(repos=repos, notifier=RecordingNotificationDispatcher(), config=config)

    promos = gen_promo_codes()
    repos.commit(*promos)

    customers = gen_customers(args.customers)
    for customer in customers:
        shop.ledger.get_account(customer.id)

    started = datetime.now()
    placed = [drive_order(shop, random.choice(customers), pick_journey()) for _ in range(args.orders)]
    placed = [n for n in placed if n is not None]
    shop.dispatcher.shutdown()
    logger.info(f"Seeded {len(placed)} orders in {(datetime.now() - started).total_seconds():.2f}s")

    # simple summary
    print(f"Generated storefront in {store_path}")
    print(f" promo_codes: {len(promos)} | customers: {len(customers)}")
    print(f" orders: {len(repos.orders.list())} | deliveries: {len(repos.trackings.list())}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
