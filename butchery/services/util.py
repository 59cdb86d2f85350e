from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config import AppConfig, get_config
from ..data.repositories import Repositories
from ..data.util import get_repositories
from ..domain.util import utc_now
from .checkout import OrderService
from .commands import CommandProcessor
from .events import EventDispatcher
from .ledger import LedgerService
from .locks import EntityLocks
from .notifications import LoggingNotificationDispatcher, NotificationDispatcher
from .orders import OrderStatusMachine
from .payments import DummyGateway, PaymentGateway
from .promotions import PromoCodeValidator
from .tracking import DeliveryTrackingMachine


@dataclass
class Storefront:
    """All services wired to one set of repositories and one lock registry."""
    repos: Repositories
    locks: EntityLocks
    ledger: LedgerService
    promos: PromoCodeValidator
    machine: OrderStatusMachine
    orders: OrderService
    delivery: DeliveryTrackingMachine
    commands: CommandProcessor
    dispatcher: EventDispatcher
    gateway: PaymentGateway


def build_storefront(
    repos: Optional[Repositories] = None,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationDispatcher] = None,
    config: Optional[AppConfig] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Storefront:
    config = config or get_config()
    repos = repos or get_repositories()
    gateway = gateway or DummyGateway()
    locks = EntityLocks()
    dispatcher = EventDispatcher(notifier or LoggingNotificationDispatcher(), workers=config.notification_workers)

    ledger = LedgerService(repos, locks=locks, config=config, clock=clock)
    promos = PromoCodeValidator(repos, locks=locks, clock=clock)
    machine = OrderStatusMachine(repos, ledger, dispatcher, gateway, locks=locks, config=config, clock=clock)
    orders = OrderService(repos, machine, promos, ledger, dispatcher, gateway, locks=locks, config=config, clock=clock)
    delivery = DeliveryTrackingMachine(repos, machine, locks=locks, clock=clock)
    return Storefront(
        repos=repos,
        locks=locks,
        ledger=ledger,
        promos=promos,
        machine=machine,
        orders=orders,
        delivery=delivery,
        commands=CommandProcessor(machine, delivery, ledger),
        dispatcher=dispatcher,
        gateway=gateway,
    )
