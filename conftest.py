from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from butchery.config import get_config, set_config_for_test
from butchery.data.backends.memory_backend import InMemoryRecordStore
from butchery.data.repositories import Repositories
from butchery.domain.models import Actor
from butchery.services.checkout import LineItem
from butchery.services.notifications import RecordingNotificationDispatcher
from butchery.services.payments import DummyGateway
from butchery.services.util import build_storefront


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def app_config():
    set_config_for_test(
        storage_backend="memory",
        welcome_bonus_enabled=False,
        log_level="WARNING",
        notification_workers=0,
    )
    return get_config()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def repos():
    return Repositories.from_store(InMemoryRecordStore())


@pytest.fixture
def notifier():
    return RecordingNotificationDispatcher()


@pytest.fixture
def gateway():
    return DummyGateway()


@pytest.fixture
def shop(repos, gateway, notifier, clock, app_config):
    return build_storefront(repos=repos, gateway=gateway, notifier=notifier, config=app_config, clock=clock)


@pytest.fixture
def admin():
    return Actor(id="admin-1", role="admin")


@pytest.fixture
def staff():
    return Actor(id="staff-1", role="staff")


@pytest.fixture
def customer():
    return Actor(id="cust-1", role="customer")


@pytest.fixture
def other_customer():
    return Actor(id="cust-2", role="customer")


@pytest.fixture
def driver():
    return Actor(id="driver-1", role="delivery")


@pytest.fixture
def other_driver():
    return Actor(id="driver-2", role="delivery")


def basket(*lines):
    """basket(("beef", 2, "50")) -> [LineItem]; default is 2 x 50.00 (subtotal 100.00)."""
    lines = lines or (("beef-steak", "2", "50"),)
    return [LineItem(product_id=p, quantity=Decimal(str(q)), unit_price=Decimal(str(u))) for p, q, u in lines]


@pytest.fixture
def place(shop, customer):
    """Place an order for `customer` and return it; 100.00 subtotal -> 120.00 total by default."""

    def _place(items=None, method="card", promo_code=None, actor=None):
        actor = actor or customer
        return shop.orders.place_order(actor.id, items or basket(), method, actor, promo_code=promo_code).unwrap()

    return _place


@pytest.fixture
def out_for_delivery(shop, place, admin, driver):
    """An order at out_for_delivery whose tracking sits at picked_up."""

    def _dispatch(method="card", capture=True):
        order = place(method=method)
        if capture and method in ("card", "bank_transfer"):
            shop.orders.capture_payment(order.id, admin).unwrap()
        shop.machine.confirm(order.id, admin).unwrap()
        shop.machine.transition(order.id, "processing", admin).unwrap()
        tracking = shop.delivery.assign_driver(order.id, driver, admin).unwrap()
        shop.delivery.advance(tracking.id, driver).unwrap()
        tracking = shop.delivery.advance(tracking.id, driver).unwrap()
        return shop.repos.orders.get(order.id), tracking

    return _dispatch


@pytest.fixture
def make_basket():
    return basket
