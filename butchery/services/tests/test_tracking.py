import pytest

from butchery.domain.errors import IllegalTransition, InvalidRequest, NoFurtherTransition, Unauthorized
from butchery.domain.models import TRACKING_SEQUENCE, DeliveryTracking


@pytest.fixture
def assigned(shop, place, admin, driver):
    """A processing order with a freshly assigned tracking record."""
    order = place()
    shop.machine.confirm(order.id, admin).unwrap()
    shop.machine.transition(order.id, "processing", admin).unwrap()
    tracking = shop.delivery.assign_driver(order.id, driver, admin).unwrap()
    return order, tracking


def test_assign_creates_tracking(assigned, shop, driver):
    order, tracking = assigned
    assert tracking.status == "preparing"
    assert tracking.driver_id == driver.id
    assert tracking.order_number == order.order_number
    assert shop.delivery.for_order(order.id).id == tracking.id


def test_assign_rules(shop, place, admin, staff, driver, customer):
    order = place()
    assert isinstance(shop.delivery.assign_driver(order.id, driver, admin).error, IllegalTransition)
    shop.machine.confirm(order.id, admin).unwrap()
    assert isinstance(shop.delivery.assign_driver(order.id, driver, customer).error, Unauthorized)
    assert isinstance(shop.delivery.assign_driver(order.id, customer, admin).error, InvalidRequest)
    assert shop.delivery.assign_driver(order.id, driver, staff).ok


def test_reassign_keeps_progress(assigned, shop, admin, driver, other_driver):
    order, tracking = assigned
    shop.delivery.advance(tracking.id, driver).unwrap()
    moved = shop.delivery.assign_driver(order.id, other_driver, admin).unwrap()
    assert moved.id == tracking.id
    assert moved.status == "ready"
    assert moved.driver_id == other_driver.id
    assert isinstance(shop.delivery.advance(tracking.id, driver).error, Unauthorized)
    assert shop.delivery.advance(tracking.id, other_driver).ok


def test_advance_walks_the_sequence_one_step_at_a_time(assigned, shop, driver):
    order, tracking = assigned
    seen = [tracking.status]
    while tracking.status != "delivered":
        tracking = shop.delivery.advance(tracking.id, driver).unwrap()
        seen.append(tracking.status)
    assert tuple(seen) == TRACKING_SEQUENCE
    assert [entry.status for entry in tracking.timeline] == list(TRACKING_SEQUENCE)
    assert shop.repos.orders.get(order.id).status == "delivered"

    again = shop.delivery.advance(tracking.id, driver)
    assert isinstance(again.error, NoFurtherTransition)
    assert shop.repos.trackings.get(tracking.id).status == "delivered"


def test_pickup_puts_order_out_for_delivery(assigned, shop, driver):
    order, tracking = assigned
    shop.delivery.advance(tracking.id, driver).unwrap()
    assert shop.repos.orders.get(order.id).status == "processing"
    shop.delivery.advance(tracking.id, driver).unwrap()
    assert shop.repos.orders.get(order.id).status == "out_for_delivery"


def test_only_assigned_driver_may_advance(assigned, shop, other_driver, admin):
    _, tracking = assigned
    assert isinstance(shop.delivery.advance(tracking.id, other_driver).error, Unauthorized)
    assert isinstance(shop.delivery.advance(tracking.id, admin).error, Unauthorized)
    assert shop.repos.trackings.get(tracking.id).status == "preparing"


def test_on_the_way_advances_twice_to_delivered(shop, out_for_delivery, driver):
    order, tracking = out_for_delivery()
    tracking = shop.delivery.advance(tracking.id, driver).unwrap()
    assert tracking.status == "in_transit"

    first = shop.delivery.advance(tracking.id, driver).unwrap()
    assert first.status == "nearby"
    assert shop.repos.orders.get(order.id).status == "out_for_delivery"

    second = shop.delivery.advance(tracking.id, driver).unwrap()
    assert second.status == "delivered"
    assert shop.repos.orders.get(order.id).status == "delivered"


def test_on_the_way_alias_is_read_as_in_transit(clock):
    tracking = DeliveryTracking(
        id="trk_1", order_id="o1", order_number="ORD-000001", status="on_the_way", created_at=clock(), updated_at=clock()
    )
    assert tracking.status == "in_transit"
    assert TRACKING_SEQUENCE[tracking.position + 1] == "nearby"


def test_cancelled_order_blocks_tracking(shop, out_for_delivery, driver, admin):
    order, tracking = out_for_delivery()
    shop.machine.cancel(order.id, admin).unwrap()
    assert shop.repos.orders.get(order.id).status == "cancelled"

    result = shop.delivery.advance(tracking.id, driver)
    assert isinstance(result.error, IllegalTransition)
    assert shop.repos.trackings.get(tracking.id).status == "picked_up"
    assert isinstance(shop.delivery.complete(tracking.id, driver).error, IllegalTransition)


def test_delivered_fails_when_order_cannot_be_delivered(shop, place, admin, driver):
    # Order stays confirmed, so the pickup coupling never fires
    order = place()
    shop.machine.confirm(order.id, admin).unwrap()
    tracking = shop.delivery.assign_driver(order.id, driver, admin).unwrap()
    for _ in range(4):
        tracking = shop.delivery.advance(tracking.id, driver).unwrap()
    assert tracking.status == "nearby"

    result = shop.delivery.advance(tracking.id, driver)
    assert isinstance(result.error, IllegalTransition)
    assert shop.repos.trackings.get(tracking.id).status == "nearby"
    assert shop.repos.orders.get(order.id).status == "confirmed"


def test_complete_with_proof(shop, out_for_delivery, driver, notifier):
    order, tracking = out_for_delivery()
    done = shop.delivery.complete(tracking.id, driver, notes="Left at door", signature="sig.png", photo="door.jpg")
    assert done.ok
    tracking = done.value
    assert tracking.status == "delivered"
    assert tracking.proof.signature == "sig.png"
    assert tracking.proof.photo == "door.jpg"
    assert tracking.delivered_at is not None
    assert shop.repos.orders.get(order.id).status == "delivered"
    assert notifier.kinds()[-1] == "order_delivered"


def test_complete_before_pickup_is_illegal(assigned, shop, driver):
    _, tracking = assigned
    result = shop.delivery.complete(tracking.id, driver)
    assert isinstance(result.error, IllegalTransition)


def test_update_location(assigned, shop, driver, other_driver):
    _, tracking = assigned
    moved = shop.delivery.update_location(tracking.id, 25.2048, 55.2708, driver).unwrap()
    assert moved.current_location.latitude == 25.2048
    assert moved.status == "preparing"
    assert isinstance(shop.delivery.update_location(tracking.id, 1, 1, other_driver).error, Unauthorized)
    assert isinstance(shop.delivery.update_location(tracking.id, 91, 1, driver).error, InvalidRequest)


def test_unknown_tracking(shop, driver):
    assert shop.delivery.advance("trk_missing", driver).error.kind == "NotFound"


def test_order_with_active_delivery_is_delivered_through_its_tracking(shop, out_for_delivery, driver, admin):
    order, tracking = out_for_delivery()

    result = shop.machine.transition(order.id, "delivered", admin)
    assert isinstance(result.error, IllegalTransition)
    assert shop.repos.orders.get(order.id).status == "out_for_delivery"
    assert shop.repos.trackings.get(tracking.id).status == "picked_up"

    for _ in range(3):
        tracking = shop.delivery.advance(tracking.id, driver).unwrap()
    assert tracking.status == "delivered"
    assert shop.repos.orders.get(order.id).status == "delivered"


def test_order_without_tracking_can_be_delivered_directly(shop, place, admin):
    order = place()
    for status in ("confirmed", "processing", "out_for_delivery", "delivered"):
        shop.machine.transition(order.id, status, admin).unwrap()
    assert shop.repos.orders.get(order.id).status == "delivered"
