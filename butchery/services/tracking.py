"""
Delivery tracking state machine.

A tracking record moves strictly forward through TRACKING_SEQUENCE, one step
per call, driven by the assigned driver. Two steps are coupled to the order:
reaching `picked_up` puts the order out for delivery, and reaching
`delivered` delivers the order. Both records are written in the same commit
while holding both locks.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..data.repositories import Repositories
from ..domain.errors import IllegalTransition, InvalidRequest, NoFurtherTransition, NotFound, Unauthorized
from ..domain.models import (
    Actor,
    DeliveryProof,
    DeliveryTracking,
    Location,
    Order,
    TimelineEntry,
    TRACKING_SEQUENCE,
)
from ..domain.result import Result
from ..domain.util import new_id, utc_now
from ..logging import get_logger
from .locks import EntityLocks, order_key, tracking_key
from .orders import Effects, OrderStatusMachine

ASSIGNABLE_ORDER_STATUSES = frozenset({"confirmed", "processing", "ready_for_pickup", "out_for_delivery"})
PICKUP_FROM = frozenset({"processing", "ready_for_pickup"})
CLOSED_ORDER_STATUSES = frozenset({"cancelled", "refunded"})


class DeliveryTrackingMachine:
    def __init__(
        self,
        repos: Repositories,
        orders: OrderStatusMachine,
        locks: Optional[EntityLocks] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repos = repos
        self.orders = orders
        self.locks = locks or EntityLocks()
        self.clock = clock
        self.logger = get_logger(__name__)

    def get(self, tracking_id: str) -> Optional[DeliveryTracking]:
        return self.repos.trackings.get(tracking_id)

    def for_order(self, order_id: str) -> Optional[DeliveryTracking]:
        return self.repos.trackings.get_for_order(order_id)

    # ---------- assignment ----------

    def assign_driver(self, order_id: str, driver: Actor, actor: Actor) -> Result[DeliveryTracking]:
        """Create the order's tracking record, or hand an undelivered one to another driver."""
        if not actor.is_back_office:
            return Result.failure(Unauthorized("Only admin or staff may assign drivers", actor_id=actor.id))
        if driver.role != "delivery":
            return Result.failure(InvalidRequest(f"{driver.id} is not a delivery driver", field="driver"))

        while True:
            existing = self.repos.trackings.get_for_order(order_id)
            keys = [order_key(order_id)]
            if existing is not None:
                keys.append(tracking_key(existing.id))
            with self.locks.hold(*keys):
                tracking = self.repos.trackings.get_for_order(order_id)
                if (tracking and tracking.id) != (existing and existing.id):
                    # A record was created between the lookup and the lock
                    continue
                return self._assign_locked(order_id, tracking, driver, actor)

    def _assign_locked(
        self, order_id: str, tracking: Optional[DeliveryTracking], driver: Actor, actor: Actor
    ) -> Result[DeliveryTracking]:
        order = self.repos.orders.get(order_id)
        if order is None:
            return Result.failure(NotFound(f"Order {order_id} not found", entity="order", key=order_id))
        if order.status not in ASSIGNABLE_ORDER_STATUSES:
            return Result.failure(
                IllegalTransition(
                    f"Cannot assign a driver to order {order.order_number} in status {order.status}",
                    current=order.status,
                )
            )

        now = self.clock()
        if tracking is None:
            tracking = DeliveryTracking(
                id=new_id("trk"),
                order_id=order.id,
                order_number=order.order_number,
                driver_id=driver.id,
                timeline=[TimelineEntry(status="preparing", timestamp=now, notes=f"Assigned to driver {driver.id}")],
                created_at=now,
                updated_at=now,
            )
        elif tracking.status == "delivered":
            return Result.failure(NoFurtherTransition(f"Order {order.order_number} is already delivered"))
        else:
            tracking.timeline.append(
                TimelineEntry(status=tracking.status, timestamp=now, notes=f"Reassigned to driver {driver.id}")
            )
            tracking.driver_id = driver.id
            tracking.updated_at = now
        self.repos.trackings.put(tracking)
        self.logger.info(f"Driver {driver.id} assigned to order {order.order_number} by {actor.id}")
        return Result.success(tracking)

    # ---------- progress ----------

    def advance(self, tracking_id: str, actor: Actor, notes: Optional[str] = None) -> Result[DeliveryTracking]:
        return self._step(tracking_id, actor, notes, proof=None)

    def complete(
        self,
        tracking_id: str,
        actor: Actor,
        notes: Optional[str] = None,
        signature: Optional[str] = None,
        photo: Optional[str] = None,
    ) -> Result[DeliveryTracking]:
        """Jump straight to `delivered` with proof of delivery; legal once picked up."""
        proof = DeliveryProof(signature=signature, photo=photo, notes=notes)
        return self._step(tracking_id, actor, notes, proof=proof)

    def _step(
        self, tracking_id: str, actor: Actor, notes: Optional[str], proof: Optional[DeliveryProof]
    ) -> Result[DeliveryTracking]:
        snapshot = self.repos.trackings.get(tracking_id)
        if snapshot is None:
            return Result.failure(NotFound(f"Tracking {tracking_id} not found", entity="tracking", key=tracking_id))

        effects = Effects()
        with self.locks.hold(tracking_key(tracking_id), order_key(snapshot.order_id)):
            tracking = self.repos.trackings.get(tracking_id)
            order = self.repos.orders.get(tracking.order_id)
            result = self._move_locked(tracking, order, actor, notes, proof, effects)
            if not result.ok:
                self.logger.warning(f"Tracking {tracking_id} not moved: {result.error}")
                return result

        self.orders.settle(effects)
        return result

    def _move_locked(
        self,
        tracking: DeliveryTracking,
        order: Order,
        actor: Actor,
        notes: Optional[str],
        proof: Optional[DeliveryProof],
        effects: Effects,
    ) -> Result[DeliveryTracking]:
        if tracking.driver_id is None or actor.id != tracking.driver_id:
            return Result.failure(Unauthorized("Only the assigned driver may update this delivery", actor_id=actor.id))
        if tracking.status == "delivered":
            return Result.failure(NoFurtherTransition(f"Delivery of {tracking.order_number} is already complete"))

        if proof is not None:
            if tracking.position < TRACKING_SEQUENCE.index("picked_up"):
                return Result.failure(
                    IllegalTransition(
                        "Delivery cannot be completed before pickup",
                        current=tracking.status,
                        requested="delivered",
                    )
                )
            target = "delivered"
        else:
            target = TRACKING_SEQUENCE[tracking.position + 1]

        if order.status in CLOSED_ORDER_STATUSES:
            return Result.failure(
                IllegalTransition(
                    f"Order {order.order_number} is {order.status}",
                    current=order.status,
                    requested=target,
                )
            )

        order_changed = False
        extra = []
        if target == "picked_up" and order.status in PICKUP_FROM:
            prepared = self.orders.prepare(order, "out_for_delivery", actor.id, effects, notes="Picked up by driver")
            if not prepared.ok:
                return Result.failure(prepared.error)
            extra.extend(prepared.value)
            order_changed = True
        elif target == "delivered":
            prepared = self.orders.prepare(order, "delivered", actor.id, effects, notes=notes)
            if not prepared.ok:
                return Result.failure(prepared.error)
            extra.extend(prepared.value)
            order_changed = True

        now = self.clock()
        tracking.status = target
        tracking.timeline.append(TimelineEntry(status=target, timestamp=now, notes=notes))
        tracking.updated_at = now
        if target == "delivered":
            tracking.delivered_at = now
            tracking.proof = proof

        if order_changed:
            self.repos.commit(tracking, order, *extra)
        else:
            self.repos.trackings.put(tracking)
        self.logger.info(f"Delivery of {tracking.order_number} moved to {target} by {actor.id}")
        return Result.success(tracking)

    def update_location(self, tracking_id: str, latitude: float, longitude: float, actor: Actor) -> Result[DeliveryTracking]:
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            return Result.failure(InvalidRequest("Coordinates out of range", field="location"))
        with self.locks.hold(tracking_key(tracking_id)):
            tracking = self.repos.trackings.get(tracking_id)
            if tracking is None:
                return Result.failure(NotFound(f"Tracking {tracking_id} not found", entity="tracking", key=tracking_id))
            if tracking.driver_id is None or actor.id != tracking.driver_id:
                return Result.failure(Unauthorized("Only the assigned driver may report location", actor_id=actor.id))
            now = self.clock()
            tracking.current_location = Location(latitude=latitude, longitude=longitude, updated_at=now)
            tracking.updated_at = now
            self.repos.trackings.put(tracking)
        self.logger.debug(f"Driver {actor.id} at ({latitude}, {longitude}) for {tracking.order_number}")
        return Result.success(tracking)
