from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from ..domain.models import DeliveryTracking, LedgerAccount, Order, PromoCode
from .filters import OrderFilters, TrackingFilters
from .interface import (
    LedgerRepository,
    OrderRepository,
    PromoCodeRepository,
    Record,
    RecordStore,
    TrackingRepository,
)

M = TypeVar("M", bound=BaseModel)

ORDERS = "orders"
TRACKINGS = "delivery_tracking"
LEDGERS = "ledger_accounts"
PROMOS = "promo_codes"


@dataclass(frozen=True)
class _Kind:
    namespace: str
    key_of: Callable[[BaseModel], str]


# Explicit keys per entity type, no string-built storage keys elsewhere
_KINDS: dict[type, _Kind] = {
    Order: _Kind(ORDERS, lambda o: o.id),
    DeliveryTracking: _Kind(TRACKINGS, lambda t: t.id),
    LedgerAccount: _Kind(LEDGERS, lambda a: a.customer_id),
    PromoCode: _Kind(PROMOS, lambda p: p.code),
}


def to_record(entity: BaseModel) -> Record:
    kind = _KINDS.get(type(entity))
    if kind is None:
        raise TypeError(f"No storage namespace registered for {type(entity).__name__}")
    return Record(kind.namespace, kind.key_of(entity), entity.model_dump(mode="json"))


class _RecordRepository(Generic[M]):
    """Typed view over one namespace of a RecordStore."""

    model: Type[M]
    namespace: str

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _get(self, key: str) -> Optional[M]:
        data = self.store.read(self.namespace, key)
        return self.model.model_validate(data) if data is not None else None

    def _all(self) -> list[M]:
        return [self.model.model_validate(d) for d in self.store.read_all(self.namespace)]

    def put(self, entity: M) -> None:
        self.store.write([to_record(entity)])


class StoreOrderRepository(_RecordRepository[Order], OrderRepository):
    model = Order
    namespace = ORDERS

    def get(self, order_id: str) -> Optional[Order]:
        return self._get(order_id)

    def get_by_number(self, order_number: str) -> Optional[Order]:
        for order in self._all():
            if order.order_number == order_number:
                return order
        return None

    def list(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        orders = [o for o in self._all() if filters is None or filters.matches(o)]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def next_order_number(self) -> str:
        return f"ORD-{self.store.next_sequence('order_number'):06d}"


class StoreTrackingRepository(_RecordRepository[DeliveryTracking], TrackingRepository):
    model = DeliveryTracking
    namespace = TRACKINGS

    def get(self, tracking_id: str) -> Optional[DeliveryTracking]:
        return self._get(tracking_id)

    def get_for_order(self, order_id: str) -> Optional[DeliveryTracking]:
        for tracking in self._all():
            if tracking.order_id == order_id:
                return tracking
        return None

    def list(self, filters: Optional[TrackingFilters] = None) -> list[DeliveryTracking]:
        trackings = [t for t in self._all() if filters is None or filters.matches(t)]
        trackings.sort(key=lambda t: t.created_at, reverse=True)
        return trackings


class StoreLedgerRepository(_RecordRepository[LedgerAccount], LedgerRepository):
    model = LedgerAccount
    namespace = LEDGERS

    def get(self, customer_id: str) -> Optional[LedgerAccount]:
        return self._get(customer_id)

    def list(self) -> list[LedgerAccount]:
        return self._all()


class StorePromoCodeRepository(_RecordRepository[PromoCode], PromoCodeRepository):
    model = PromoCode
    namespace = PROMOS

    def get(self, code: str) -> Optional[PromoCode]:
        return self._get(code.strip().upper())

    def list(self) -> list[PromoCode]:
        return self._all()


@dataclass
class Repositories:
    """The repositories the services are wired with, sharing one RecordStore."""
    store: RecordStore
    orders: OrderRepository
    trackings: TrackingRepository
    ledgers: LedgerRepository
    promos: PromoCodeRepository

    @classmethod
    def from_store(cls, store: RecordStore) -> "Repositories":
        return cls(
            store=store,
            orders=StoreOrderRepository(store),
            trackings=StoreTrackingRepository(store),
            ledgers=StoreLedgerRepository(store),
            promos=StorePromoCodeRepository(store),
        )

    def commit(self, *entities: BaseModel) -> None:
        """Persist entities of any registered kind as one atomic write."""
        if entities:
            self.store.write([to_record(e) for e in entities])
