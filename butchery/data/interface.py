from __future__ import annotations

from typing import NamedTuple, Optional, Protocol, Sequence

from ..domain.models import DeliveryTracking, LedgerAccount, Order, PromoCode
from .filters import OrderFilters, TrackingFilters


class Record(NamedTuple):
    """One JSON-serialisable record addressed by (namespace, key)."""
    namespace: str
    key: str
    data: dict


# ---- Storage protocol ----

class RecordStore(Protocol):
    """
    Opaque key-value blob store standing in for the storefront's browser storage.

    IMPORTANT:
    - read/read_all return fresh copies; callers may mutate them freely.
    - write() applies every record of the batch or none of them.
    """

    def read(self, namespace: str, key: str) -> Optional[dict]:
        """Read one record, or None when absent."""
        ...

    def read_all(self, namespace: str) -> list[dict]:
        """Read every record of a namespace, in insertion order."""
        ...

    def write(self, records: Sequence[Record]) -> None:
        """Atomically upsert a batch of records."""
        ...

    def next_sequence(self, name: str) -> int:
        """Increment and return a named counter (first value is 1)."""
        ...


# ---- Repository protocols ----

class OrderRepository(Protocol):
    def get(self, order_id: str) -> Optional[Order]:
        """Get an order by id."""
        ...

    def get_by_number(self, order_number: str) -> Optional[Order]:
        """Get an order by its human readable number."""
        ...

    def list(self, filters: Optional[OrderFilters] = None) -> list[Order]:
        """List orders, newest first."""
        ...

    def put(self, order: Order) -> None:
        ...

    def next_order_number(self) -> str:
        """Allocate the next ORD-nnnnnn number."""
        ...


class TrackingRepository(Protocol):
    def get(self, tracking_id: str) -> Optional[DeliveryTracking]:
        ...

    def get_for_order(self, order_id: str) -> Optional[DeliveryTracking]:
        """Get the tracking owned by an order, if any."""
        ...

    def list(self, filters: Optional[TrackingFilters] = None) -> list[DeliveryTracking]:
        ...

    def put(self, tracking: DeliveryTracking) -> None:
        ...


class LedgerRepository(Protocol):
    def get(self, customer_id: str) -> Optional[LedgerAccount]:
        ...

    def list(self) -> list[LedgerAccount]:
        ...

    def put(self, account: LedgerAccount) -> None:
        ...


class PromoCodeRepository(Protocol):
    def get(self, code: str) -> Optional[PromoCode]:
        """Get a promo code; lookup is case-insensitive."""
        ...

    def list(self) -> list[PromoCode]:
        ...

    def put(self, promo: PromoCode) -> None:
        ...
