"""
Per-entity mutual exclusion.

Every Order, DeliveryTracking, LedgerAccount and PromoCode has its own
re-entrant lock. Operations that touch several entities take all of their
locks in one `hold()` call; keys are acquired in sorted order so two
operations can never wait on each other in opposite order.
"""
from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


def tracking_key(tracking_id: str) -> str:
    return f"tracking:{tracking_id}"


def ledger_key(customer_id: str) -> str:
    return f"ledger:{customer_id}"


def promo_key(code: str) -> str:
    return f"promo:{code.strip().upper()}"


class EntityLocks:
    """Registry of one lock per entity key.

    Locks are weakly referenced: an entry lives only while some caller holds
    or waits on it, so the registry does not grow with every entity ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        acquired: list[threading.RLock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
