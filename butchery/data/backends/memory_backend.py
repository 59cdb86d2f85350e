from __future__ import annotations

import json
import threading
from typing import Optional, Sequence

from ..interface import Record, RecordStore


class InMemoryRecordStore(RecordStore):
    """
    Process-local RecordStore.
    - Records are kept as serialised JSON text, so every read hands out a new copy
      and nothing outside the store can alias stored state.
    - A single lock makes batch writes atomic with respect to readers.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._namespaces: dict[str, dict[str, str]] = {}
        self._sequences: dict[str, int] = {}

    def read(self, namespace: str, key: str) -> Optional[dict]:
        with self._lock:
            raw = self._namespaces.get(namespace, {}).get(key)
        return json.loads(raw) if raw is not None else None

    def read_all(self, namespace: str) -> list[dict]:
        with self._lock:
            raws = list(self._namespaces.get(namespace, {}).values())
        return [json.loads(raw) for raw in raws]

    def write(self, records: Sequence[Record]) -> None:
        # Serialise first: a record that cannot be encoded aborts the whole batch
        encoded = [(r.namespace, r.key, json.dumps(r.data)) for r in records]
        with self._lock:
            for namespace, key, raw in encoded:
                self._namespaces.setdefault(namespace, {})[key] = raw

    def next_sequence(self, name: str) -> int:
        with self._lock:
            value = self._sequences.get(name, 0) + 1
            self._sequences[name] = value
            return value
