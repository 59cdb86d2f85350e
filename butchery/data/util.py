from __future__ import annotations

from typing import Literal, Optional

from ..config import get_config
from .backends.json_backend import JsonFileRecordStore
from .backends.memory_backend import InMemoryRecordStore
from .interface import RecordStore
from .repositories import Repositories


def get_record_store(kind: Optional[Literal["memory", "json"]] = None) -> RecordStore:
    config = get_config()
    kind = kind or config.storage_backend
    if kind == "memory":
        return InMemoryRecordStore()
    if kind == "json":
        # Reads from configured data folder
        return JsonFileRecordStore(data_dir=config.data_dir)
    raise ValueError(f"Unknown record store kind: {kind}")


def get_repositories(kind: Optional[Literal["memory", "json"]] = None) -> Repositories:
    return Repositories.from_store(get_record_store(kind))
