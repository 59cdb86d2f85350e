from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Sequence

from ...config import get_config
from ...logging import get_logger
from ..interface import Record, RecordStore

STORE_FILE = "storefront.json"


class JsonFileRecordStore(RecordStore):
    """
    JSON-file backed RecordStore.
    - Loads `<data_dir>/storefront.json` once at construction (missing file = empty store).
    - Every write rewrites the whole document through a temp file and os.replace,
      so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, data_dir: str | Path = None) -> None:
        if data_dir is None:
            config = get_config()
            data_dir = config.data_dir

        self.data_dir = Path(data_dir)

        # If the path is relative, make it relative to the repository root
        if not self.data_dir.is_absolute():
            current = Path.cwd()
            repo_root = None

            for parent in [current] + list(current.parents):
                if (parent / "pyproject.toml").exists():
                    repo_root = parent
                    break

            self.data_dir = (repo_root or current) / self.data_dir

        self.path = self.data_dir / STORE_FILE
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._state = self._load(self.path)

    # ---------- loading / saving helpers ----------

    @staticmethod
    def _load(path: Path) -> dict:
        if not path.exists():
            return {"namespaces": {}, "sequences": {}}
        try:
            with path.open("r", encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise RuntimeError(
                f"Error reading record store {path}: {e}\n"
                f"Please check that the file is valid JSON, or remove it to start empty."
            ) from e
        state.setdefault("namespaces", {})
        state.setdefault("sequences", {})
        return state

    def _save(self, state: dict) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".storefront-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # ---------- interface implementation ----------

    def read(self, namespace: str, key: str) -> Optional[dict]:
        with self._lock:
            data = self._state["namespaces"].get(namespace, {}).get(key)
            return json.loads(json.dumps(data)) if data is not None else None

    def read_all(self, namespace: str) -> list[dict]:
        with self._lock:
            values = list(self._state["namespaces"].get(namespace, {}).values())
            return json.loads(json.dumps(values))

    def write(self, records: Sequence[Record]) -> None:
        with self._lock:
            # Build the next document on a copy; memory only changes once the file did
            state = json.loads(json.dumps(self._state))
            for record in records:
                state["namespaces"].setdefault(record.namespace, {})[record.key] = record.data
            self._save(state)
            self._state = state
        self.logger.debug(f"Wrote {len(records)} record(s) to {self.path}")

    def next_sequence(self, name: str) -> int:
        with self._lock:
            state = json.loads(json.dumps(self._state))
            value = state["sequences"].get(name, 0) + 1
            state["sequences"][name] = value
            self._save(state)
            self._state = state
            return value
