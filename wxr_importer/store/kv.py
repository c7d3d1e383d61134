"""
Durable key-value backends.

The import state and the import file are two records in one key-value
space.  Three backends are provided:

* :class:`MemoryKeyValueStore` – process-local, for tests and dry runs.
* :class:`JsonFileKeyValueStore` – one JSON file per key in a directory,
  written atomically so a crash never leaves a half-written record.
* :class:`DuckDBKeyValueStore` – a single ``kv`` table in a DuckDB file.

Values are anything :func:`json.dumps` accepts.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from typing import Any, Dict, Optional, Protocol

import duckdb


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileKeyValueStore:
    def __init__(self, directory: str) -> None:
        self.directory = directory
        self._lock = threading.Lock()

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _UNSAFE_KEY_RE.sub("_", key) + ".json")

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        with self._lock:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)


class DuckDBKeyValueStore:
    def __init__(self, db_path: str, table_name: str = "kv") -> None:
        self.db_path = db_path
        self.table_name = table_name
        self._lock = threading.Lock()
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        with self._lock:
            con = duckdb.connect(database=self.db_path, read_only=False)
            try:
                con.execute(
                    f"CREATE TABLE IF NOT EXISTS {self.table_name} (key VARCHAR PRIMARY KEY, value VARCHAR)"
                )
            finally:
                con.close()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            con = duckdb.connect(database=self.db_path, read_only=False)
            try:
                row = con.execute(
                    f"SELECT value FROM {self.table_name} WHERE key = ?", [key]
                ).fetchone()
            finally:
                con.close()
        return json.loads(row[0]) if row else None

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock:
            con = duckdb.connect(database=self.db_path, read_only=False)
            try:
                con.execute(f"INSERT OR REPLACE INTO {self.table_name} VALUES (?, ?)", [key, raw])
            finally:
                con.close()

    def delete(self, key: str) -> None:
        with self._lock:
            con = duckdb.connect(database=self.db_path, read_only=False)
            try:
                con.execute(f"DELETE FROM {self.table_name} WHERE key = ?", [key])
            finally:
                con.close()


def open_store(cfg: Dict[str, Any]) -> KeyValueStore:
    """Build the backend named by ``cfg["store"]`` (``json``, ``duckdb`` or ``memory``)."""
    kind = str(cfg.get("store", "json")).lower()
    path = cfg.get("store_path") or os.path.join("data", "import_state")
    if kind == "memory":
        return MemoryKeyValueStore()
    if kind == "duckdb":
        if not path.endswith(".duckdb"):
            path = path + ".duckdb"
        return DuckDBKeyValueStore(path)
    if kind == "json":
        return JsonFileKeyValueStore(path)
    raise ValueError(f"Unknown state store backend: {kind!r}")
