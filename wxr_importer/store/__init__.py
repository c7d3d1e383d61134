"""
Durable key-value backends and the import session store built on them.
"""

from .kv import (
    DuckDBKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    open_store,
)
from .state_store import ImportStateStore

__all__ = [
    "DuckDBKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "open_store",
    "ImportStateStore",
]
