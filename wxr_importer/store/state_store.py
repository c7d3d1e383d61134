"""
Durable record of import sessions.

Each session owns two keys in the backing store:

``wxr-import-state:<id>``
    The :class:`WXRImportState` control record (phase and counters).
``wxr-import-file:<id>``
    The :class:`SeedImportFileV1` envelope with the import data.

``wxr-import-active`` points at the most recently started session so that
callers which only ever run one import can omit the id.

Progress updates on a session whose state has been cleared are ignored:
a cancelled import may still finish its in-flight post.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import ValidationError

from ..crypto.import_file import load_import_file
from ..models.session import ImportResults, SeedImportFileV1, WXRImportState
from ..utils.errors import ImportFileError
from ..utils.logs import log_message
from .kv import KeyValueStore

ACTIVE_KEY = "wxr-import-active"


def _state_key(import_id: str) -> str:
    return f"wxr-import-state:{import_id}"


def _file_key(import_id: str) -> str:
    return f"wxr-import-file:{import_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ImportStateStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    # -- session pointer -------------------------------------------------

    def active_import_id(self) -> Optional[str]:
        value = self.kv.get(ACTIVE_KEY)
        return value if isinstance(value, str) and value else None

    def resolve_id(self, import_id: Optional[str]) -> Optional[str]:
        return import_id or self.active_import_id()

    # -- state record ----------------------------------------------------

    def get(self, import_id: Optional[str] = None) -> Optional[WXRImportState]:
        import_id = self.resolve_id(import_id)
        if not import_id:
            return None
        raw = self.kv.get(_state_key(import_id))
        if raw is None:
            return None
        try:
            return WXRImportState.model_validate(raw)
        except ValidationError as e:
            log_message(f"Discarding unreadable import state {import_id}: {e}", level="WARNING")
            return None

    def set(self, state: WXRImportState, *, activate: bool = False) -> None:
        """Persist ``state``, stamping ``last_updated``."""
        state.last_updated = _now_ms()
        self.kv.set(_state_key(state.import_id), state.to_json_dict())
        if activate:
            self.kv.set(ACTIVE_KEY, state.import_id)

    def clear(self, import_id: Optional[str] = None) -> None:
        """Drop the state and the import file of a session."""
        import_id = self.resolve_id(import_id)
        if not import_id:
            return
        self.kv.delete(_state_key(import_id))
        self.kv.delete(_file_key(import_id))
        if self.active_import_id() == import_id:
            self.kv.delete(ACTIVE_KEY)

    def update_progress(
        self,
        import_id: str,
        post_id: int,
        imported_count: int,
        results: Optional[ImportResults] = None,
    ) -> None:
        state = self.get(import_id)
        if state is None:
            return
        state.imported_posts = imported_count
        state.last_imported_post_id = post_id
        if results is not None:
            state.results = results
        self.set(state)

    def mark_complete(self, import_id: str, results: Optional[ImportResults] = None) -> None:
        state = self.get(import_id)
        if state is None:
            return
        state.phase = "complete"
        state.error = None
        if results is not None:
            state.results = results
        self.set(state)

    def mark_error(self, import_id: str, message: str) -> None:
        state = self.get(import_id)
        if state is None:
            return
        state.phase = "error"
        state.error = message
        self.set(state)

    def has_resumable_import(self, import_id: Optional[str] = None) -> bool:
        state = self.get(import_id)
        return state is not None and state.is_resumable

    # -- import file -----------------------------------------------------

    def get_import_file(self, import_id: Optional[str] = None) -> Optional[SeedImportFileV1]:
        import_id = self.resolve_id(import_id)
        if not import_id:
            return None
        raw = self.kv.get(_file_key(import_id))
        if raw is None:
            return None
        return load_import_file(raw)

    def set_import_file(self, import_id: str, file: SeedImportFileV1) -> None:
        self.kv.set(_file_key(import_id), file.to_json_dict())

    def has_import_file(self, import_id: Optional[str] = None) -> bool:
        try:
            return self.get_import_file(import_id) is not None
        except ImportFileError:
            return False
