"""
Exceptions and structured event reports for the import.

The :mod:`wxr_importer.utils.errors` module centralizes the writing of
report entries for both failed and successful operations during an
import.  Each entry is appended to a JSON Lines file under the reports
directory so that the information can be reviewed or parsed after a run.

Two public functions are provided:

``report_error``
    Record an error that occurred for a post.  An optional exception can be
    supplied and will be serialized to the log.

``report_ok``
    Record a successful step for a post or author.  Additional key/value
    information can be attached to the entry via the ``extra`` parameter.

The ``EVENTS`` dictionary maps error or event codes to human readable
messages.  Codes not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional


class WXRImportError(Exception):
    """Base class for import failures raised by this package."""


class ImportFileError(WXRImportError):
    """The import file envelope could not be decoded."""


class NoImportToResume(WXRImportError):
    """No session state or import file exists for the requested import."""


class ImportCancelled(WXRImportError):
    """The running import observed its cancellation token."""


class DocumentNotFound(WXRImportError):
    """The document service has no document at the requested path."""

    def __init__(self, account: str, path: str) -> None:
        super().__init__(f"Document not found: {account}{path}")
        self.account = account
        self.path = path


# Mapping of event codes used throughout the import to descriptive messages.
# The keys include both error and success codes as the same lookup is used by
# :func:`report_error` and :func:`report_ok`.
EVENTS: Dict[str, str] = {
    "POST_IMPORTED": "Post imported",
    "POST_SKIPPED": "Post skipped, document already exists",
    "POST_FAILED": "Failed to import post",
    "POST_DATA_MISSING": "Post data missing from import file",
    "AUTHOR_KEY_REGISTERED": "Author signing key registered",
    "AUTHOR_KEY_REUSED": "Author signing key already registered",
    "CAPABILITY_GRANTED": "Writer capability granted to author",
    "IMAGE_DOWNLOAD": "Failed to download image",
    "IMPORT_COMPLETE": "Import complete",
    "IMPORT_FAILED": "Import failed",
}

_REPORT_DIR = os.path.join("reports", "import")


def configure_reports(report_dir: str) -> None:
    """Point every report and log writer at ``report_dir``."""
    global _REPORT_DIR
    _REPORT_DIR = report_dir


def report_dir() -> str:
    return _REPORT_DIR


def _write_jsonl(filename: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline."""
    os.makedirs(_REPORT_DIR, exist_ok=True)
    with open(os.path.join(_REPORT_DIR, filename), "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
        f.write("\n")


def _entry(code: str, item: Dict[str, Any]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "code": code,
        "message": EVENTS.get(code, code),
    }
    for key in ("id", "title", "path", "login"):
        if key in item:
            entry[key] = item[key]
    return entry


def report_error(code: str, item: Dict[str, Any], exc: Optional[BaseException] = None) -> None:
    """Log an error event for ``item``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`EVENTS` its value will be used as the message.
    item:
        A dictionary describing the post or author.  Only the ``id``,
        ``title``, ``path`` and ``login`` keys are referenced if present.
    exc:
        Optional exception instance that triggered the error.  The string
        representation of the exception will be included in the log entry.
    """
    entry = _entry(code, item)
    if exc is not None:
        entry["error"] = str(exc)
    _write_jsonl("errors.jsonl", entry)


def report_ok(code: str, item: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> None:
    """Log a successful event for ``item``.

    ``extra`` is merged into the entry.
    """
    entry = _entry(code, item)
    if extra:
        entry.update(extra)
    _write_jsonl("success.jsonl", entry)
