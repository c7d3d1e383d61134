from __future__ import annotations

import os
import threading

from . import errors

_lock = threading.Lock()


def log_message(message: str, level: str = "INFO") -> None:
    """Print ``[LEVEL] message`` and append it to ``import.log``."""
    print(f"[{level}] {message}")
    log_dir = errors.report_dir()
    with _lock:
        os.makedirs(log_dir, exist_ok=True)
        with open(os.path.join(log_dir, "import.log"), "a", encoding="utf-8") as f:
            f.write(f"{level}: {message}\n")
