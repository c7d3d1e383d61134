from __future__ import annotations

from html import unescape
import re
from typing import Iterable, List, Optional


def sanitize_taxonomy_value(value: str) -> str:
    """Unescape entities, turn commas into spaces and collapse whitespace.

    Commas are the list separator of the stored metadata value, so they
    cannot survive inside a single category or tag name.
    """
    if not value:
        return ""
    text = unescape(value).replace(",", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def sanitize_taxonomy_values(values: Iterable[str]) -> List[str]:
    result: List[str] = []
    for v in values or []:
        label = sanitize_taxonomy_value(v)
        if label:
            result.append(label)
    return result


def build_taxonomy_string(values: Iterable[str]) -> Optional[str]:
    """
    Join category or tag names into one comma-separated metadata value.

    Returns ``None`` when nothing is left after sanitizing, so callers can
    drop the metadata entry entirely.
    """
    sanitized = sanitize_taxonomy_values(values)
    return ",".join(sanitized) if sanitized else None
