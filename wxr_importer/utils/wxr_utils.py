"""
Normalization helpers for WXR identifiers.

Author logins, slugs and signing key names all flow through this module
so that the parser, the import data builder and the orchestrator agree
on one normalized form.  Every function here is pure and deterministic;
the orchestrator relies on that to re-derive the same key names and
paths on resume.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata
from typing import Optional
from urllib.parse import unquote, urlparse

_CDATA_RE = re.compile(r"<!\[CDATA\[|\]\]>")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Path separators, query/fragment markers, whitespace and control chars.
_SLUG_BREAK_RE = re.compile(r"[/?#\s\x00-\x1f\x7f]+")
_KEY_SLUG_RE = re.compile(r"[^a-zA-Z0-9_-]+")

KEY_SLUG_MAX_LENGTH = 32


def strip_cdata(value: str) -> str:
    if not value:
        return ""
    return _CDATA_RE.sub("", value)


def normalize_author_login(value: Optional[str]) -> str:
    """Trim, unwrap CDATA, lower-case and drop angle brackets."""
    if not value:
        return ""
    text = strip_cdata(value).strip().lower()
    return text.replace("<", "").replace(">", "").strip()


def fallback_author_login(post_id: int) -> str:
    return f"unknown-author-{post_id}"


def get_author_display_name(login: str, display_name: Optional[str] = None) -> str:
    name = (display_name or "").strip()
    return name or login


def is_email_usable_for_authored(email: Optional[str]) -> bool:
    """True for addresses shaped like ``local@domain.tld``."""
    return bool(email) and bool(_EMAIL_RE.match(email.strip()))


def normalize_wxr_slug(value: Optional[str], post_id: int) -> str:
    """
    Turn a raw slug or link segment into a single path segment.

    Percent-escapes are decoded, leading and trailing slashes dropped, and
    any run of slashes, ``?``, ``#``, whitespace or control characters is
    collapsed into one hyphen.  An empty result falls back to
    ``post-<id>``.
    """
    text = unquote(value or "").strip().strip("/")
    text = _SLUG_BREAK_RE.sub("-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text or f"post-{post_id}"


def extract_slug_from_link(link: Optional[str]) -> Optional[str]:
    """Return the last path segment of a permalink, or ``None``."""
    if not link:
        return None
    try:
        path = urlparse(link.strip()).path
    except ValueError:
        return None
    path = unquote(path or "").strip("/")
    if not path:
        return None
    segment = path.split("/")[-1].strip()
    return segment or None


def _ascii_slug(value: str) -> str:
    text = unicodedata.normalize("NFKD", value)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _KEY_SLUG_RE.sub("-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text[:KEY_SLUG_MAX_LENGTH].strip("-")


def create_author_key_name(scope: str, login: str) -> str:
    """
    Deterministic signing key name for an author within an import scope.

    The scope is ``<destinationUid>:<siteUrl>``.  The readable part is the
    slugified login; the suffix is an 8-hex digest of ``scope:login`` so
    that the same login under two scopes gets two different keys.
    """
    normalized = normalize_author_login(login)
    slug = _ascii_slug(normalized) or "author"
    digest = hashlib.sha256(f"{scope}:{normalized}".encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"
