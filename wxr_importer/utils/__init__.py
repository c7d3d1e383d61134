"""
Utility helpers used by the importer.

This subpackage exposes slug and login normalization, cycle-safe path
resolution, taxonomy sanitizing and structured logging.  Redirect maps
and pre-flight checks are imported from their own modules.
"""

from .errors import EVENTS, report_error, report_ok
from .logs import log_message
from .paths import HierarchicalPathResolver
from .taxonomy import build_taxonomy_string, sanitize_taxonomy_value
from .wxr_utils import (
    create_author_key_name,
    extract_slug_from_link,
    fallback_author_login,
    get_author_display_name,
    is_email_usable_for_authored,
    normalize_author_login,
    normalize_wxr_slug,
)

__all__ = [
    "EVENTS",
    "report_error",
    "report_ok",
    "log_message",
    "HierarchicalPathResolver",
    "build_taxonomy_string",
    "sanitize_taxonomy_value",
    "create_author_key_name",
    "extract_slug_from_link",
    "fallback_author_login",
    "get_author_display_name",
    "is_email_usable_for_authored",
    "normalize_author_login",
    "normalize_wxr_slug",
]
