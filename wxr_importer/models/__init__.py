"""
Typed records shared across the importer.

:mod:`wxr_importer.models.wxr` holds the parsed export model and
:mod:`wxr_importer.models.session` the persisted import session records.
"""

from .wxr import WXRAuthor, WXRMedia, WXRParseResult, WXRPost
from .session import (
    AuthorRecord,
    ImportProgress,
    ImportResultItem,
    ImportResults,
    FailedResultItem,
    PostEntry,
    SeedImportData,
    SeedImportFileV1,
    WXRImportOptions,
    WXRImportState,
    WXRPostData,
    WXRPreview,
    IMPORT_FILE_FORMAT,
)

__all__ = [
    "WXRAuthor",
    "WXRMedia",
    "WXRParseResult",
    "WXRPost",
    "AuthorRecord",
    "ImportProgress",
    "ImportResultItem",
    "ImportResults",
    "FailedResultItem",
    "PostEntry",
    "SeedImportData",
    "SeedImportFileV1",
    "WXRImportOptions",
    "WXRImportState",
    "WXRPostData",
    "WXRPreview",
    "IMPORT_FILE_FORMAT",
]
