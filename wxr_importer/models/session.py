"""
Records persisted for one import session.

Two records live side by side in the durable key-value space:

``SeedImportFileV1``
    The (possibly large, possibly encrypted) working document built from
    the export.  Its ``data`` is either a :class:`SeedImportData` or an
    opaque encrypted string.

``WXRImportState``
    The small control-plane record updated after every unit of work.

Field names are snake_case in Python and camelCase on disk.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Literal, Optional, Union

from pydantic import Field

from .wxr import CamelModel

IMPORT_FILE_FORMAT = "seed-import-v1"

ImportMode = Literal["ghostwritten", "authored"]
ImportPhase = Literal["pending", "authors", "posts", "complete", "error"]
ProgressPhase = Literal["parsing", "authors", "posts", "complete", "error"]


class SourceInfo(CamelModel):
    type: str = "wordpress-wxr"
    site_title: str = ""
    site_url: str = ""
    export_date: str = ""


class AuthorRecord(CamelModel):
    display_name: str
    email: str = ""
    mnemonic: Optional[List[str]] = None
    public_key: Optional[str] = None


class ProgressInfo(CamelModel):
    total_posts: int = 0
    imported_posts: int = 0
    last_imported_id: Optional[int] = None
    phase: ImportPhase = "pending"
    error: Optional[str] = None


class PostEntry(CamelModel):
    id: int
    path: List[str]
    author_login: str
    imported: bool = False


class WXRPostData(CamelModel):
    id: int
    title: str = ""
    slug: str = ""
    content: str = ""
    post_date_gmt: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    link: Optional[str] = None


class SeedImportData(CamelModel):
    source: SourceInfo = Field(default_factory=SourceInfo)
    authors: Dict[str, AuthorRecord] = Field(default_factory=dict)
    image_cache: Dict[str, str] = Field(default_factory=dict)
    progress: ProgressInfo = Field(default_factory=ProgressInfo)
    posts: List[PostEntry] = Field(default_factory=list)
    wxr_posts: Dict[int, WXRPostData] = Field(default_factory=dict)

    def remaining_posts(self) -> List[PostEntry]:
        return [p for p in self.posts if not p.imported]

    def processed_count(self) -> int:
        return sum(1 for p in self.posts if p.imported)


class SeedImportFileV1(CamelModel):
    format: str = IMPORT_FILE_FORMAT
    encrypted: bool = False
    data: Union[SeedImportData, str]


class ImportResultItem(CamelModel):
    path: List[str]
    title: str


class FailedResultItem(ImportResultItem):
    error: str


class ImportResults(CamelModel):
    imported: int = 0
    skipped: List[ImportResultItem] = Field(default_factory=list)
    failed: List[FailedResultItem] = Field(default_factory=list)

    @property
    def all_successful(self) -> bool:
        return not self.skipped and not self.failed


class WXRImportState(CamelModel):
    import_id: str
    is_authored: bool = False
    destination_uid: str
    destination_path: List[str] = Field(default_factory=list)
    publisher_key_name: str
    overwrite_existing: bool = False
    phase: ImportPhase = "pending"
    total_posts: int = 0
    imported_posts: int = 0
    last_imported_post_id: Optional[int] = None
    error: Optional[str] = None
    results: Optional[ImportResults] = None
    last_updated: int = 0

    @property
    def is_resumable(self) -> bool:
        return self.phase not in ("complete", "error")


class ImportProgress(CamelModel):
    phase: ProgressPhase
    total: int = 0
    completed: int = 0
    current_item: Optional[str] = None
    error: Optional[str] = None
    results: Optional[ImportResults] = None


ProgressCallback = Callable[[ImportProgress], None]


class WXRImportOptions(CamelModel):
    wxr_content: str
    destination_uid: str
    destination_path: List[str] = Field(default_factory=list)
    publisher_key_name: str
    mode: ImportMode = "ghostwritten"
    password: Optional[str] = None
    overwrite_existing: bool = False
    on_progress: Optional[ProgressCallback] = Field(default=None, exclude=True)


class PreviewAuthor(CamelModel):
    login: str
    display_name: str
    email: str = ""


class FallbackAuthor(PreviewAuthor):
    reason: Literal["missing_email", "missing_author_profile"]


class WXRPreview(CamelModel):
    site_title: str = ""
    site_url: str = ""
    author_count: int = 0
    post_count: int = 0
    page_count: int = 0
    authors: List[PreviewAuthor] = Field(default_factory=list)
    authored_fallback_authors: List[FallbackAuthor] = Field(default_factory=list)
