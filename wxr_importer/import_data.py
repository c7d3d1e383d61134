"""
Turn a parsed export into the persistable import document.

:func:`create_import_data` builds the authors table, assigns every
publishable post and page its destination path and copies the post
payloads the importer needs.  :func:`preview_wxr` summarizes an export
before anything is imported.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from .extractors.wxr_parser import parse_wxr
from .migrators.ports import KeyService
from .models.session import (
    AuthorRecord,
    FallbackAuthor,
    ImportMode,
    PostEntry,
    PreviewAuthor,
    ProgressInfo,
    SeedImportData,
    SourceInfo,
    WXRPostData,
    WXRPreview,
)
from .models.wxr import WXRParseResult, WXRPost
from .utils.paths import HierarchicalPathResolver
from .utils.wxr_utils import (
    extract_slug_from_link,
    fallback_author_login,
    get_author_display_name,
    is_email_usable_for_authored,
    normalize_author_login,
    normalize_wxr_slug,
)


def _page_resolver(pages: List[WXRPost]) -> HierarchicalPathResolver[int]:
    pages_by_id: Dict[int, WXRPost] = {p.id: p for p in pages if p.id > 0}

    def segment_of(page_id: int) -> str:
        page = pages_by_id[page_id]
        return normalize_wxr_slug(page.slug, page.id)

    def parent_of(page_id: int) -> Optional[int]:
        parent_id = pages_by_id[page_id].parent_id
        if parent_id and parent_id > 0 and parent_id in pages_by_id:
            return parent_id
        return None

    return HierarchicalPathResolver(segment_of, parent_of)


def post_author_login(post: WXRPost) -> str:
    return normalize_author_login(post.author_login) or fallback_author_login(post.id)


def create_import_data(
    wxr: WXRParseResult,
    mode: ImportMode,
    keys: Optional[KeyService] = None,
) -> SeedImportData:
    """
    Build the import document for ``wxr``.

    In ``authored`` mode every author with a usable email gets a fresh
    mnemonic from ``keys``; that is the only call made to a service here.
    """
    if mode == "authored" and keys is None:
        raise ValueError("Authored imports need a key service to generate author mnemonics")

    all_posts = [*wxr.posts, *wxr.pages]
    resolver = _page_resolver([p for p in all_posts if p.type == "page"])

    # Build author entries from declared WXR author metadata.
    authors: Dict[str, AuthorRecord] = {}
    for author in wxr.authors:
        login = normalize_author_login(author.login)
        if not login:
            continue
        email = (author.email or "").strip()
        mnemonic = None
        if mode == "authored" and is_email_usable_for_authored(email):
            mnemonic = keys.gen_mnemonic()
        authors[login] = AuthorRecord(
            display_name=get_author_display_name(login, author.display_name),
            email=email,
            mnemonic=mnemonic,
        )

    posts: List[PostEntry] = []
    wxr_posts: Dict[int, WXRPostData] = {}

    for post in all_posts:
        if not post.is_publishable:
            continue

        login = post_author_login(post)
        if login not in authors:
            authors[login] = AuthorRecord(display_name=get_author_display_name(login), email="")

        # The permalink's last segment is the slug WordPress actually serves;
        # it can differ from wp:post_name.
        link_slug = extract_slug_from_link(post.link) if post.type == "post" else None
        slug = normalize_wxr_slug(link_slug or post.slug, post.id)

        if post.type == "post":
            path = ["posts", slug]
        elif post.type == "page" and post.id > 0:
            path = resolver.resolve(post.id)
        else:
            path = [slug]

        posts.append(PostEntry(id=post.id, path=path, author_login=login, imported=False))
        wxr_posts[post.id] = WXRPostData(
            id=post.id,
            title=post.title,
            slug=slug,
            content=post.content,
            post_date_gmt=post.post_date_gmt,
            categories=list(post.categories),
            tags=list(post.tags),
            link=post.link or None,
        )

    return SeedImportData(
        source=SourceInfo(
            type="wordpress-wxr",
            site_title=wxr.site_title,
            site_url=wxr.site_url,
            export_date=datetime.now(timezone.utc).isoformat(),
        ),
        authors=authors,
        image_cache={},
        progress=ProgressInfo(total_posts=len(posts), imported_posts=0, phase="pending"),
        posts=posts,
        wxr_posts=wxr_posts,
    )


def preview_wxr(wxr: Union[str, bytes, WXRParseResult]) -> WXRPreview:
    """
    Summarize an export: counts, declared authors and the authors whose
    posts would fall back to the publisher key in authored mode.
    """
    if not isinstance(wxr, WXRParseResult):
        wxr = parse_wxr(wxr)

    declared = wxr.author_map()
    fallback: Dict[str, FallbackAuthor] = {}
    for post in [*wxr.posts, *wxr.pages]:
        if not post.is_publishable:
            continue
        login = post_author_login(post)
        if login in fallback:
            continue
        author = declared.get(login)
        if author is None:
            fallback[login] = FallbackAuthor(
                login=login,
                display_name=get_author_display_name(login),
                email="",
                reason="missing_author_profile",
            )
        elif not is_email_usable_for_authored(author.email):
            fallback[login] = FallbackAuthor(
                login=login,
                display_name=get_author_display_name(login, author.display_name),
                email=author.email,
                reason="missing_email",
            )

    return WXRPreview(
        site_title=wxr.site_title,
        site_url=wxr.site_url,
        author_count=len(wxr.authors),
        post_count=len(wxr.posts),
        page_count=len(wxr.pages),
        authors=[
            PreviewAuthor(login=a.login, display_name=a.display_name, email=a.email)
            for a in wxr.authors
        ],
        authored_fallback_authors=list(fallback.values()),
    )
