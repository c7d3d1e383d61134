"""
WordPress WXR (eXtended RSS) parser.

Parses a WordPress export and extracts authors, posts, pages and media.
Elements are matched by local name, so ``wp:author_login``,
``{http://wordpress.org/export/1.2/}author_login`` and a bare
``author_login`` are all the same field regardless of the export's
namespace version.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Union
import xml.etree.ElementTree as ET

from ..models.wxr import WXRAuthor, WXRMedia, WXRParseResult, WXRPost
from ..utils.wxr_utils import normalize_author_login, strip_cdata


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.rsplit(":", 1)[-1]


def _children(parent: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in parent:
        if _local_name(child.tag) == name:
            yield child


def _text(el: Optional[ET.Element]) -> str:
    if el is None:
        return ""
    return strip_cdata("".join(el.itertext())).strip()


def _child_text(parent: ET.Element, name: str, *, prefix: Optional[str] = None) -> str:
    """
    Text of the first child whose local name is ``name``.

    ``prefix`` narrows the match to a namespace whose URI contains it,
    which tells ``content:encoded`` apart from ``excerpt:encoded``.  An
    empty ``prefix`` only matches un-namespaced elements (plain RSS
    ``title``/``link``, as opposed to ``atom:link``).
    """
    for child in _children(parent, name):
        if prefix is not None and not _namespace_matches(child.tag, prefix):
            continue
        return _text(child)
    return ""


def _namespace_matches(tag: str, prefix: str) -> bool:
    if not prefix:
        return not tag.startswith("{") and ":" not in tag
    if tag.startswith("{"):
        return prefix in tag[1:].split("}", 1)[0]
    return tag.startswith(prefix + ":")


def _int(value: str) -> int:
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return 0


def _parse_author(el: ET.Element) -> Optional[WXRAuthor]:
    login = normalize_author_login(_child_text(el, "author_login"))
    if not login:
        return None
    return WXRAuthor(
        login=login,
        email=_child_text(el, "author_email"),
        display_name=_child_text(el, "author_display_name") or login,
        first_name=_child_text(el, "author_first_name") or None,
        last_name=_child_text(el, "author_last_name") or None,
    )


def _parse_taxonomies(item: ET.Element) -> tuple:
    categories: List[str] = []
    tags: List[str] = []
    for cat in _children(item, "category"):
        domain = cat.get("domain")
        label = _text(cat)
        if not label:
            continue
        if domain == "category":
            categories.append(label)
        elif domain == "post_tag":
            tags.append(label)
    return categories, tags


def _encoded_content(item: ET.Element) -> str:
    return (
        _child_text(item, "encoded", prefix="content")
        or _child_text(item, "encoded", prefix="")
    )


def _excerpt(item: ET.Element) -> str:
    return _child_text(item, "encoded", prefix="excerpt")


def _author_login(item: ET.Element) -> str:
    return normalize_author_login(_child_text(item, "creator"))


def parse_wxr(xml: Union[str, bytes]) -> WXRParseResult:
    """Parse a WordPress WXR export.

    Args:
        xml: The raw export document.

    Returns:
        WXRParseResult: site info, declared authors, posts, pages and
        attachments.  Attachments never appear in ``posts`` or ``pages``.

    Raises:
        ET.ParseError: If the document is not well-formed XML.
    """
    root = ET.fromstring(xml)
    channel = root if _local_name(root.tag) == "channel" else next(_children(root, "channel"), root)

    site_title = _child_text(channel, "title", prefix="")
    site_url = _child_text(channel, "link", prefix="")

    authors: List[WXRAuthor] = []
    for el in _children(channel, "author"):
        author = _parse_author(el)
        if author is not None:
            authors.append(author)

    posts: List[WXRPost] = []
    pages: List[WXRPost] = []
    attachments: List[WXRMedia] = []

    for item in _children(channel, "item"):
        post_type = _child_text(item, "post_type") or "post"
        post_id = _int(_child_text(item, "post_id"))
        title = _child_text(item, "title", prefix="")
        parent_id = _int(_child_text(item, "post_parent")) or None
        attachment_url = _child_text(item, "attachment_url") or None

        if post_type == "attachment":
            attachments.append(
                WXRMedia(
                    id=post_id,
                    url=attachment_url or "",
                    title=title,
                    parent_id=parent_id,
                )
            )
            continue

        categories, tags = _parse_taxonomies(item)
        post = WXRPost(
            id=post_id,
            title=title,
            slug=_child_text(item, "post_name"),
            link=_child_text(item, "link", prefix=""),
            content=_encoded_content(item),
            excerpt=_excerpt(item),
            status=_child_text(item, "status") or "publish",
            type=post_type,
            author_login=_author_login(item),
            pub_date=_child_text(item, "pubDate") or None,
            post_date=_child_text(item, "post_date") or None,
            post_date_gmt=_child_text(item, "post_date_gmt") or None,
            parent_id=parent_id,
            menu_order=_int(_child_text(item, "menu_order")) or None,
            attachment_url=attachment_url,
            categories=categories,
            tags=tags,
        )

        if post_type == "page":
            pages.append(post)
        elif post_type == "post":
            posts.append(post)

    return WXRParseResult(
        site_title=site_title,
        site_url=site_url,
        authors=authors,
        posts=posts,
        pages=pages,
        attachments=attachments,
    )


def parse_wxr_file(file_path: str) -> WXRParseResult:
    """Read an export from disk and parse it with :func:`parse_wxr`."""
    with open(file_path, "rb") as f:
        return parse_wxr(f.read())
