"""
Write one WordPress post as one document.

:func:`import_post` is idempotent per path: an existing document is left
alone unless overwriting was requested, in which case the change is
applied on top of the existing version.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from ..migrators.ports import DocumentChange, DocumentService, HtmlToBlocks, entity_query_path
from ..models.session import WXRPostData
from ..parsers.html_blocks import html_to_blocks
from ..utils.errors import DocumentNotFound
from ..utils.logs import log_message
from ..utils.taxonomy import build_taxonomy_string

ImportPostResult = Literal["imported", "skipped"]


def set_metadata(key: str, value: str) -> DocumentChange:
    return {"op": "setMetadata", "key": key, "value": value}


def move_block(block_id: str, parent: str, left_sibling: str) -> DocumentChange:
    return {"op": "moveBlock", "blockId": block_id, "parent": parent, "leftSibling": left_sibling}


def replace_block(block: Dict[str, Any]) -> DocumentChange:
    return {"op": "replaceBlock", "block": block}


def format_publish_time(post_date_gmt: Optional[str]) -> Optional[str]:
    """``2020-01-01 10:00:00`` -> ``Wed Jan 01 2020``; unset dates give ``None``."""
    if not post_date_gmt or post_date_gmt.startswith("0000-00-00"):
        return None
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(post_date_gmt.strip(), fmt).strftime("%a %b %d %Y")
        except ValueError:
            continue
    return None


def blocks_to_changes(nodes: List[Dict[str, Any]], parent_id: str = "") -> List[DocumentChange]:
    """One move + replace pair per block, depth first, siblings in order."""
    changes: List[DocumentChange] = []
    last_block_id = ""
    for n in nodes:
        block = n.get("block", n)
        block_id = block.get("id", "")
        changes.append(move_block(block_id, parent_id, last_block_id))
        changes.append(replace_block(block))
        last_block_id = block_id
        if n.get("children"):
            changes.extend(blocks_to_changes(n["children"], block_id))
    return changes


def build_changes(
    post: WXRPostData,
    blocks: List[Dict[str, Any]],
    *,
    display_author: Optional[str] = None,
) -> List[DocumentChange]:
    changes: List[DocumentChange] = [set_metadata("name", post.title)]

    publish_time = format_publish_time(post.post_date_gmt)
    if publish_time:
        changes.append(set_metadata("displayPublishTime", publish_time))

    # Ghostwritten posts keep the original author for display only.
    if display_author:
        changes.append(set_metadata("displayAuthor", display_author))

    categories = build_taxonomy_string(post.categories)
    if categories:
        changes.append(set_metadata("importCategories", categories))

    tags = build_taxonomy_string(post.tags)
    if tags:
        changes.append(set_metadata("importTags", tags))

    changes.extend(blocks_to_changes(blocks))
    return changes


def import_post(
    post: WXRPostData,
    documents: DocumentService,
    *,
    destination_uid: str,
    document_path: List[str],
    signing_key_name: str,
    display_author: Optional[str] = None,
    overwrite_existing: bool = False,
    convert: Optional[HtmlToBlocks] = None,
    base_url: str = "",
    upload_image=None,
) -> ImportPostResult:
    """
    Import a single post as a document.

    Returns ``"imported"`` when a document was written and ``"skipped"``
    when one already exists and overwriting is off.  Any other failure
    propagates to the caller.
    """
    path = entity_query_path(document_path)

    base_version: Optional[str] = None
    try:
        existing = documents.get_document(destination_uid, path)
    except DocumentNotFound:
        existing = None

    if existing is not None:
        if not overwrite_existing:
            log_message(f"Document already exists at {path}, skipping (overwrite disabled)")
            return "skipped"
        base_version = existing.get("version") or None
        log_message(f"Document exists at {path}, overwriting (base_version: {base_version})")

    convert = convert or html_to_blocks
    blocks = convert(post.content, base_url, upload_image=upload_image, resolve_link=None)

    documents.create_document_change(
        signing_key_name,
        destination_uid,
        path,
        build_changes(post, blocks, display_author=display_author),
        base_version,
    )
    return "imported"
