from __future__ import annotations

import secrets
import string
from typing import Any, Dict, List, Optional

_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def new_block_id(length: int = 8) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


# --- Builders for common block nodes ---

def node(block: Dict[str, Any], children: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    n: Dict[str, Any] = {"block": block}
    if children:
        n["children"] = children
    return n


def _block(block_type: str, text: str = "", annotations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {
        "id": new_block_id(),
        "type": block_type,
        "text": text or "",
        "annotations": annotations or [],
        "attributes": {},
        "link": "",
    }


def paragraph(text: str = "", annotations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return _block("Paragraph", text, annotations)


def heading(text: str = "", annotations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return _block("Heading", text, annotations)


def code_block(text: str, language: Optional[str] = None) -> Dict[str, Any]:
    b = _block("Code", text)
    if language:
        b["attributes"]["language"] = language
    return b


def image_block(link: str, alt: Optional[str] = None) -> Dict[str, Any]:
    b = _block("Image", alt or "")
    b["link"] = link
    return b


def embed_block(link: str) -> Dict[str, Any]:
    b = _block("Embed")
    b["link"] = link
    b["attributes"]["view"] = "Content"
    return b


def container(children_type: str) -> Dict[str, Any]:
    """An empty paragraph whose children render as a list or quote."""
    b = paragraph()
    b["attributes"]["childrenType"] = children_type
    return b


def annotation(ann_type: str, starts: List[int], ends: List[int], link: Optional[str] = None) -> Dict[str, Any]:
    a: Dict[str, Any] = {"type": ann_type, "starts": list(starts), "ends": list(ends)}
    if link:
        a["link"] = link
    return a


# --- Minimal validator/normalizer ---

def validate_blocks(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Drop malformed nodes and empty text blocks without children.
    Blocks that carry a link (images, embeds) are kept even without text.
    """
    fixed: List[Dict[str, Any]] = []
    for n in nodes:
        if not isinstance(n, dict) or not isinstance(n.get("block"), dict):
            continue
        block = n["block"]
        children = validate_blocks(n.get("children") or [])
        if not block.get("text") and not block.get("link") and not children and block.get("type") != "Code":
            continue
        fixed.append(node(block, children))
    return fixed
