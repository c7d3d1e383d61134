from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .block_schema import (
    annotation,
    code_block,
    container,
    embed_block,
    heading,
    image_block,
    node,
    paragraph,
    validate_blocks,
)

Mark = Tuple[str, Optional[str]]
Run = Tuple[str, Tuple[Mark, ...]]
Node = Dict[str, Any]

_WS_RE = re.compile(r"[ \t\r\n\f\v\xa0]+")
_INLINE_TAGS = {
    "span", "a", "strong", "b", "em", "i", "u", "s", "strike", "del",
    "code", "img", "br", "sup", "sub", "small", "mark", "abbr", "cite",
}
_BLOCK_START_RE = re.compile(
    r"^\s*<(p|div|h[1-6]|ul|ol|blockquote|pre|figure|table|hr|iframe|section|!--)",
    re.IGNORECASE,
)


def _autop(html: str) -> str:
    """
    Wrap blank-line separated chunks in ``<p>``.

    WordPress stores post bodies without paragraph tags and adds them
    when rendering; exports therefore separate paragraphs with blank lines.
    """
    if re.search(r"<p[\s>]", html, re.IGNORECASE):
        return html
    chunks = re.split(r"\n\s*\n", html)
    wrapped = []
    for chunk in chunks:
        if not chunk.strip():
            continue
        if _BLOCK_START_RE.match(chunk):
            wrapped.append(chunk)
        else:
            wrapped.append(f"<p>{chunk.strip()}</p>")
    return "\n".join(wrapped)


def _flatten(runs: List[Run]) -> Tuple[str, List[Dict[str, Any]]]:
    """Join inline runs into block text plus range annotations."""
    parts: List[str] = []
    spans: Dict[Mark, List[List[int]]] = {}
    pos = 0
    for text, marks in runs:
        if parts and parts[-1].endswith((" ", "\n")) and text.startswith(" "):
            text = text[1:]
        if not text:
            continue
        start, pos = pos, pos + len(text)
        parts.append(text)
        for mark in marks:
            ranges = spans.setdefault(mark, [])
            if ranges and ranges[-1][1] == start:
                ranges[-1][1] = pos
            else:
                ranges.append([start, pos])

    raw = "".join(parts)
    text = raw.strip()
    lead = len(raw) - len(raw.lstrip())
    end = lead + len(text)

    annotations: List[Dict[str, Any]] = []
    for (ann_type, link), ranges in spans.items():
        starts: List[int] = []
        ends: List[int] = []
        for s, e in ranges:
            s, e = max(s, lead) - lead, min(e, end) - lead
            if e > s:
                starts.append(s)
                ends.append(e)
        if starts:
            annotations.append(annotation(ann_type, starts, ends, link))
    annotations.sort(key=lambda a: (a["starts"][0], a["type"]))
    return text, annotations


def html_to_blocks(
    html: str,
    base_url: str = "",
    *,
    upload_image: Optional[Callable[[str], Optional[str]]] = None,
    resolve_link: Optional[Callable[[str], str]] = None,
) -> List[Node]:
    """
    Convert a WordPress post body to a block tree.

    Returns a list of ``{"block": {...}, "children": [...]}`` nodes.

    Covered:
    - Paragraphs, headings, lists (nested), blockquotes, code blocks,
      figures and images, iframes and videos as embeds.
    - Inline bold, italic, underline, strike, code and links become
      annotations with character offsets into the block text.
    - Tables are simplified to one paragraph per row.

    ``upload_image`` re-hosts an image URL and returns a content id; when
    it is missing or fails, the image keeps its original URL.
    ``resolve_link`` may rewrite link targets.
    """
    # Pre-process to remove WordPress shortcodes like [caption]
    cleaned = re.sub(r"\[/?caption[^\]]*\]", "", html or "", flags=re.IGNORECASE)
    soup = BeautifulSoup(_autop(cleaned), "html.parser")

    # Remove scripts/styles
    for bad in soup.find_all(["script", "style"]):
        bad.decompose()

    def absolute(url: str) -> str:
        return urljoin(base_url, url) if base_url else url

    def image_node(src: str, alt: Optional[str]) -> Node:
        src = absolute(src)
        link = src
        if upload_image:
            cid = upload_image(src)
            if cid:
                link = f"ipfs://{cid}"
        return node(image_block(link, alt))

    def attr(el: Tag, name: str) -> str:
        value = el.get(name)
        if isinstance(value, list):
            return value[0] if value else ""
        return value or ""

    def inline_runs(children, marks: Tuple[Mark, ...], runs: List[Run], deferred: List[Node]) -> None:
        for child in children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                runs.append((_WS_RE.sub(" ", str(child)), marks))
                continue
            if not isinstance(child, Tag):
                continue
            name = (child.name or "").lower()

            if name == "br":
                runs.append(("\n", marks))
                continue
            if name == "img":
                src = attr(child, "src")
                if src:
                    deferred.append(image_node(src, attr(child, "alt") or None))
                continue
            if name in ("ul", "ol"):
                deferred.append(list_node(child))
                continue

            new_marks = marks
            if name in ("strong", "b"):
                new_marks = marks + (("Bold", None),)
            elif name in ("em", "i"):
                new_marks = marks + (("Italic", None),)
            elif name == "u":
                new_marks = marks + (("Underline", None),)
            elif name in ("s", "strike", "del"):
                new_marks = marks + (("Strike", None),)
            elif name == "code":
                new_marks = marks + (("Code", None),)
            elif name == "a":
                href = attr(child, "href")
                if href:
                    href = absolute(href)
                    if resolve_link:
                        href = resolve_link(href)
                    new_marks = marks + (("Link", href),)

            inline_runs(child.children, new_marks, runs, deferred)

    def text_node(children, make=paragraph) -> List[Node]:
        runs: List[Run] = []
        deferred: List[Node] = []
        inline_runs(children, (), runs, deferred)
        text, annotations = _flatten(runs)
        out: List[Node] = []
        if text:
            out.append(node(make(text, annotations)))
        out.extend(deferred)
        return out

    def list_node(el: Tag) -> Node:
        ordered = (el.name or "").lower() == "ol"
        items: List[Node] = []
        for li in el.find_all("li", recursive=False):
            nested = [c for c in li.children if isinstance(c, Tag) and c.name in ("ul", "ol")]
            inline = [c for c in li.children if not any(c is n for n in nested)]
            runs: List[Run] = []
            deferred: List[Node] = []
            inline_runs(inline, (), runs, deferred)
            text, annotations = _flatten(runs)
            children = deferred + [list_node(n) for n in nested]
            items.append(node(paragraph(text, annotations), children))
        return node(container("Ordered" if ordered else "Unordered"), items)

    def handle_block(el: Tag) -> List[Node]:
        name = (el.name or "").lower()
        if name in {"h1", "h2", "h3", "h4", "h5", "h6"}:
            return text_node(el.children, heading)
        if name in {"ul", "ol"}:
            return [list_node(el)]
        if name == "blockquote":
            inner = walk(el)
            return [node(container("Blockquote"), inner)] if inner else []
        if name == "pre":
            # preformatted text, try to extract code text
            code_child = el.find("code")
            source = code_child if isinstance(code_child, Tag) else el
            language = None
            for cls in source.get("class") or []:
                if cls.startswith("language-"):
                    language = cls[len("language-"):]
            return [node(code_block(source.get_text().strip("\n"), language))]
        if name == "figure":
            img = el.find("img")
            if isinstance(img, Tag) and attr(img, "src"):
                caption = el.find("figcaption")
                alt = caption.get_text(" ", strip=True) if isinstance(caption, Tag) else attr(img, "alt")
                return [image_node(attr(img, "src"), alt or None)]
            embed = el.find(["iframe", "video"])
            if isinstance(embed, Tag):
                return handle_block(embed)
            return walk(el)
        if name == "table":
            rows: List[Node] = []
            for tr in el.find_all("tr"):
                cells = [c.get_text(" ", strip=True) for c in tr.find_all(["td", "th"], recursive=False)]
                cells = [c for c in cells if c]
                if cells:
                    rows.append(node(paragraph(" | ".join(cells))))
            return rows
        if name in {"iframe", "video", "embed"}:
            src = attr(el, "src")
            if not src:
                source = el.find("source")
                src = attr(source, "src") if isinstance(source, Tag) else ""
            return [node(embed_block(absolute(src)))] if src else []
        if name == "hr":
            return []
        if name in {"div", "section", "article", "main", "header", "footer", "aside"}:
            if any(isinstance(c, Tag) and c.name and c.name.lower() not in _INLINE_TAGS for c in el.children):
                return walk(el)
        # Paragraph-ish: p, inline wrappers and unknown tags
        return text_node(el.children)

    def walk(parent: Tag) -> List[Node]:
        """Traverse children, coalescing inline siblings into one paragraph."""
        out: List[Node] = []
        inline_run: List[Any] = []

        def flush_inline_run() -> None:
            if inline_run:
                out.extend(text_node(list(inline_run)))
                inline_run.clear()

        for child in parent.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                # whitespace between inline siblings is part of the run
                if inline_run or str(child).strip():
                    inline_run.append(child)
                continue
            if isinstance(child, Tag) and (child.name or "").lower() in _INLINE_TAGS:
                inline_run.append(child)
                continue
            # Block-level element encountered
            flush_inline_run()
            if isinstance(child, Tag):
                out.extend(handle_block(child))

        flush_inline_run()
        return out

    root = soup.body if soup.body else soup
    return validate_blocks(walk(root))
