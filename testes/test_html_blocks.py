import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

from wxr_importer.parsers.html_blocks import html_to_blocks


BASE = "https://blog.example.com"


def blocks_of_type(nodes, t):
    return [n["block"] for n in nodes if n["block"]["type"] == t]


def all_blocks(nodes):
    for n in nodes:
        yield n["block"]
        yield from all_blocks(n.get("children") or [])


def test_paragraph_heading_and_inline_annotations():
    html = '<h2>Title</h2><p>Hello <strong>world</strong> <a href="/x">link</a>.</p>'
    nodes = html_to_blocks(html, BASE)
    assert [h["text"] for h in blocks_of_type(nodes, "Heading")] == ["Title"]
    para = blocks_of_type(nodes, "Paragraph")[0]
    assert para["text"] == "Hello world link."
    by_type = {a["type"]: a for a in para["annotations"]}
    assert by_type["Bold"]["starts"] == [6] and by_type["Bold"]["ends"] == [11]
    assert by_type["Link"]["starts"] == [12] and by_type["Link"]["ends"] == [16]
    assert by_type["Link"]["link"] == "https://blog.example.com/x"


def test_plain_text_body_is_split_on_blank_lines():
    nodes = html_to_blocks("First para\n\nSecond para")
    assert [b["text"] for b in blocks_of_type(nodes, "Paragraph")] == ["First para", "Second para"]


def test_nested_lists_become_children():
    html = "<ul><li>one</li><li>two<ol><li>nested</li></ol></li></ul>"
    nodes = html_to_blocks(html)
    assert len(nodes) == 1
    outer = nodes[0]
    assert outer["block"]["attributes"]["childrenType"] == "Unordered"
    items = outer["children"]
    assert [i["block"]["text"] for i in items] == ["one", "two"]
    inner = items[1]["children"][0]
    assert inner["block"]["attributes"]["childrenType"] == "Ordered"
    assert inner["children"][0]["block"]["text"] == "nested"


def test_blockquote_and_code():
    html = (
        "<blockquote><p>quoted</p></blockquote>"
        '<pre><code class="language-python">print(1)\n</code></pre>'
    )
    nodes = html_to_blocks(html)
    quote = nodes[0]
    assert quote["block"]["attributes"]["childrenType"] == "Blockquote"
    assert quote["children"][0]["block"]["text"] == "quoted"
    code = blocks_of_type(nodes, "Code")[0]
    assert code["text"] == "print(1)"
    assert code["attributes"]["language"] == "python"


def test_blockquote_keeps_inline_siblings_in_one_paragraph():
    nodes = html_to_blocks("<blockquote><strong>Hello</strong> <em>world</em></blockquote>")
    quote = nodes[0]
    assert [c["block"]["text"] for c in quote["children"]] == ["Hello world"]
    by_type = {a["type"]: a for a in quote["children"][0]["block"]["annotations"]}
    assert by_type["Bold"]["starts"] == [0] and by_type["Bold"]["ends"] == [5]
    assert by_type["Italic"]["starts"] == [6] and by_type["Italic"]["ends"] == [11]


def test_mixed_div_splits_only_at_block_children():
    html = "<div><em>one</em> <b>two</b>\n<p>three</p>\n<i>four</i></div>"
    texts = [b["text"] for b in blocks_of_type(html_to_blocks(html), "Paragraph")]
    assert texts == ["one two", "three", "four"]


def test_images_use_upload_hook_when_available():
    html = '<p><img src="/a.png" alt="A"/></p>'
    uploaded = []

    def upload(url):
        uploaded.append(url)
        return "bafy123"

    image = blocks_of_type(html_to_blocks(html, BASE, upload_image=upload), "Image")[0]
    assert uploaded == ["https://blog.example.com/a.png"]
    assert image["link"] == "ipfs://bafy123"
    assert image["text"] == "A"

    image = blocks_of_type(html_to_blocks(html, BASE), "Image")[0]
    assert image["link"] == "https://blog.example.com/a.png"


def test_failed_upload_keeps_original_url():
    html = '<img src="https://cdn.example.com/b.jpg">'
    image = blocks_of_type(html_to_blocks(html, upload_image=lambda url: None), "Image")[0]
    assert image["link"] == "https://cdn.example.com/b.jpg"


def test_caption_shortcode_is_stripped():
    html = '[caption id="attachment_5"]<img src="https://x.com/a.png" alt="a"/> A caption[/caption]'
    texts = [b["text"] for b in all_blocks(html_to_blocks(html))]
    assert not any("[caption" in t or "[/caption" in t for t in texts)
    assert "A caption" in texts


def test_embeds_tables_and_scripts():
    html = (
        '<iframe src="https://www.youtube.com/embed/abc"></iframe>'
        "<table><tr><th>a</th><td>b</td></tr></table>"
        "<script>alert(1)</script><hr/>"
    )
    nodes = html_to_blocks(html)
    embed = blocks_of_type(nodes, "Embed")[0]
    assert embed["link"] == "https://www.youtube.com/embed/abc"
    assert embed["attributes"]["view"] == "Content"
    assert [b["text"] for b in blocks_of_type(nodes, "Paragraph")] == ["a | b"]


def test_block_ids_are_unique():
    html = "<p>a</p><p>b</p><ul><li>c</li><li>d</li></ul>"
    ids = [b["id"] for b in all_blocks(html_to_blocks(html))]
    assert len(ids) == len(set(ids)) == 5


def test_empty_body_gives_no_blocks():
    assert html_to_blocks("") == []
    assert html_to_blocks("<p>   </p>") == []
