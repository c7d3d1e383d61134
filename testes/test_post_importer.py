import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wxr_importer.importers.post_importer import (
    blocks_to_changes,
    build_changes,
    format_publish_time,
    import_post,
)
from wxr_importer.models.session import WXRPostData
from wxr_importer.parsers.block_schema import node, paragraph


def make_post(**kw):
    base = dict(
        id=1,
        title="Hello World",
        slug="hello-world",
        content="<p>Hi</p>",
        post_date_gmt="2020-01-01 10:00:00",
        categories=["News, Updates", "Tips &amp; Tricks"],
        tags=[],
    )
    base.update(kw)
    return WXRPostData(**base)


def metadata(changes):
    return {c["key"]: c["value"] for c in changes if c["op"] == "setMetadata"}


def test_format_publish_time():
    assert format_publish_time("2020-01-01 10:00:00") == "Wed Jan 01 2020"
    assert format_publish_time("0000-00-00 00:00:00") is None
    assert format_publish_time(None) is None
    assert format_publish_time("yesterday") is None


def test_build_changes_metadata_order_and_values():
    changes = build_changes(make_post(), [], display_author="Alice")
    assert [c["key"] for c in changes] == ["name", "displayPublishTime", "displayAuthor", "importCategories"]
    assert metadata(changes) == {
        "name": "Hello World",
        "displayPublishTime": "Wed Jan 01 2020",
        "displayAuthor": "Alice",
        "importCategories": "News Updates,Tips & Tricks",
    }


def test_authored_post_has_no_display_author():
    assert "displayAuthor" not in metadata(build_changes(make_post(), []))


def test_blocks_to_changes_keeps_order_and_nesting():
    child = node(paragraph("child"))
    first = node(paragraph("first"), [child])
    second = node(paragraph("second"))
    changes = blocks_to_changes([first, second])
    moves = [c for c in changes if c["op"] == "moveBlock"]
    first_id = first["block"]["id"]
    assert moves[0] == {"op": "moveBlock", "blockId": first_id, "parent": "", "leftSibling": ""}
    assert moves[1]["blockId"] == child["block"]["id"] and moves[1]["parent"] == first_id
    assert moves[2]["blockId"] == second["block"]["id"] and moves[2]["leftSibling"] == first_id
    assert [c["op"] for c in changes] == ["moveBlock", "replaceBlock"] * 3


def test_fresh_document_is_created(documents):
    result = import_post(
        make_post(),
        documents,
        destination_uid="uid1",
        document_path=["blog", "posts", "hello-world"],
        signing_key_name="publisher",
    )
    assert result == "imported"
    call = documents.calls[0]
    assert call["path"] == "/blog/posts/hello-world"
    assert call["base_version"] is None
    assert any(c["op"] == "replaceBlock" and c["block"]["text"] == "Hi" for c in call["changes"])


def test_existing_document_is_skipped_without_overwrite(documents):
    documents.docs[("uid1", "/p")] = {"version": "v9"}
    result = import_post(
        make_post(), documents, destination_uid="uid1", document_path=["p"], signing_key_name="k"
    )
    assert result == "skipped"
    assert documents.calls == []


def test_overwrite_uses_existing_version(documents):
    documents.docs[("uid1", "/p")] = {"version": "v9"}
    result = import_post(
        make_post(),
        documents,
        destination_uid="uid1",
        document_path=["p"],
        signing_key_name="k",
        overwrite_existing=True,
        convert=lambda html, base_url, **kw: [],
    )
    assert result == "imported"
    assert documents.calls[0]["base_version"] == "v9"
    assert all(c["op"] == "setMetadata" for c in documents.calls[0]["changes"])
