import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from wxr_importer.migrators.ports import CapabilityInfo, KeyInfo
from wxr_importer.store.kv import MemoryKeyValueStore
from wxr_importer.utils.errors import DocumentNotFound, configure_reports, report_dir


SAMPLE_WXR = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
  xmlns:excerpt="http://wordpress.org/export/1.2/excerpt/"
  xmlns:content="http://purl.org/rss/1.0/modules/content/"
  xmlns:dc="http://purl.org/dc/elements/1.1/"
  xmlns:wp="http://wordpress.org/export/1.2/"
  xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
  <title>Example Blog</title>
  <link>https://blog.example.com</link>
  <atom:link href="https://blog.example.com/feed/" rel="self" type="application/rss+xml"/>
  <wp:author>
    <wp:author_login><![CDATA[Alice]]></wp:author_login>
    <wp:author_email><![CDATA[alice@example.com]]></wp:author_email>
    <wp:author_display_name><![CDATA[Alice Almeida]]></wp:author_display_name>
  </wp:author>
  <wp:author>
    <wp:author_login><![CDATA[bob]]></wp:author_login>
    <wp:author_email></wp:author_email>
    <wp:author_display_name><![CDATA[Bob Barros]]></wp:author_display_name>
  </wp:author>
  <item>
    <title>Hello World</title>
    <link>https://blog.example.com/2020/01/hello-world/</link>
    <dc:creator><![CDATA[alice]]></dc:creator>
    <content:encoded><![CDATA[<p>Hello <strong>world</strong></p>]]></content:encoded>
    <excerpt:encoded><![CDATA[Short intro]]></excerpt:encoded>
    <wp:post_id>1</wp:post_id>
    <wp:post_date_gmt>2020-01-01 10:00:00</wp:post_date_gmt>
    <wp:post_name><![CDATA[hello-world-2]]></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_parent>0</wp:post_parent>
    <wp:post_type>post</wp:post_type>
    <category domain="category" nicename="news"><![CDATA[News, Updates]]></category>
    <category domain="post_tag" nicename="intro"><![CDATA[intro]]></category>
  </item>
  <item>
    <title>Second Post</title>
    <link>https://blog.example.com/?p=2</link>
    <dc:creator><![CDATA[bob]]></dc:creator>
    <content:encoded><![CDATA[Plain text body]]></content:encoded>
    <wp:post_id>2</wp:post_id>
    <wp:post_date_gmt>0000-00-00 00:00:00</wp:post_date_gmt>
    <wp:post_name><![CDATA[second-post]]></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>Unfinished</title>
    <link>https://blog.example.com/?p=3</link>
    <dc:creator><![CDATA[alice]]></dc:creator>
    <content:encoded><![CDATA[<p>draft</p>]]></content:encoded>
    <wp:post_id>3</wp:post_id>
    <wp:post_name><![CDATA[unfinished]]></wp:post_name>
    <wp:status>draft</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>Guest Post</title>
    <link></link>
    <dc:creator><![CDATA[carol]]></dc:creator>
    <content:encoded><![CDATA[<p>From a guest</p>]]></content:encoded>
    <wp:post_id>4</wp:post_id>
    <wp:post_name></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>About</title>
    <link>https://blog.example.com/about/</link>
    <dc:creator><![CDATA[alice]]></dc:creator>
    <content:encoded><![CDATA[<h2>About us</h2><p>We write.</p>]]></content:encoded>
    <wp:post_id>10</wp:post_id>
    <wp:post_name><![CDATA[about]]></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_parent>0</wp:post_parent>
    <wp:post_type>page</wp:post_type>
  </item>
  <item>
    <title>Team</title>
    <link>https://blog.example.com/about/team/</link>
    <dc:creator><![CDATA[alice]]></dc:creator>
    <content:encoded><![CDATA[<p>The team.</p>]]></content:encoded>
    <wp:post_id>11</wp:post_id>
    <wp:post_name><![CDATA[team]]></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_parent>10</wp:post_parent>
    <wp:post_type>page</wp:post_type>
  </item>
  <item>
    <title>logo</title>
    <link>https://blog.example.com/logo/</link>
    <wp:post_id>20</wp:post_id>
    <wp:post_parent>1</wp:post_parent>
    <wp:post_type>attachment</wp:post_type>
    <wp:attachment_url>https://blog.example.com/wp-content/uploads/logo.png</wp:attachment_url>
  </item>
</channel>
</rss>
"""


class SimulatedCrash(BaseException):
    """Stands in for the process dying between two posts."""


class FakeKeys:
    def __init__(self, existing=None):
        self.keys = {k.name: k for k in existing or []}
        self.registered = []
        self.mnemonics_issued = 0

    def list_keys(self):
        return list(self.keys.values())

    def register_key(self, mnemonic, name):
        public_key = f"pk-{name}"
        self.keys[name] = KeyInfo(name=name, public_key=public_key)
        self.registered.append(name)
        return public_key

    def gen_mnemonic(self):
        self.mnemonics_issued += 1
        return [f"word{self.mnemonics_issued}x{i}" for i in range(12)]


class FakeDocuments:
    def __init__(self):
        self.docs = {}
        self.calls = []
        self.fail_paths = set()
        self.crash_after = None
        self.before_write = None

    def get_document(self, account, path):
        doc = self.docs.get((account, path))
        if doc is None:
            raise DocumentNotFound(account, path)
        return doc

    def create_document_change(self, signing_key_name, account, path, changes, base_version=None):
        if self.crash_after is not None and len(self.calls) >= self.crash_after:
            raise SimulatedCrash()
        if self.before_write is not None:
            self.before_write(path)
        if path in self.fail_paths:
            raise RuntimeError(f"daemon rejected {path}")
        self.calls.append(
            {
                "signer": signing_key_name,
                "account": account,
                "path": path,
                "changes": changes,
                "base_version": base_version,
            }
        )
        version = f"v{len(self.calls)}"
        self.docs[(account, path)] = {"version": version}
        return {"version": version}


class FakeCapabilities:
    def __init__(self):
        self.caps = {}
        self.created = []
        self.fail = False

    def list_capabilities(self, account, path):
        return list(self.caps.get((account, path), []))

    def create_capability(self, account, delegate, role, path, signing_key_name):
        if self.fail:
            raise RuntimeError("capability service unavailable")
        self.caps.setdefault((account, path), []).append(CapabilityInfo(role=role, delegate=delegate))
        self.created.append((account, delegate, role, path, signing_key_name))


@pytest.fixture(autouse=True)
def reports(tmp_path):
    previous = report_dir()
    path = str(tmp_path / "reports")
    configure_reports(path)
    yield path
    configure_reports(previous)


@pytest.fixture
def sample_wxr():
    return SAMPLE_WXR


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def keys():
    return FakeKeys(existing=[KeyInfo(name="publisher", public_key="pk-publisher")])


@pytest.fixture
def documents():
    return FakeDocuments()


@pytest.fixture
def capabilities():
    return FakeCapabilities()


@pytest.fixture
def make_tool(kv, keys, documents, capabilities, reports):
    from wxr_importer.import_tool import WXRImportTool

    tools = []

    def factory(**overrides):
        import_cfg = {"store": "memory", "reports_dir": reports}
        import_cfg.update(overrides.pop("import_config", {}))
        tool = WXRImportTool(
            {"import": import_cfg},
            store=overrides.pop("store", kv),
            keys=overrides.pop("keys", keys),
            documents=overrides.pop("documents", documents),
            capabilities=overrides.pop("capabilities", capabilities),
            **overrides,
        )
        tools.append(tool)
        return tool

    yield factory
    for tool in tools:
        tool.close()
