import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from wxr_importer.migrators import seed_api
from wxr_importer.migrators.seed_api import RateLimiter, SeedClient, seed_headers, with_retries
from wxr_importer.utils.errors import DocumentNotFound


class FakeResponse:
    def __init__(self, status=200, payload=None, headers=None):
        self.status_code = status
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}
        self.content = b"{}" if payload is not None else b""

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(seed_api.time, "sleep", lambda s: None)


@pytest.fixture
def client():
    return SeedClient({"base_url": "http://daemon/", "api_token": "tok", "rpm": 60000})


def test_headers_include_token_only_when_set():
    assert seed_headers({"api_token": "abc"})["Authorization"] == "Bearer abc"
    assert "Authorization" not in seed_headers({})


def test_with_retries_retries_server_errors():
    responses = [FakeResponse(503), FakeResponse(429, headers={"Retry-After": "0"}), FakeResponse(200, {})]
    resp = with_retries(lambda: responses.pop(0))
    assert resp.status_code == 200
    assert responses == []


def test_with_retries_does_not_retry_client_errors():
    calls = []

    def fn():
        calls.append(1)
        return FakeResponse(400)

    with pytest.raises(requests.HTTPError):
        with_retries(fn)
    assert len(calls) == 1


def test_rate_limiter_waits_between_calls():
    slept = []
    clock = iter([100.0, 100.0, 100.5, 100.5])
    limiter = RateLimiter(rpm=60)
    limiter.wait(time_fn=lambda: next(clock), sleep_fn=slept.append)
    limiter.wait(time_fn=lambda: next(clock), sleep_fn=slept.append)
    assert slept == [pytest.approx(0.5)]


def test_list_keys(monkeypatch, client):
    seen = {}

    def fake_get(url, headers=None, params=None, timeout=None):
        seen["url"] = url
        seen["auth"] = headers.get("Authorization")
        return FakeResponse(200, {"keys": [{"name": "publisher", "publicKey": "z6Mk"}]})

    monkeypatch.setattr(seed_api.requests, "get", fake_get)
    keys = client.list_keys()
    assert seen == {"url": "http://daemon/api/daemon/keys", "auth": "Bearer tok"}
    assert keys[0].name == "publisher"
    assert keys[0].public_key == "z6Mk"


def test_missing_document_raises_not_found(monkeypatch, client):
    monkeypatch.setattr(seed_api.requests, "get", lambda url, **kw: FakeResponse(404))
    with pytest.raises(DocumentNotFound):
        client.get_document("uid1", "/posts/x")


def test_document_change_body(monkeypatch, client):
    sent = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        sent["url"] = url
        sent["body"] = json
        return FakeResponse(200, {"version": "v2"})

    monkeypatch.setattr(seed_api.requests, "post", fake_post)
    result = client.create_document_change("k", "uid1", "/p", [{"op": "setMetadata"}], "v1")
    assert result == {"version": "v2"}
    assert sent["url"] == "http://daemon/api/documents/changes"
    assert sent["body"] == {
        "signingKeyName": "k",
        "account": "uid1",
        "path": "/p",
        "changes": [{"op": "setMetadata"}],
        "baseVersion": "v1",
    }


def test_non_idempotent_requests_retry_only_on_429():
    responses = [FakeResponse(429, headers={"Retry-After": "0"}), FakeResponse(200, {})]
    assert with_retries(lambda: responses.pop(0), idempotent=False).status_code == 200

    calls = []

    def server_error():
        calls.append(1)
        return FakeResponse(503)

    with pytest.raises(requests.HTTPError):
        with_retries(server_error, idempotent=False)
    assert len(calls) == 1


def test_network_errors_are_retried_only_when_idempotent():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise requests.ConnectionError("reset")
        return FakeResponse(200, {})

    assert with_retries(flaky).status_code == 200
    assert len(calls) == 2

    calls.clear()
    with pytest.raises(requests.ConnectionError):
        with_retries(flaky, idempotent=False)
    assert len(calls) == 1


def test_document_change_is_not_resent_after_timeout(monkeypatch, client):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append(url)
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(seed_api.requests, "post", fake_post)
    with pytest.raises(requests.Timeout):
        client.create_document_change("k", "uid1", "/p", [])
    with pytest.raises(requests.Timeout):
        client.register_key(["w"] * 12, "author-1")
    assert len(calls) == 2


def test_each_client_keeps_its_own_rate():
    slow = SeedClient({"base_url": "http://a", "rpm": 60})
    fast = SeedClient({"base_url": "http://b", "rpm": 6000})
    assert slow.limiter is not fast.limiter
    assert slow.limiter.interval == pytest.approx(1.0)
    assert fast.limiter.interval == pytest.approx(0.01)
