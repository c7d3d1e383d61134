"""
HTTP helpers for the hypermedia document daemon.

The daemon exposes its key, document, access-control and file APIs over
a local JSON gateway.  Every helper takes the ``seed`` configuration
section and an optional :class:`RateLimiter`; :class:`SeedClient` binds
both so that one object serves as key, document, capability and file
service for the importer.

Reads (and the side-effect free calls, such as mnemonic generation and
content-addressed uploads) are retried on network errors, 429 and 5xx.
Calls that change the daemon's state are retried only on 429, which the
daemon answers before applying anything.

Usage example::

    from wxr_importer.migrators.seed_api import SeedClient

    cfg = {"base_url": "http://localhost:56001", "api_token": "", "rpm": 600}
    client = SeedClient(cfg)
    keys = client.list_keys()
    doc = client.get_document("z6Mk...", "/posts/hello-world")

"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..utils.errors import DocumentNotFound
from .ports import CapabilityInfo, DocumentChange, KeyInfo

RETRY_STATUSES = (429, 500, 502, 503, 504)

###############################################################################
# Request pacing and retries
###############################################################################

class RateLimiter:
    """
    Spaces requests to one daemon at least ``60 / rpm`` seconds apart.

    A client owns its limiter; the importer's worker thread and the
    caller's thread (pre-flight checks, status calls) share it safely.
    """

    def __init__(self, rpm: int = 600) -> None:
        self.rpm = max(1, rpm)
        self.interval = 60.0 / float(self.rpm)
        self._last = 0.0
        self._lock = threading.Lock()

    def wait(self, time_fn: Callable[[], float] = time.time, sleep_fn: Callable[[float], None] = time.sleep) -> None:
        with self._lock:
            elapsed = time_fn() - self._last
            if elapsed < self.interval:
                sleep_fn(self.interval - elapsed)
            self._last = time_fn()


def seed_headers(cfg: Dict[str, Any]) -> Dict[str, str]:
    """
    Headers sent with every daemon request.

    :param cfg: The ``seed`` configuration section.
    :return: JSON accept header, plus a bearer token when ``api_token`` is set.
    """
    headers = {"Accept": "application/json"}
    if cfg.get("api_token"):
        headers["Authorization"] = f"Bearer {cfg['api_token']}"
    return headers


def _backoff(attempt: int, base_delay: float, response: Optional[requests.Response] = None) -> float:
    retry_after = response.headers.get("Retry-After") if response is not None else None
    if retry_after:
        return float(retry_after)
    return base_delay * (2 ** attempt)


def with_retries(
    fn: Callable[[], requests.Response],
    *,
    max_attempts: int = 5,
    base_delay: float = 0.7,
    idempotent: bool = True,
) -> requests.Response:
    """
    Perform a daemon request, retrying transient failures.

    Idempotent requests are retried on network errors and on 429 or 5xx
    answers.  Non-idempotent ones (document changes, key registration,
    capability grants) are retried on 429 only: after a timeout or a 5xx
    the change may already have been applied, and sending it again could
    duplicate it.  ``Retry-After`` overrides the exponential backoff.

    :param fn: A zero-argument callable that performs the HTTP request.
    :param max_attempts: Maximum number of attempts before giving up.
    :param base_delay: Base delay in seconds for exponential backoff.
    :param idempotent: Whether repeating the request is harmless.
    :return: The successful ``requests.Response``.
    :raises requests.RequestException: when the last attempt fails.
    """
    retry_statuses = RETRY_STATUSES if idempotent else (429,)
    attempt = 0
    while True:
        try:
            resp = fn()
            resp.raise_for_status()
            return resp
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status not in retry_statuses or attempt >= max_attempts - 1:
                raise
            time.sleep(_backoff(attempt, base_delay, e.response))
        except requests.RequestException:
            if not idempotent or attempt >= max_attempts - 1:
                raise
            time.sleep(_backoff(attempt, base_delay))
        attempt += 1


def _url(cfg: Dict[str, Any], path: str) -> str:
    return f"{cfg['base_url'].rstrip('/')}{path}"


def _pace(limiter: Optional[RateLimiter]) -> None:
    if limiter is not None:
        limiter.wait()


def _get(
    cfg: Dict[str, Any],
    path: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    limiter: Optional[RateLimiter] = None,
) -> requests.Response:
    _pace(limiter)
    def do_request() -> requests.Response:
        return requests.get(
            _url(cfg, path),
            headers=seed_headers(cfg),
            params=params,
            timeout=cfg.get("timeout", 30),
        )
    return with_retries(do_request)


def _post(
    cfg: Dict[str, Any],
    path: str,
    payload: Dict[str, Any],
    *,
    limiter: Optional[RateLimiter] = None,
    idempotent: bool = False,
) -> requests.Response:
    _pace(limiter)
    def do_request() -> requests.Response:
        return requests.post(
            _url(cfg, path),
            headers={**seed_headers(cfg), "Content-Type": "application/json"},
            json=payload,
            timeout=cfg.get("timeout", 30),
        )
    return with_retries(do_request, idempotent=idempotent)


def _json(resp: requests.Response) -> Dict[str, Any]:
    if not resp.content:
        return {}
    return resp.json()


###############################################################################
# Key helpers
###############################################################################

def list_keys(cfg: Dict[str, Any], *, limiter: Optional[RateLimiter] = None) -> List[KeyInfo]:
    """
    Lists the signing keys registered with the daemon.

    :param cfg: Daemon configuration dictionary.
    :return: A list of :class:`KeyInfo`.
    """
    resp = _get(cfg, "/api/daemon/keys", limiter=limiter)
    return [
        KeyInfo(name=k.get("name", ""), public_key=k.get("publicKey", ""))
        for k in _json(resp).get("keys", [])
    ]


def register_key(
    cfg: Dict[str, Any], mnemonic: List[str], name: str, *, limiter: Optional[RateLimiter] = None
) -> str:
    """
    Registers a signing key derived from ``mnemonic`` under ``name``.

    :return: The public key (account id) of the registered key.
    :raises requests.HTTPError: on failure.
    """
    resp = _post(cfg, "/api/daemon/keys", {"mnemonic": list(mnemonic), "name": name}, limiter=limiter)
    return _json(resp).get("publicKey", "")


def gen_mnemonic(cfg: Dict[str, Any], *, limiter: Optional[RateLimiter] = None) -> List[str]:
    """Asks the daemon for a fresh BIP-39 mnemonic."""
    resp = _post(cfg, "/api/daemon/mnemonic", {}, limiter=limiter, idempotent=True)
    return list(_json(resp).get("mnemonic", []))


###############################################################################
# Document helpers
###############################################################################

def get_document(
    cfg: Dict[str, Any], account: str, path: str, *, limiter: Optional[RateLimiter] = None
) -> Dict[str, Any]:
    """
    Fetches the document at ``account`` + ``path``.

    :raises DocumentNotFound: when the daemon answers 404.
    :raises requests.HTTPError: on any other failure.
    """
    try:
        resp = _get(cfg, "/api/documents", params={"account": account, "path": path}, limiter=limiter)
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code == 404:
            raise DocumentNotFound(account, path) from e
        raise
    return _json(resp)


def create_document_change(
    cfg: Dict[str, Any],
    signing_key_name: str,
    account: str,
    path: str,
    changes: List[DocumentChange],
    base_version: Optional[str] = None,
    *,
    limiter: Optional[RateLimiter] = None,
) -> Dict[str, Any]:
    """
    Submits one change transaction.  ``base_version`` is sent when the
    change updates an existing document.

    :raises requests.HTTPError: on failure.
    """
    body: Dict[str, Any] = {
        "signingKeyName": signing_key_name,
        "account": account,
        "path": path,
        "changes": changes,
        "baseVersion": base_version or "",
    }
    resp = _post(cfg, "/api/documents/changes", body, limiter=limiter)
    return _json(resp)


###############################################################################
# Capability helpers
###############################################################################

def list_capabilities(
    cfg: Dict[str, Any], account: str, path: str, *, limiter: Optional[RateLimiter] = None
) -> List[CapabilityInfo]:
    resp = _get(
        cfg, "/api/access-control/capabilities", params={"account": account, "path": path}, limiter=limiter
    )
    return [
        CapabilityInfo(role=c.get("role", ""), delegate=c.get("delegate", ""))
        for c in _json(resp).get("capabilities", [])
    ]


def create_capability(
    cfg: Dict[str, Any],
    account: str,
    delegate: str,
    role: str,
    path: str,
    signing_key_name: str,
    *,
    limiter: Optional[RateLimiter] = None,
) -> None:
    _post(
        cfg,
        "/api/access-control/capabilities",
        {
            "account": account,
            "delegate": delegate,
            "role": role,
            "path": path,
            "signingKeyName": signing_key_name,
        },
        limiter=limiter,
    )


###############################################################################
# File upload
###############################################################################

def upload_file(
    cfg: Dict[str, Any],
    data: bytes,
    content_type: Optional[str] = None,
    *,
    limiter: Optional[RateLimiter] = None,
) -> str:
    """
    Uploads raw bytes to the daemon's file store.  Files are content
    addressed, so a repeated upload stores nothing new.

    :return: The content id (CID) of the stored file.
    """
    _pace(limiter)
    def do_request() -> requests.Response:
        return requests.post(
            _url(cfg, "/api/files"),
            headers=seed_headers(cfg),
            files={"file": ("upload", data, content_type or "application/octet-stream")},
            timeout=cfg.get("timeout", 30),
        )
    resp = with_retries(do_request)
    return _json(resp).get("cid", "")


class SeedClient:
    """
    Binds the helpers above to one configuration and one rate limiter so
    that a single object serves as key, document, capability and file
    service.
    """

    def __init__(self, cfg: Dict[str, Any], limiter: Optional[RateLimiter] = None) -> None:
        self.cfg = cfg
        self.limiter = limiter if limiter is not None else RateLimiter(int(cfg.get("rpm", 600)))

    def list_keys(self) -> List[KeyInfo]:
        return list_keys(self.cfg, limiter=self.limiter)

    def register_key(self, mnemonic: List[str], name: str) -> str:
        return register_key(self.cfg, mnemonic, name, limiter=self.limiter)

    def gen_mnemonic(self) -> List[str]:
        return gen_mnemonic(self.cfg, limiter=self.limiter)

    def get_document(self, account: str, path: str) -> Dict[str, Any]:
        return get_document(self.cfg, account, path, limiter=self.limiter)

    def create_document_change(
        self,
        signing_key_name: str,
        account: str,
        path: str,
        changes: List[DocumentChange],
        base_version: Optional[str] = None,
    ) -> Dict[str, Any]:
        return create_document_change(
            self.cfg, signing_key_name, account, path, changes, base_version, limiter=self.limiter
        )

    def list_capabilities(self, account: str, path: str) -> List[CapabilityInfo]:
        return list_capabilities(self.cfg, account, path, limiter=self.limiter)

    def create_capability(
        self, account: str, delegate: str, role: str, path: str, signing_key_name: str
    ) -> None:
        create_capability(self.cfg, account, delegate, role, path, signing_key_name, limiter=self.limiter)

    def upload_file(self, data: bytes, content_type: Optional[str] = None) -> str:
        return upload_file(self.cfg, data, content_type, limiter=self.limiter)
