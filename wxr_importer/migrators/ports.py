"""
Interfaces of the services the importer talks to.

The importer never assumes a transport.  :class:`~wxr_importer.migrators.seed_api.SeedClient`
implements these over HTTP; tests use in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

ROLE_WRITER = "WRITER"

Block = Dict[str, Any]
DocumentChange = Dict[str, Any]


@dataclass(frozen=True)
class KeyInfo:
    name: str
    public_key: str


@dataclass(frozen=True)
class CapabilityInfo:
    role: str
    delegate: str


@runtime_checkable
class KeyService(Protocol):
    def list_keys(self) -> List[KeyInfo]: ...

    def register_key(self, mnemonic: List[str], name: str) -> str:
        """Register a key derived from ``mnemonic``; returns its public key."""
        ...

    def gen_mnemonic(self) -> List[str]: ...


@runtime_checkable
class DocumentService(Protocol):
    def get_document(self, account: str, path: str) -> Dict[str, Any]:
        """Return the document, raising ``DocumentNotFound`` when absent."""
        ...

    def create_document_change(
        self,
        signing_key_name: str,
        account: str,
        path: str,
        changes: List[DocumentChange],
        base_version: Optional[str] = None,
    ) -> Dict[str, Any]: ...


@runtime_checkable
class CapabilityService(Protocol):
    def list_capabilities(self, account: str, path: str) -> List[CapabilityInfo]: ...

    def create_capability(
        self, account: str, delegate: str, role: str, path: str, signing_key_name: str
    ) -> None: ...


@runtime_checkable
class FileUploader(Protocol):
    def upload_file(self, data: bytes, content_type: Optional[str] = None) -> str:
        """Store ``data`` and return its content id."""
        ...


# (html, base_url, upload_image=..., resolve_link=...) -> block tree
HtmlToBlocks = Callable[..., List[Block]]


def entity_query_path(path: List[str]) -> str:
    """``["a", "b"]`` -> ``"/a/b"``; the root document is ``""``."""
    segments = [s for s in path if s]
    return "/" + "/".join(segments) if segments else ""
