"""
Collaborator interfaces and the daemon HTTP client.

This subpackage defines the protocols the importer consumes (signing
keys, documents, capabilities, file uploads), a ``requests`` based
client implementing them against the daemon's JSON gateway, with rate
limiting and automatic retries, and the stub image downloader.
"""

from .ports import (
    ROLE_WRITER,
    CapabilityInfo,
    CapabilityService,
    DocumentService,
    FileUploader,
    KeyInfo,
    KeyService,
    entity_query_path,
)
from .seed_api import SeedClient
from .media import ImageDownloader

__all__ = [
    "ROLE_WRITER",
    "CapabilityInfo",
    "CapabilityService",
    "DocumentService",
    "FileUploader",
    "KeyInfo",
    "KeyService",
    "entity_query_path",
    "SeedClient",
    "ImageDownloader",
]
