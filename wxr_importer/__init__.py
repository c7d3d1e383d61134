"""
Top-level package for the WordPress WXR importer.

This package bundles everything required to import a WordPress export
(WXR) into a hypermedia document store: parsing the export, building a
persistable import document, encrypting it at rest, tracking a
resumable import session and writing one document per post.  Modules
are split into subpackages:

* :mod:`wxr_importer.extractors` – WXR XML parsing
* :mod:`wxr_importer.parsers` – HTML to block tree conversion
* :mod:`wxr_importer.migrators` – collaborator ports and the HTTP client
* :mod:`wxr_importer.crypto` – the versioned import file envelope
* :mod:`wxr_importer.store` – durable key-value backends and session state
* :mod:`wxr_importer.importers` – single-post document writes
* :mod:`wxr_importer.utils` – slugs, logging, reports and checks

Orchestration is handled in :mod:`wxr_importer.import_tool`.
"""

__version__ = "0.4.0"
