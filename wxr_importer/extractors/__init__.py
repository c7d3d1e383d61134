"""
Extractors for WordPress export files.

This subpackage parses WXR exports into the typed model of
:mod:`wxr_importer.models.wxr`, which the import data builder turns into
a persistable import document.
"""

from .wxr_parser import parse_wxr, parse_wxr_file

__all__ = ["parse_wxr", "parse_wxr_file"]
