"""
Parsers and converters used by the import pipeline.

Currently this subpackage exposes ``html_to_blocks`` from
:mod:`wxr_importer.parsers.html_blocks`, the default converter from a
WordPress post body to the document block tree.
"""

from .html_blocks import html_to_blocks

__all__ = ["html_to_blocks"]
