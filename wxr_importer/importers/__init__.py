"""
Per-post document writers.
"""

from .post_importer import blocks_to_changes, build_changes, import_post

__all__ = ["blocks_to_changes", "build_changes", "import_post"]
