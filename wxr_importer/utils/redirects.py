"""
Generation of redirect mapping CSV files.

The :func:`generate_redirects_csv` helper writes a CSV file containing the
mapping of WordPress URLs to the document paths they were imported at.
The resulting file is used to configure redirects so that existing links
continue to work after the import.
"""

from __future__ import annotations

import csv
import os
from typing import List

from ..models.session import SeedImportData


def generate_redirects_csv(
    data: SeedImportData, *, destination_path: List[str], out_path: str
) -> str:
    """Generate a CSV mapping old WordPress URLs to new document paths.

    Parameters
    ----------
    data:
        The import data.  Only posts already marked ``imported`` are written;
        posts without a WordPress link fall back to ``<siteUrl>/<slug>``.
    destination_path:
        The path the import was rooted at, prepended to each post path.
    out_path:
        Location of the CSV file to be written.  The parent directory is
        created automatically.

    Returns
    -------
    str
        The path of the generated CSV file.
    """
    site_url = (data.source.site_url or "").rstrip("/")
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["OldURL", "NewPath"])
        for entry in data.posts:
            if not entry.imported:
                continue
            wxr_post = data.wxr_posts.get(entry.id)
            old_url = wxr_post.link if wxr_post else None
            if not old_url and wxr_post and site_url:
                old_url = f"{site_url}/{wxr_post.slug}"
            new_path = "/" + "/".join([*destination_path, *entry.path])
            writer.writerow([old_url or "", new_path])
    return out_path
