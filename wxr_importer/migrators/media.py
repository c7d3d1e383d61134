from __future__ import annotations

from typing import Dict, Optional

import requests

from ..utils.errors import report_error
from ..utils.logs import log_message
from .ports import FileUploader


class ImageDownloader:
    """
    Downloads remote images and re-uploads them through ``uploader``.

    Results are memoized per URL in ``cache``, which is the import
    session's ``imageCache`` so repeated images across posts are fetched
    once.  Failures are logged and yield ``None``; the caller keeps the
    original reference.
    """

    def __init__(self, uploader: FileUploader, cache: Optional[Dict[str, str]] = None, *, timeout: float = 30) -> None:
        self.uploader = uploader
        self.cache: Dict[str, str] = cache if cache is not None else {}
        self.timeout = timeout

    def __call__(self, url: str) -> Optional[str]:
        if not url:
            return None
        if url in self.cache:
            return self.cache[url] or None
        try:
            resp = requests.get(url, timeout=self.timeout, allow_redirects=True)
            resp.raise_for_status()
            cid = self.uploader.upload_file(resp.content, resp.headers.get("Content-Type"))
        except requests.RequestException as e:
            log_message(f"Failed to download image {url}: {e}", level="ERROR")
            report_error("IMAGE_DOWNLOAD", {"title": url}, e)
            return None
        if not cid:
            return None
        self.cache[url] = cid
        return cid
