"""Local filesystem fetcher.

Accepts `file:` URIs and plain paths (including Windows drive paths).
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname
import mimetypes
import os

from ..exceptions import FetchError
from ..pipeline.content import CachedStream, DEFAULT_MAX_MEMORY
from ..pipeline.context import DocumentState
from ..pipeline.properties import Properties
from .base import FetchRequest, FetchResponse, Fetcher


def reference_to_path(reference: str) -> Optional[str]:
    parsed = urlparse(reference)
    if parsed.scheme == "file":
        return url2pathname(unquote(parsed.path))
    if len(parsed.scheme) <= 1:
        return reference
    return None


class FileFetcher(Fetcher):
    name = "file"

    def __init__(self, max_memory: int = DEFAULT_MAX_MEMORY, temp_dir: Optional[str] = None):
        self.max_memory = int(max_memory)
        self.temp_dir = temp_dir

    def accept(self, request: FetchRequest) -> bool:
        return request.method.upper() in ("GET", "HEAD") and reference_to_path(request.reference) is not None

    def fetch(self, request: FetchRequest) -> FetchResponse:
        path = reference_to_path(request.reference)
        if path is None or not os.path.exists(path):
            raise FetchError(f"File not found: {path or request.reference}", status_code=404)
        if os.path.isdir(path):
            return FetchResponse(DocumentState.UNSUPPORTED, reason=f"Is a directory: {path}")

        meta = Properties()
        ctype, encoding = mimetypes.guess_type(path)
        if ctype:
            meta.set("Content-Type", ctype)
        if encoding:
            meta.set("Content-Encoding", encoding)
        try:
            st = os.stat(path)
            meta.set("Content-Length", st.st_size)
            meta.set("Last-Modified", datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat())
            content = None
            if request.method.upper() == "GET":
                content = CachedStream.from_path(path, max_memory=self.max_memory, temp_dir=self.temp_dir)
        except OSError as e:
            raise FetchError(f"Cannot read {path}: {e}") from e
        return FetchResponse(DocumentState.NEW, status_code=200, reason="OK", content=content, metadata=meta)
