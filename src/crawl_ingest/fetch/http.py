"""HTTP fetcher (requests).

Thin transport: one GET per request, response headers become metadata,
content is streamed into a CachedStream.

Failure mapping:
- timeouts and connection errors  -> retryable FetchError
- 429 and 5xx responses          -> retryable FetchError carrying the status
- other non-2xx responses        -> BAD_STATUS response
- methods other than GET         -> UNSUPPORTED response

Configuration:
```yaml
fetchers:
  - type: http
    timeout: 30
    user_agent: "crawl-ingest/0.3"
    headers: {Accept-Language: en}
```
"""

from __future__ import annotations
from typing import Dict, List, Optional
from urllib.parse import urlparse
import logging
import threading

import requests

from ..exceptions import FetchError
from ..pipeline.content import CachedStream, DEFAULT_MAX_MEMORY
from ..pipeline.context import DocumentState
from ..pipeline.properties import Properties
from .base import FetchRequest, FetchResponse, Fetcher

log = logging.getLogger("crawl_ingest.fetch.http")

DEFAULT_USER_AGENT = "crawl-ingest"
_RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class HttpFetcher(Fetcher):
    name = "http"

    def __init__(
        self,
        timeout: float = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Optional[Dict[str, str]] = None,
        max_memory: int = DEFAULT_MAX_MEMORY,
        temp_dir: Optional[str] = None,
        verify_ssl: bool = True,
    ):
        self.timeout = float(timeout)
        self.user_agent = user_agent
        self.headers = dict(headers or {})
        self.max_memory = int(max_memory)
        self.temp_dir = temp_dir
        self.verify_ssl = verify_ssl
        # requests.Session is not thread-safe: one per worker thread
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            s.headers.update({"User-Agent": self.user_agent, **self.headers})
            self._local.session = s
            with self._sessions_lock:
                self._sessions.append(s)
        return s

    def accept(self, request: FetchRequest) -> bool:
        return urlparse(request.reference).scheme in ("http", "https")

    def fetch(self, request: FetchRequest) -> FetchResponse:
        method = (request.method or "GET").upper()
        if method != "GET":
            reason = f"HTTP {method} method not supported."
            if method == "HEAD":
                reason += " To obtain headers, use GET."
            return FetchResponse(DocumentState.UNSUPPORTED, status_code=-1, reason=reason)

        log.debug("Fetching document: %s", request.reference)
        try:
            resp = self._session().get(
                request.reference, timeout=self.timeout, stream=True, verify=self.verify_ssl
            )
        except requests.Timeout as e:
            raise FetchError(f"Timeout after {self.timeout}s: {e}", retryable=True) from e
        except requests.ConnectionError as e:
            raise FetchError(f"Connection error: {e}", retryable=True) from e
        except requests.RequestException as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e

        with resp:
            status = resp.status_code
            reason = f"HTTP {status} {resp.reason or ''}".strip()
            if status in _RETRYABLE_STATUS:
                raise FetchError(reason, retryable=True, status_code=status)

            meta = Properties()
            for k, v in resp.headers.items():
                meta.add(k, v)
            if not 200 <= status < 300:
                return FetchResponse(DocumentState.BAD_STATUS, status_code=status, reason=reason,
                                     user_agent=self.user_agent, metadata=meta)

            content = CachedStream(max_memory=self.max_memory, temp_dir=self.temp_dir)
            try:
                for chunk in resp.iter_content(chunk_size=8192):
                    if chunk:
                        content.write(chunk)
            except requests.RequestException as e:
                content.dispose()
                raise FetchError(f"Interrupted download: {e}", retryable=True) from e
            content.rewind()
        return FetchResponse(DocumentState.NEW, status_code=status, reason=reason,
                             user_agent=self.user_agent, content=content, metadata=meta)

    def close(self) -> None:
        """Close the sessions of every thread that fetched through this fetcher."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for s in sessions:
            s.close()
        self._local = threading.local()
