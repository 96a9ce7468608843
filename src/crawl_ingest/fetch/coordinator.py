"""Fetch coordination.

The first fetcher accepting a request gets it. Retryable failures (network,
timeout) are retried on that fetcher with exponential backoff; once its
retries are exhausted the next accepting fetcher is tried. A terminal failure
ends the fetch immediately without consulting other fetchers.

State mapping:
- no fetcher accepts                     -> UNSUPPORTED
- terminal FetchError with a status code -> BAD_STATUS
- terminal FetchError without one        -> ERROR
- retries exhausted everywhere           -> BAD_STATUS if a status code is known, else ERROR
"""

from __future__ import annotations
from typing import Callable, Optional, Sequence
import logging
import time

from ..exceptions import FetchError
from ..pipeline.context import Document, DocumentState
from .base import FetchRequest, FetchResponse, Fetcher

log = logging.getLogger("crawl_ingest.fetch.coordinator")


class FetchCoordinator:
    def __init__(
        self,
        fetchers: Sequence[Fetcher],
        *,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetchers = tuple(fetchers)
        self.max_retries = max(0, int(max_retries))
        self.retry_delay = float(retry_delay)
        self._sleep = sleep

    def fetch(self, request: FetchRequest) -> FetchResponse:
        last_error: Optional[FetchError] = None
        last_fetcher: Optional[Fetcher] = None
        for fetcher in self.fetchers:
            if not fetcher.accept(request):
                continue
            last_fetcher = fetcher
            for attempt in range(self.max_retries + 1):
                try:
                    resp = fetcher.fetch(request)
                except FetchError as e:
                    if not e.retryable:
                        log.info("%s: terminal fetch failure from %s: %s", request.reference, fetcher.name, e)
                        return _failure(e, f"{fetcher.name}: {e}")
                    last_error = e
                    if attempt < self.max_retries:
                        delay = self.retry_delay * (2 ** attempt)
                        log.warning("%s: fetch attempt %d/%d with %s failed (%s); retrying in %.2fs",
                                    request.reference, attempt + 1, self.max_retries + 1,
                                    fetcher.name, e, delay)
                        if delay > 0:
                            self._sleep(delay)
                    continue
                except Exception as e:
                    log.exception("%s: unexpected error in fetcher %s", request.reference, fetcher.name)
                    return FetchResponse(DocumentState.ERROR, reason=f"{fetcher.name}: {type(e).__name__}: {e}")
                if resp.state is None:
                    resp.state = DocumentState.ERROR
                    resp.reason = resp.reason or f"{fetcher.name} returned no state"
                return resp
            log.warning("%s: %s exhausted %d attempt(s)", request.reference, fetcher.name, self.max_retries + 1)

        if last_fetcher is None:
            return FetchResponse(
                DocumentState.UNSUPPORTED,
                reason=f"No fetcher accepted {request.method} {request.reference}",
            )
        return _failure(last_error, f"Fetch failed after retries: {last_error}")

    def attach(self, document: Document, response: FetchResponse) -> None:
        """Attach fetched content and metadata to the document."""
        if response.content is not None:
            document.set_content(response.content)
        if response.metadata:
            document.metadata.update(response.metadata)
        if response.status_code != -1:
            document.metadata.set("crawl.status_code", response.status_code)
        if response.user_agent:
            document.metadata.set("crawl.user_agent", response.user_agent)

    def close(self) -> None:
        for f in self.fetchers:
            f.close()


def _failure(error: Optional[FetchError], reason: str) -> FetchResponse:
    status = error.status_code if error is not None else -1
    state = DocumentState.BAD_STATUS if status != -1 else DocumentState.ERROR
    return FetchResponse(state, status_code=status, reason=reason)
