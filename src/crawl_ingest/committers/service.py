"""Commit fan-out and dispatch.

CommitterService sends each request to every configured committer, rewinding
content between targets. CommitDispatcher is what the pipeline calls: it
upserts through the service and rewinds the document afterwards so the
stream can be read again. Neither retries; CommitError reaches the caller.
"""

from __future__ import annotations
from typing import Any, Optional, Sequence
import logging

from ..events import CrawlerEvent
from ..exceptions import CommitError
from ..pipeline.context import Document
from ..pipeline.properties import Properties
from .base import Committer

log = logging.getLogger("crawl_ingest.committers.service")


class CommitterService(Committer):
    name = "service"

    def __init__(self, committers: Sequence[Committer]):
        self.committers = tuple(committers)

    def upsert(self, document: Document) -> None:
        for c in self.committers:
            document.content.rewind()
            c.upsert(document)

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        for c in self.committers:
            c.delete(reference, metadata)

    def close(self) -> None:
        errors = []
        for c in self.committers:
            try:
                c.close()
            except Exception as e:
                log.exception("Failed to close committer %s", c.name)
                errors.append(f"{c.name}: {e}")
        if errors:
            raise CommitError("Failed to close committer(s): " + "; ".join(errors))


class CommitDispatcher:
    def __init__(self, service: Committer, events: Any = None):
        self.service = service
        self.events = events

    def commit(self, document: Document) -> None:
        try:
            self.service.upsert(document)
        finally:
            if not document.content.closed:
                document.content.rewind()
        if self.events is not None:
            self.events.fire(CrawlerEvent.DOCUMENT_COMMITTED_UPSERT, document.reference, subject=document)

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        self.service.delete(reference, metadata)
        if self.events is not None:
            self.events.fire(CrawlerEvent.DOCUMENT_COMMITTED_DELETE, reference)

    def close(self) -> None:
        self.service.close()
