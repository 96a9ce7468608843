"""Crawler events.

Stages notify observers through an injected EventDispatcher. Listeners are
plain callables taking an Event and are invoked synchronously, in
registration order, by the stage that fires the event. A failing listener is
logged and never breaks the pipeline.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional
import logging
import os
import threading
import time

from .storage.writer import append_jsonl

log = logging.getLogger("crawl_ingest.events")


class CrawlerEvent:
    CRAWLER_STARTED = "CRAWLER_STARTED"
    CRAWLER_FINISHED = "CRAWLER_FINISHED"
    DOCUMENT_FETCHED = "DOCUMENT_FETCHED"
    DOCUMENT_IMPORTED = "DOCUMENT_IMPORTED"
    DOCUMENT_COMMITTED_UPSERT = "DOCUMENT_COMMITTED_UPSERT"
    DOCUMENT_COMMITTED_DELETE = "DOCUMENT_COMMITTED_DELETE"
    CREATED_ROBOTS_META = "CREATED_ROBOTS_META"
    REJECTED_FILTER = "REJECTED_FILTER"
    REJECTED_BAD_STATUS = "REJECTED_BAD_STATUS"
    REJECTED_UNSUPPORTED = "REJECTED_UNSUPPORTED"
    REJECTED_ROBOTS_META_NOINDEX = "REJECTED_ROBOTS_META_NOINDEX"
    REJECTED_IMPORT = "REJECTED_IMPORT"
    REJECTED_ERROR = "REJECTED_ERROR"
    IMPORTER_PARSER_ERROR = "IMPORTER_PARSER_ERROR"

    REJECTIONS = frozenset({
        REJECTED_FILTER,
        REJECTED_BAD_STATUS,
        REJECTED_UNSUPPORTED,
        REJECTED_ROBOTS_META_NOINDEX,
        REJECTED_IMPORT,
        REJECTED_ERROR,
    })


@dataclass(frozen=True)
class Event:
    name: str
    reference: Optional[str] = None
    subject: Any = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def is_rejection(self) -> bool:
        return self.name in CrawlerEvent.REJECTIONS


EventListener = Callable[[Event], None]


class EventDispatcher:
    def __init__(self, listeners: Optional[List[EventListener]] = None):
        self._listeners: List[EventListener] = list(listeners or [])

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def fire(self, name: str, reference: Optional[str] = None, subject: Any = None, **data: Any) -> Event:
        ev = Event(name=name, reference=reference, subject=subject, data=data)
        for listener in self._listeners:
            try:
                listener(ev)
            except Exception:
                log.exception("Event listener %r failed on %s", listener, name)
        return ev


class RejectionLogListener:
    """Appends one JSONL row per rejection event to `<work_dir>/rejections/rejections.jsonl`."""

    def __init__(self, work_dir: str):
        self.path = os.path.join(work_dir, "rejections", "rejections.jsonl")

    def __call__(self, event: Event) -> None:
        if not event.is_rejection:
            return
        append_jsonl(self.path, [{
            "reference": event.reference,
            "event": event.name,
            "reason": event.data.get("reason", ""),
            "ts_ms": event.timestamp_ms,
        }])


class EventCounter:
    """Counts events by name; safe to share between crawler threads.

    Only the last `keep_last` events are kept (none by default) so a long
    crawl does not hold every document it saw.
    """

    def __init__(self, keep_last: int = 0):
        self.counts: Dict[str, int] = {}
        self.events: Deque[Event] = deque(maxlen=max(0, keep_last))
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        with self._lock:
            self.counts[event.name] = self.counts.get(event.name, 0) + 1
            self.events.append(event)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.counts)
