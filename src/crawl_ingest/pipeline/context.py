"""Core pipeline data model.

Document is the unit flowing through fetch, filter, import and commit stages.
Every stage may mutate it; once its state is terminal no further stage runs.

PipelineContext carries one document through one pipeline run. It is owned
by a single worker thread and never shared.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import time

from .content import CachedStream
from .properties import Properties


class DocumentState(str, Enum):
    NEW = "new"
    REJECTED = "rejected"
    BAD_STATUS = "bad_status"
    UNSUPPORTED = "unsupported"
    ERROR = "error"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentState.NEW

    @property
    def is_rejected(self) -> bool:
        return self in _REJECTED_STATES

    @property
    def is_good(self) -> bool:
        return self in (DocumentState.NEW, DocumentState.DONE)


_REJECTED_STATES = frozenset({
    DocumentState.REJECTED,
    DocumentState.BAD_STATUS,
    DocumentState.UNSUPPORTED,
    DocumentState.ERROR,
})


class ParseState(str, Enum):
    PRE = "pre"
    POST = "post"


class IllegalStateError(RuntimeError):
    pass


@dataclass
class Document:
    # identity
    reference: str
    content: CachedStream = field(default_factory=CachedStream)
    metadata: Properties = field(default_factory=Properties)

    # lifecycle
    state: DocumentState = DocumentState.NEW
    parse_state: ParseState = ParseState.PRE
    reason: str = ""

    # provenance
    content_type: Optional[str] = None
    parent_reference: Optional[str] = None
    depth: int = 0
    created_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    def set_state(self, state: DocumentState, reason: str = "") -> None:
        if self.state.is_terminal and state is not self.state:
            raise IllegalStateError(
                f"{self.reference}: cannot move from terminal state "
                f"{self.state.name} to {state.name}"
            )
        self.state = state
        if reason:
            self.reason = reason

    def set_content(self, content: CachedStream) -> None:
        """Attach a new stream, releasing the previous one."""
        if content is self.content:
            return
        old = self.content
        self.content = content
        old.dispose()

    def text(self, encoding: Optional[str] = None) -> str:
        enc = encoding or _charset(self.metadata) or "utf-8"
        return self.content.getvalue().decode(enc, errors="replace")

    def dispose(self) -> None:
        self.content.dispose()


def _charset(metadata: Properties) -> Optional[str]:
    ct = metadata.get_ignore_case("Content-Type") or ""
    for part in ct.split(";")[1:]:
        k, _, v = part.strip().partition("=")
        if k.lower() == "charset" and v:
            return v.strip("\"'")
    return None


@dataclass
class PipelineContext:
    document: Document
    request: Any = None            # FetchRequest that started the journey
    config: Any = None             # CollectorConfig, read-only
    events: Any = None             # EventDispatcher
    committer: Any = None          # CommitDispatcher
    robots_meta: Any = None        # RobotsMeta, set by robots_meta_extract
    fetch_response: Any = None
    import_response: Any = None
    committed: List[str] = field(default_factory=list)

    # side channel for custom stages
    data: Dict[str, Any] = field(default_factory=dict)

    def reject(self, state: DocumentState, reason: str, event: Optional[str] = None, subject: Any = None) -> bool:
        """Move the document to a terminal reject state; always returns False."""
        self.document.set_state(state, reason)
        if self.events is not None and event:
            self.events.fire(event, self.document.reference, subject=subject, reason=reason)
        return False

    def fire(self, event: str, subject: Any = None, **data: Any) -> None:
        if self.events is not None:
            self.events.fire(event, self.document.reference, subject=subject, **data)
