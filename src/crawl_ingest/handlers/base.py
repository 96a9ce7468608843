"""Import handler interface.

Handlers run in ordered chains during import, once before parsing (PRE, over
the raw stream) and once after (POST, over extracted text). Three kinds:

- Tagger      : mutates metadata only
- Transformer : writes a new content stream (and may touch metadata)
- HandlerFilter : vetoes documents; a veto rejects the document and names the handler

Any handler can be restricted to documents whose metadata matches
`restrict_to` entries, and to a single parse state.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Union
import logging
import re

from ..exceptions import HandlerError
from ..filters.base import OnMatch
from ..pipeline.content import CachedStream
from ..pipeline.context import Document, DocumentState, ParseState
from ..pipeline.properties import Properties

log = logging.getLogger("crawl_ingest.handlers")


class HandlerKind(str, Enum):
    TAGGER = "tagger"
    TRANSFORMER = "transformer"
    FILTER = "filter"


class OnSet(str, Enum):
    """How a handler writes values into a field that may already exist."""
    APPEND = "append"
    PREPEND = "prepend"
    REPLACE = "replace"
    OPTIONAL = "optional"

    @classmethod
    def parse(cls, value: Union[str, "OnSet", None]) -> "OnSet":
        if value is None:
            return cls.APPEND
        if isinstance(value, OnSet):
            return value
        return cls(str(value).strip().lower())

    def apply(self, metadata: Properties, key: str, values: Sequence[str]) -> None:
        if self is OnSet.REPLACE:
            metadata.set(key, *values)
        elif self is OnSet.OPTIONAL:
            if not metadata.get_all(key):
                metadata.set(key, *values)
        elif self is OnSet.PREPEND:
            metadata.set(key, *values, *metadata.get_all(key))
        else:
            metadata.add(key, *values)


@dataclass(frozen=True)
class Restriction:
    field: str
    pattern: str
    case_sensitive: bool = False

    def __post_init__(self):
        flags = 0 if self.case_sensitive else re.IGNORECASE
        try:
            object.__setattr__(self, "_regex", re.compile(self.pattern, flags))
        except re.error as e:
            raise ValueError(f"Invalid restrict_to pattern {self.pattern!r}: {e}") from e

    def matches(self, metadata: Properties) -> bool:
        return any(self._regex.fullmatch(v) for v in metadata.get_all(self.field))


def _parse_parse_state(value: Union[str, ParseState, None]) -> Optional[ParseState]:
    if value is None or isinstance(value, ParseState):
        return value
    return ParseState(str(value).strip().lower())


@dataclass(kw_only=True)
class Handler(ABC):
    restrict_to: List[Restriction] = field(default_factory=list)
    parse_state: Optional[ParseState] = None

    name: ClassVar[str] = "handler"
    kind: ClassVar[HandlerKind] = HandlerKind.TAGGER

    def __post_init__(self):
        self.restrict_to = [r if isinstance(r, Restriction) else Restriction(**r) for r in self.restrict_to]
        self.parse_state = _parse_parse_state(self.parse_state)

    def applies(self, doc: Document, parse_state: ParseState) -> bool:
        if self.parse_state is not None and self.parse_state is not parse_state:
            return False
        if not self.restrict_to:
            return True
        return any(r.matches(doc.metadata) for r in self.restrict_to)

    @abstractmethod
    def apply(self, doc: Document, parse_state: ParseState) -> bool:
        """Return False to veto the document."""

    def describe(self) -> str:
        parts = []
        for f in fields(self):
            if f.name in ("restrict_to", "parse_state"):
                continue
            parts.append(f"{f.name}={getattr(self, f.name)!r}")
        return f"{type(self).__name__}[{', '.join(parts)}]"


@dataclass
class Tagger(Handler):
    kind: ClassVar[HandlerKind] = HandlerKind.TAGGER

    @abstractmethod
    def tag(self, doc: Document, parse_state: ParseState) -> None:
        ...

    def apply(self, doc: Document, parse_state: ParseState) -> bool:
        self.tag(doc, parse_state)
        return True


@dataclass
class Transformer(Handler):
    kind: ClassVar[HandlerKind] = HandlerKind.TRANSFORMER

    @abstractmethod
    def transform(self, doc: Document, input: CachedStream, output: CachedStream, parse_state: ParseState) -> None:
        ...

    def apply(self, doc: Document, parse_state: ParseState) -> bool:
        output = doc.content.new_stream()
        doc.content.rewind()
        try:
            self.transform(doc, doc.content, output, parse_state)
        except BaseException:
            output.dispose()
            raise
        output.rewind()
        doc.set_content(output)
        return True


@dataclass(kw_only=True)
class HandlerFilter(Handler):
    on_match: OnMatch = OnMatch.INCLUDE

    kind: ClassVar[HandlerKind] = HandlerKind.FILTER

    def __post_init__(self):
        super().__post_init__()
        self.on_match = OnMatch.parse(self.on_match)

    @abstractmethod
    def matches(self, doc: Document, parse_state: ParseState) -> bool:
        ...

    def apply(self, doc: Document, parse_state: ParseState) -> bool:
        if self.matches(doc, parse_state):
            return self.on_match is OnMatch.INCLUDE
        return self.on_match is OnMatch.EXCLUDE


class HandlerChain:
    """Ordered handlers applied to one document for one parse state.

    A veto marks the document REJECTED with the vetoing handler in the reason.
    A handler exception is wrapped in HandlerError and aborts the chain; the
    chain never retries.
    """

    def __init__(self, handlers: Optional[Sequence[Handler]] = None):
        self.handlers = tuple(handlers or ())

    def apply(self, doc: Document, parse_state: ParseState) -> bool:
        doc.parse_state = parse_state
        for h in self.handlers:
            if not h.applies(doc, parse_state):
                continue
            try:
                accepted = h.apply(doc, parse_state)
            except HandlerError:
                raise
            except Exception as e:
                raise HandlerError(f"{type(h).__name__} failed on {doc.reference}: {e}") from e
            if not accepted:
                reason = f"Rejected by {h.describe()} ({parse_state.value}-parse)"
                log.debug("%s: %s", doc.reference, reason)
                doc.set_state(DocumentState.REJECTED, reason)
                return False
        return True

    def __len__(self) -> int:
        return len(self.handlers)


def handler_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize keys shared by every handler config."""
    cfg = dict(cfg)
    if "restrict_to" in cfg and isinstance(cfg["restrict_to"], dict):
        cfg["restrict_to"] = [cfg["restrict_to"]]
    return cfg
