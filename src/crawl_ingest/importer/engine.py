"""Import engine.

Per document:
1) pre-parse handlers over the raw content
2) parser for the detected content type -> text + embedded parts
3) embedded parts: skip, split into child documents or merge inline into the
   parent text; parts nested deeper than max_depth become ERROR nodes either way
4) post-parse handlers over the parsed text
5) response processors, which may replace the response

Every node yields an immutable ImportResponse; failures stay local to the
node that failed, siblings and parent keep going. The engine holds no global
state: build one at startup and pass it around.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, List, Optional, Union
import logging
import os

from ..events import CrawlerEvent
from ..exceptions import CrawlIngestError, HandlerError, ParseError
from ..handlers.base import HandlerChain
from ..pipeline.content import DEFAULT_MAX_MEMORY, CachedStream
from ..pipeline.context import Document, DocumentState, ParseState
from ..pipeline.properties import Properties
from .embedded import EmbeddedAction, EmbeddedPolicy
from .errors import save_parse_error
from .parser import DEFAULT_CONTENT_TYPE, EmbeddedPart, ParserRegistry, detect_content_type, guess_content_type
from .response import ImportResponse, ImportStatus

log = logging.getLogger("crawl_ingest.importer.engine")

ResponseProcessor = Callable[[ImportResponse], Optional[ImportResponse]]

DEFAULT_MAX_DEPTH = 10


@dataclass
class ImporterConfig:
    pre_parse_handlers: HandlerChain = field(default_factory=HandlerChain)
    post_parse_handlers: HandlerChain = field(default_factory=HandlerChain)
    parsers: ParserRegistry = field(default_factory=ParserRegistry.with_builtins)
    embedded: EmbeddedPolicy = field(default_factory=EmbeddedPolicy)
    response_processors: List[ResponseProcessor] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH
    default_content_type: str = DEFAULT_CONTENT_TYPE
    parse_errors_dir: Optional[str] = None
    max_memory: int = DEFAULT_MAX_MEMORY
    temp_dir: Optional[str] = None


@dataclass
class ImporterRequest:
    """Stand-alone import input: in-memory content or a file path."""
    reference: Optional[str] = None
    content: Union[bytes, str, BinaryIO, CachedStream, None] = None
    path: Optional[str] = None
    metadata: Properties = field(default_factory=Properties)
    content_type: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.metadata, Properties):
            self.metadata = Properties(self.metadata)
        if self.reference is None:
            self.reference = os.fspath(self.path) if self.path is not None else "unknown"

    def open(self, max_memory: int = DEFAULT_MAX_MEMORY, temp_dir: Optional[str] = None) -> CachedStream:
        if isinstance(self.content, CachedStream):
            return self.content
        if isinstance(self.content, str):
            return CachedStream(self.content.encode("utf-8"), max_memory=max_memory, temp_dir=temp_dir)
        if isinstance(self.content, (bytes, bytearray)):
            return CachedStream(bytes(self.content), max_memory=max_memory, temp_dir=temp_dir)
        if self.content is not None:
            return CachedStream.from_stream(self.content, max_memory=max_memory, temp_dir=temp_dir)
        if self.path is None:
            raise CrawlIngestError("Import request has neither content nor path")
        return CachedStream.from_path(self.path, max_memory=max_memory, temp_dir=temp_dir)


class ImportEngine:
    def __init__(self, config: Optional[ImporterConfig] = None, events: Any = None):
        self.config = config or ImporterConfig()
        self.events = events

    # ---- entry points ----

    def import_request(self, request: ImporterRequest) -> ImportResponse:
        try:
            content = request.open(self.config.max_memory, self.config.temp_dir)
        except (OSError, CrawlIngestError) as e:
            msg = f"Cannot read {request.reference}: {e}"
            log.warning(msg)
            err = e if isinstance(e, CrawlIngestError) else CrawlIngestError(msg)
            return ImportResponse(request.reference, ImportStatus.ERROR, description=msg, exception=err)
        doc = Document(
            reference=request.reference,
            content=content,
            metadata=request.metadata.copy(),
            content_type=request.content_type,
        )
        return self.import_document(doc)

    def import_document(self, doc: Document) -> ImportResponse:
        """Import a document the caller owns; the caller disposes it."""
        return self._import(doc, doc.depth)

    # ---- recursion ----

    def _import(self, doc: Document, depth: int) -> ImportResponse:
        if depth > self.config.max_depth:
            resp = self._too_deep(doc.reference)
            _mark(doc, resp.status, resp.description)
        else:
            try:
                resp = self._import_node(doc, depth)
            except Exception as e:
                log.exception("Unexpected import failure for %s", doc.reference)
                resp = self._failed(doc, ImportStatus.ERROR, f"Import failed: {e}", e)
        return self._process(doc, resp)

    def _import_node(self, doc: Document, depth: int) -> ImportResponse:
        cfg = self.config
        ct = detect_content_type(doc, cfg.default_content_type)
        doc.content_type = ct
        doc.metadata.set("document.reference", doc.reference)
        doc.metadata.set("document.contentType", ct)

        try:
            if not cfg.pre_parse_handlers.apply(doc, ParseState.PRE):
                return self._failed(doc, ImportStatus.REJECTED, doc.reason)
        except HandlerError as e:
            return self._failed(doc, ImportStatus.ERROR, str(e), e)

        parser = cfg.parsers.for_content_type(ct)
        output = doc.content.new_stream()
        try:
            parts = parser.parse(doc, output)
        except Exception as e:
            output.dispose()
            return self._parse_failed(doc, e)

        nested: List[ImportResponse] = []
        # level: nesting depth the part would have as a document of its own
        queue = deque((ct, doc.reference, p, depth + 1) for p in parts)
        while queue:
            container_ct, prefix, part, level = queue.popleft()
            part_ct = part.content_type or guess_content_type(part.name) or cfg.default_content_type
            action = cfg.embedded.decide(container_ct, part_ct)
            if action is EmbeddedAction.SKIP:
                log.debug("Skipping embedded %s (%s) of %s", part.name, part_ct, prefix)
                part.content.dispose()
            elif action is EmbeddedAction.SPLIT:
                child = self._child(doc, prefix, part, part_ct, level)
                resp = self._import(child, level)
                if not resp.is_success:
                    child.dispose()
                nested.append(resp)
            elif level > cfg.max_depth:
                nested.append(self._too_deep(f"{prefix}!{part.name}"))
                part.content.dispose()
            else:
                sub = self._merge_inline(prefix, part, part_ct, output)
                queue.extend((part_ct, f"{prefix}!{part.name}", p, level + 1) for p in sub)

        output.rewind()
        doc.set_content(output)

        try:
            if not cfg.post_parse_handlers.apply(doc, ParseState.POST):
                return self._failed(doc, ImportStatus.REJECTED, doc.reason, nested=nested)
        except HandlerError as e:
            return self._failed(doc, ImportStatus.ERROR, str(e), e, nested=nested)

        doc.content.rewind()
        return ImportResponse(doc.reference, ImportStatus.SUCCESS, document=doc, nested=tuple(nested))

    def _child(self, parent: Document, prefix: str, part: EmbeddedPart, part_ct: str, level: int) -> Document:
        meta = part.metadata.copy()
        meta.set("Content-Type", part_ct)
        meta.set("embedded.parent.reference", prefix)
        meta.set("embedded.depth", level)
        return Document(
            reference=f"{prefix}!{part.name}",
            content=part.content,
            metadata=meta,
            content_type=part_ct,
            parent_reference=parent.reference,
            depth=level,
        )

    def _merge_inline(self, prefix: str, part: EmbeddedPart, part_ct: str, output: CachedStream) -> List[EmbeddedPart]:
        tmp = Document(reference=f"{prefix}!{part.name}", content=part.content, metadata=part.metadata.copy(), content_type=part_ct)
        text = tmp.content.new_stream()
        try:
            sub = self.config.parsers.for_content_type(part_ct).parse(tmp, text)
            if text.size:
                if output.size:
                    output.write(b"\n\n")
                text.copy_to(output)
                output.seek(0, os.SEEK_END)
            return sub
        except Exception as e:
            log.warning("Could not parse inline part %s (%s): %s", tmp.reference, part_ct, e)
            return []
        finally:
            text.dispose()
            tmp.dispose()

    # ---- outcomes ----

    def _too_deep(self, reference: str) -> ImportResponse:
        msg = f"Maximum embedded depth ({self.config.max_depth}) exceeded"
        log.warning("%s: %s", reference, msg)
        return ImportResponse(reference, ImportStatus.ERROR, description=msg, exception=ParseError(msg))

    def _parse_failed(self, doc: Document, exc: Exception) -> ImportResponse:
        msg = f"Could not parse {doc.reference}: {exc}"
        log.warning(msg)
        if self.config.parse_errors_dir:
            try:
                save_parse_error(self.config.parse_errors_dir, doc, exc)
            except OSError:
                log.exception("Could not save parse error artifacts for %s", doc.reference)
        if self.events is not None:
            self.events.fire(CrawlerEvent.IMPORTER_PARSER_ERROR, doc.reference, subject=exc, reason=msg)
        err = exc if isinstance(exc, ParseError) else ParseError(msg)
        if err is not exc:
            err.__cause__ = exc
        return self._failed(doc, ImportStatus.ERROR, msg, err)

    def _failed(
        self,
        doc: Document,
        status: ImportStatus,
        description: str,
        exception: Optional[BaseException] = None,
        nested: Optional[List[ImportResponse]] = None,
    ) -> ImportResponse:
        _mark(doc, status, description)
        return ImportResponse(doc.reference, status, description=description, exception=exception, nested=tuple(nested or ()))

    def _process(self, doc: Document, resp: ImportResponse) -> ImportResponse:
        for proc in self.config.response_processors:
            try:
                new = proc(resp)
            except Exception as e:
                name = getattr(proc, "__name__", type(proc).__name__)
                log.warning("Response processor %s failed on %s: %s", name, doc.reference, e)
                resp = resp.with_status(ImportStatus.ERROR, f"Response processor {name} failed: {e}", e)
                break
            if new is not None:
                resp = new
        if not resp.is_success:
            _mark(doc, resp.status, resp.description)
        return resp


def _mark(doc: Document, status: ImportStatus, description: str) -> None:
    if doc.state.is_terminal:
        return
    state = DocumentState.REJECTED if status is ImportStatus.REJECTED else DocumentState.ERROR
    doc.set_state(state, description)
