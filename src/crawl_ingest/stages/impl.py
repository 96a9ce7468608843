"""Built-in crawl stages.

Default order:
- reference_filter    : reference filters -> REJECTED
- fetch               : fetch coordinator -> BAD_STATUS / UNSUPPORTED / ERROR
- metadata_filter     : metadata filters on fetched headers -> REJECTED
- robots_meta_extract : X-Robots-Tag / <meta name="robots"> into the context
- robots_meta_noindex : noindex -> REJECTED unless ignore_robots_meta
- import              : import engine -> REJECTED / ERROR
- document_filter     : document filters on the imported document -> REJECTED
- commit              : upsert the document and every split child -> DONE
"""

from __future__ import annotations
from typing import Optional
import logging

from ..committers.service import CommitDispatcher
from ..events import CrawlerEvent
from ..fetch.base import FetchRequest
from ..fetch.coordinator import FetchCoordinator
from ..filters.base import FilterChain, OnMatchFilter
from ..importer.engine import ImportEngine
from ..pipeline.context import DocumentState, PipelineContext
from ..robots import extract_robots_meta
from .base import Stage

log = logging.getLogger("crawl_ingest.stages")

_FETCH_EVENTS = {
    DocumentState.BAD_STATUS: CrawlerEvent.REJECTED_BAD_STATUS,
    DocumentState.UNSUPPORTED: CrawlerEvent.REJECTED_UNSUPPORTED,
}


def _filter_reason(kind: str, decider: Optional[OnMatchFilter]) -> str:
    if decider is None:
        return f"No {kind} filter included it"
    return f"Rejected by {kind} filter {decider!r}"


class ReferenceFilterStage(Stage):
    name = "reference_filter"

    def __init__(self, chain: FilterChain):
        self.chain = chain

    def execute(self, ctx: PipelineContext) -> bool:
        accepted, decider = self.chain.evaluate(ctx.document.reference)
        if accepted:
            return True
        return ctx.reject(DocumentState.REJECTED, _filter_reason("reference", decider),
                          CrawlerEvent.REJECTED_FILTER, decider)


class FetchStage(Stage):
    name = "fetch"

    def __init__(self, coordinator: FetchCoordinator):
        self.coordinator = coordinator

    def execute(self, ctx: PipelineContext) -> bool:
        doc = ctx.document
        request = ctx.request or FetchRequest(doc.reference, document=doc)
        ctx.request = request
        resp = self.coordinator.fetch(request)
        ctx.fetch_response = resp
        if not resp.ok:
            if resp.content is not None:
                resp.content.dispose()
            reason = resp.reason or f"Fetch ended in state {resp.state.name}"
            event = _FETCH_EVENTS.get(resp.state, CrawlerEvent.REJECTED_ERROR)
            return ctx.reject(resp.state, reason, event, resp)
        self.coordinator.attach(doc, resp)
        ctx.fire(CrawlerEvent.DOCUMENT_FETCHED, resp, status_code=resp.status_code)
        return True


class MetadataFilterStage(Stage):
    name = "metadata_filter"

    def __init__(self, chain: FilterChain):
        self.chain = chain

    def execute(self, ctx: PipelineContext) -> bool:
        doc = ctx.document
        accepted, decider = self.chain.evaluate((doc.reference, doc.metadata))
        if accepted:
            return True
        return ctx.reject(DocumentState.REJECTED, _filter_reason("metadata", decider),
                          CrawlerEvent.REJECTED_FILTER, decider)


class RobotsMetaExtractStage(Stage):
    name = "robots_meta_extract"

    def execute(self, ctx: PipelineContext) -> bool:
        meta = extract_robots_meta(ctx.document)
        ctx.robots_meta = meta
        if not meta.empty:
            ctx.fire(CrawlerEvent.CREATED_ROBOTS_META, meta)
        return True


class RobotsMetaNoIndexStage(Stage):
    name = "robots_meta_noindex"

    def __init__(self, ignore_robots_meta: bool = False):
        self.ignore_robots_meta = ignore_robots_meta

    def execute(self, ctx: PipelineContext) -> bool:
        if self.ignore_robots_meta:
            return True
        meta = ctx.robots_meta
        if meta is not None and meta.noindex:
            return ctx.reject(DocumentState.REJECTED, "Robots meta noindex rule",
                              CrawlerEvent.REJECTED_ROBOTS_META_NOINDEX, meta)
        return True


class ImportStage(Stage):
    name = "import"

    def __init__(self, engine: ImportEngine):
        self.engine = engine

    def execute(self, ctx: PipelineContext) -> bool:
        doc = ctx.document
        resp = self.engine.import_document(doc)
        ctx.import_response = resp
        if resp.is_success:
            ctx.fire(CrawlerEvent.DOCUMENT_IMPORTED, resp, nested=len(resp.nested))
            return True
        event = CrawlerEvent.REJECTED_IMPORT if resp.is_rejected else CrawlerEvent.REJECTED_ERROR
        # the engine already moved the document to its terminal state
        ctx.fire(event, resp, reason=resp.description)
        return False


class DocumentFilterStage(Stage):
    name = "document_filter"

    def __init__(self, chain: FilterChain):
        self.chain = chain

    def execute(self, ctx: PipelineContext) -> bool:
        accepted, decider = self.chain.evaluate(ctx.document)
        if accepted:
            return True
        return ctx.reject(DocumentState.REJECTED, _filter_reason("document", decider),
                          CrawlerEvent.REJECTED_FILTER, decider)


class CommitStage(Stage):
    name = "commit"

    def __init__(self, dispatcher: CommitDispatcher):
        self.dispatcher = dispatcher

    def execute(self, ctx: PipelineContext) -> bool:
        root = ctx.document
        self.dispatcher.commit(root)
        ctx.committed.append(root.reference)
        if ctx.import_response is not None:
            for node in ctx.import_response.walk():
                child = node.document
                if child is None or child is root:
                    continue
                self.dispatcher.commit(child)
                child.set_state(DocumentState.DONE)
                ctx.committed.append(child.reference)
        root.set_state(DocumentState.DONE)
        log.debug("%s: committed %d document(s)", root.reference, len(ctx.committed))
        return True
