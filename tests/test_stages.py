import pytest

from crawl_ingest.committers import CommitDispatcher, MemoryCommitter
from crawl_ingest.events import CrawlerEvent, EventCounter, EventDispatcher
from crawl_ingest.exceptions import ConfigError
from crawl_ingest.fetch.base import FetchResponse, Fetcher
from crawl_ingest.fetch.coordinator import FetchCoordinator
from crawl_ingest.filters import ExtensionReferenceFilter, FilterChain, FilterKind, RegexMetadataFilter
from crawl_ingest.importer import EmbeddedPolicy, ImportEngine, ImporterConfig
from crawl_ingest.pipeline.content import CachedStream
from crawl_ingest.pipeline.context import Document, DocumentState, PipelineContext
from crawl_ingest.pipeline.engine import PipelineEngine
from crawl_ingest.robots import RobotsMeta, html_robots_directives
from crawl_ingest.stages.base import Stage
from crawl_ingest.stages.impl import (
    CommitStage,
    DocumentFilterStage,
    FetchStage,
    ImportStage,
    MetadataFilterStage,
    ReferenceFilterStage,
    RobotsMetaExtractStage,
    RobotsMetaNoIndexStage,
)
from crawl_ingest.stages.registry import (
    DEFAULT_STAGES,
    CrawlComponents,
    list_stages,
    make_stages,
    register_stage,
    unregister_stage,
)

from test_importer import zip_bytes


class StaticFetcher(Fetcher):
    name = "static"

    def __init__(self, pages):
        self.pages = pages

    def accept(self, request):
        return request.reference in self.pages

    def fetch(self, request):
        body, headers = self.pages[request.reference]
        resp = FetchResponse(DocumentState.NEW, status_code=200, content=CachedStream(body))
        for k, v in headers.items():
            resp.metadata.add(k, v)
        return resp


def _pipeline(pages, ignore_robots_meta=False, ref_filters=(), meta_filters=(), doc_filters=(), policy=None):
    committer = MemoryCommitter()
    counter = EventCounter()
    events = EventDispatcher([counter])
    stages = [
        ReferenceFilterStage(FilterChain(list(ref_filters), kind=FilterKind.REFERENCE)),
        FetchStage(FetchCoordinator([StaticFetcher(pages)], max_retries=0)),
        MetadataFilterStage(FilterChain(list(meta_filters), kind=FilterKind.METADATA)),
        RobotsMetaExtractStage(),
        RobotsMetaNoIndexStage(ignore_robots_meta),
        ImportStage(ImportEngine(ImporterConfig(embedded=policy or EmbeddedPolicy()), events=events)),
        DocumentFilterStage(FilterChain(list(doc_filters), kind=FilterKind.DOCUMENT)),
        CommitStage(CommitDispatcher(committer, events=events)),
    ]
    engine = PipelineEngine(stages)

    def run(ref):
        ctx = PipelineContext(document=Document(ref), events=events)
        engine.run(ctx)
        return ctx

    return run, committer, counter


HTML = (b"<html><head><title>T</title></head><body>hello</body></html>", {"Content-Type": "text/html"})
NOINDEX = (b"<html><head><meta name=\"robots\" content=\"noindex, follow\"></head><body>x</body></html>",
           {"Content-Type": "text/html"})


def test_full_journey_commits_document():
    run, committer, counter = _pipeline({"http://x/a.html": HTML})
    ctx = run("http://x/a.html")
    assert ctx.document.state is DocumentState.DONE
    assert committer.references() == ["http://x/a.html"]
    assert committer.get("http://x/a.html").content == b"hello"
    assert counter.counts[CrawlerEvent.DOCUMENT_FETCHED] == 1
    assert counter.counts[CrawlerEvent.DOCUMENT_IMPORTED] == 1
    assert counter.counts[CrawlerEvent.DOCUMENT_COMMITTED_UPSERT] == 1


def test_reference_filter_rejects_before_fetch():
    run, committer, counter = _pipeline({"http://x/a.pdf": HTML},
                                        ref_filters=[ExtensionReferenceFilter(extensions="html")])
    ctx = run("http://x/a.pdf")
    assert ctx.document.state is DocumentState.REJECTED
    assert ctx.fetch_response is None
    assert counter.counts == {CrawlerEvent.REJECTED_FILTER: 1}
    assert len(committer) == 0


def test_unknown_reference_is_unsupported():
    run, _, counter = _pipeline({})
    ctx = run("http://x/none")
    assert ctx.document.state is DocumentState.UNSUPPORTED
    assert counter.counts[CrawlerEvent.REJECTED_UNSUPPORTED] == 1


def test_metadata_filter():
    run, committer, _ = _pipeline({"http://x/a.html": HTML}, meta_filters=[
        RegexMetadataFilter(field="Content-Type", pattern="text/html", on_match="exclude")])
    assert run("http://x/a.html").document.state is DocumentState.REJECTED
    assert len(committer) == 0


def test_robots_noindex_rejects_unless_ignored():
    run, committer, counter = _pipeline({"http://x/n.html": NOINDEX})
    ctx = run("http://x/n.html")
    assert ctx.document.state is DocumentState.REJECTED
    assert ctx.robots_meta.noindex and not ctx.robots_meta.nofollow
    assert counter.counts[CrawlerEvent.REJECTED_ROBOTS_META_NOINDEX] == 1
    assert counter.counts[CrawlerEvent.CREATED_ROBOTS_META] == 1

    run, committer, _ = _pipeline({"http://x/n.html": NOINDEX}, ignore_robots_meta=True)
    assert run("http://x/n.html").document.state is DocumentState.DONE
    assert len(committer) == 1


def test_robots_header():
    page = (b"plain", {"Content-Type": "text/plain", "X-Robots-Tag": "none"})
    run, _, _ = _pipeline({"http://x/a.txt": page})
    ctx = run("http://x/a.txt")
    assert ctx.document.state is DocumentState.REJECTED
    assert ctx.robots_meta == RobotsMeta(noindex=True, nofollow=True)


def test_document_filter_sees_parsed_metadata():
    run, committer, _ = _pipeline({"http://x/a.html": HTML}, doc_filters=[
        RegexMetadataFilter(field="dc:title", pattern="T", on_match="include")])
    assert run("http://x/a.html").document.state is DocumentState.DONE
    run, committer, _ = _pipeline({"http://x/a.html": HTML}, doc_filters=[
        RegexMetadataFilter(field="dc:title", pattern="Other", on_match="include")])
    assert run("http://x/a.html").document.state is DocumentState.REJECTED


def test_split_children_are_committed_with_their_own_reference():
    archive = (zip_bytes({"a.txt": "alpha", "b.txt": "beta"}), {"Content-Type": "application/zip"})
    run, committer, _ = _pipeline({"http://x/a.zip": archive}, policy=EmbeddedPolicy(split_embedded_of=["*zip"]))
    ctx = run("http://x/a.zip")
    assert ctx.document.state is DocumentState.DONE
    assert committer.references() == ["http://x/a.zip", "http://x/a.zip!a.txt", "http://x/a.zip!b.txt"]
    assert ctx.committed == committer.references()


def test_import_rejection_fires_event():
    page = (b"", {"Content-Type": "application/zip"})
    run, committer, counter = _pipeline({"http://x/bad.zip": page})
    ctx = run("http://x/bad.zip")
    assert ctx.document.state is DocumentState.ERROR
    assert counter.counts[CrawlerEvent.REJECTED_ERROR] == 1
    assert len(committer) == 0


def test_html_robots_directives_parsing():
    html = "<meta content='noindex' name='ROBOTS'><meta name=\"description\" content=\"x\">"
    assert html_robots_directives(html) == ["noindex"]
    assert RobotsMeta.parse(["googlebot: nofollow"]) == RobotsMeta(nofollow=True)


class TagStage(Stage):
    name = "tag"

    def execute(self, ctx):
        ctx.document.metadata.set("tagged", "yes")
        return True


def test_stage_registry():
    comps = CrawlComponents(collector=None, coordinator=None, importer=None, committer=None)
    with pytest.raises(ConfigError, match="Available"):
        make_stages(["nope"], comps)
    with pytest.raises(ValueError):
        register_stage("fetch", lambda c: TagStage())

    register_stage("tag", lambda c: TagStage())
    try:
        assert list_stages()["tag"] == "dynamic"
        assert [s.name for s in make_stages(["tag", "robots_meta_extract"], comps)] == ["tag", "robots_meta_extract"]
    finally:
        unregister_stage("tag")
    assert "tag" not in list_stages()
    assert list(list_stages())[: len(DEFAULT_STAGES)] == DEFAULT_STAGES


def test_commented_out_robots_meta_is_ignored():
    html = ("<html><head><!-- <meta name=\"robots\" content=\"noindex\"> -->"
            "<meta name=\" Robots \" content=\" nofollow \"></head></html>")
    assert html_robots_directives(html) == ["nofollow"]
    assert html_robots_directives("<meta name='robots'>") == []
