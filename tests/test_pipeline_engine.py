import threading

import pytest

from crawl_ingest.pipeline.context import Document, DocumentState, PipelineContext
from crawl_ingest.pipeline.engine import PipelineEngine
from crawl_ingest.stages.base import Stage


class RecordingStage(Stage):
    def __init__(self, name, log, reject=False):
        self.name = name
        self.log = log
        self.reject = reject

    def execute(self, ctx):
        self.log.append(self.name)
        ctx.document.metadata.add("visited", self.name)
        if self.reject:
            return ctx.reject(DocumentState.REJECTED, f"rejected by {self.name}")
        return True


@pytest.mark.parametrize("n,k", [(1, 1), (5, 1), (5, 3), (5, 5), (8, 6)])
def test_stops_at_first_rejecting_stage(n, k):
    log = []
    stages = [RecordingStage(f"s{i}", log, reject=(i == k)) for i in range(1, n + 1)]
    ctx = PipelineContext(document=Document("ref"))
    assert PipelineEngine(stages).run(ctx) is False
    assert log == [f"s{i}" for i in range(1, k + 1)]
    assert ctx.document.metadata.get_all("visited") == log
    assert ctx.document.state is DocumentState.REJECTED
    assert ctx.document.reason == f"rejected by s{k}"


def test_runs_all_stages_when_none_rejects():
    log = []
    engine = PipelineEngine([RecordingStage(f"s{i}", log) for i in range(4)])
    assert engine.run(PipelineContext(document=Document("ref"))) is True
    assert log == ["s0", "s1", "s2", "s3"]


def test_engine_is_reusable_across_documents():
    log = []
    engine = PipelineEngine([RecordingStage("a", log), RecordingStage("b", log, reject=True)])
    for ref in ("r1", "r2"):
        ctx = PipelineContext(document=Document(ref))
        engine.run(ctx)
        assert ctx.document.state is DocumentState.REJECTED
    assert log == ["a", "b", "a", "b"]


def test_terminal_document_runs_no_stage():
    log = []
    doc = Document("ref")
    doc.set_state(DocumentState.ERROR, "boom")
    assert PipelineEngine([RecordingStage("a", log)]).run(PipelineContext(document=doc)) is False
    assert log == []


def test_stop_event_is_checked_between_stages():
    log = []
    stop = threading.Event()

    class StopAfter(RecordingStage):
        def execute(self, ctx):
            stop.set()
            return super().execute(ctx)

    ctx = PipelineContext(document=Document("ref"))
    engine = PipelineEngine([StopAfter("a", log), RecordingStage("b", log)])
    assert engine.run(ctx, stop_event=stop) is False
    assert log == ["a"]
    assert ctx.document.state is DocumentState.NEW


def test_context_reject_fires_event():
    from crawl_ingest.events import EventCounter, EventDispatcher

    counter = EventCounter(keep_last=10)
    ctx = PipelineContext(document=Document("ref"), events=EventDispatcher([counter]))
    assert ctx.reject(DocumentState.REJECTED, "why", "REJECTED_FILTER") is False
    assert counter.counts == {"REJECTED_FILTER": 1}
    assert counter.events[0].data["reason"] == "why"
    assert counter.events[0].is_rejection


def test_event_counter_is_exact_across_threads():
    from crawl_ingest.events import EventCounter, EventDispatcher

    counter = EventCounter(keep_last=5)
    events = EventDispatcher([counter])

    def fire_many():
        for _ in range(500):
            events.fire("DOCUMENT_FETCHED", "ref")

    threads = [threading.Thread(target=fire_many) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter.snapshot() == {"DOCUMENT_FETCHED": 4000}
    assert len(counter.events) == 5


def test_event_counter_keeps_no_events_by_default():
    from crawl_ingest.events import EventCounter, EventDispatcher

    counter = EventCounter()
    EventDispatcher([counter]).fire("DOCUMENT_FETCHED", "ref")
    assert counter.counts == {"DOCUMENT_FETCHED": 1}
    assert len(counter.events) == 0
