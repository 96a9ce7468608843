"""Crawler runtime.

A fixed pool of worker threads drains a queue of references. Each worker
takes one reference and runs its whole journey (filters, fetch, import,
commit) before taking the next. Configuration and components are shared
read-only; the Document and PipelineContext of a reference belong to the
worker processing it.

Outputs under `work_dir`:
- rejections/rejections.jsonl  (one row per rejection event)
- manifests/<run_id>.json      (run manifest)
- reports/<run_id>_summary.txt (plain-text summary)
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional
import logging
import os
import queue
import threading
import time

from tqdm import tqdm

from ..committers.service import CommitDispatcher, CommitterService
from ..config.loader import CollectorConfig
from ..events import CrawlerEvent, EventCounter, EventDispatcher, EventListener, RejectionLogListener
from ..fetch.base import FetchRequest
from ..fetch.coordinator import FetchCoordinator
from ..importer.engine import ImportEngine
from ..pipeline.context import Document, DocumentState, PipelineContext
from ..pipeline.engine import PipelineEngine
from ..stages.registry import CrawlComponents, make_stages
from ..storage.writer import write_manifest
from ..tools.summary_report import generate_summary_report

log = logging.getLogger("crawl_ingest.crawler")


@dataclass
class CrawlSummary:
    run_id: str
    processed: int = 0
    committed: int = 0
    interrupted: int = 0
    states: Dict[str, int] = field(default_factory=dict)
    started_ms: int = 0
    finished_ms: int = 0
    stopped: bool = False

    @property
    def rejected(self) -> int:
        return sum(n for s, n in self.states.items() if DocumentState(s).is_rejected)

    @property
    def errors(self) -> int:
        return self.states.get(DocumentState.ERROR.value, 0)

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["rejected"] = self.rejected
        d["errors"] = self.errors
        return d


class Crawler:
    def __init__(
        self,
        collector: CollectorConfig,
        listeners: Optional[List[EventListener]] = None,
        progress: bool = False,
    ):
        self.collector = collector
        self.progress = progress
        self.counter = EventCounter()
        self.events = EventDispatcher([RejectionLogListener(collector.work_dir), self.counter, *(listeners or [])])

        self.coordinator = FetchCoordinator(
            collector.fetchers,
            max_retries=collector.max_fetch_retries,
            retry_delay=collector.retry_delay,
        )
        self.importer = ImportEngine(collector.importer, events=self.events)
        self.committer = CommitDispatcher(CommitterService(collector.committers), events=self.events)
        self.pipeline = PipelineEngine(make_stages(collector.stages, CrawlComponents(
            collector=collector,
            coordinator=self.coordinator,
            importer=self.importer,
            committer=self.committer,
        )))

        self._stop = threading.Event()
        self._lock = threading.Lock()
        self.summary = CrawlSummary(run_id=collector.run_id)

    # ---- control ----

    def stop(self) -> None:
        """Stop taking new references; in-flight documents end at their next stage boundary."""
        log.info("Crawler stop requested")
        self._stop.set()

    def start(self, references: Optional[Iterable[str]] = None) -> CrawlSummary:
        refs = list(self.collector.start_references if references is None else references)
        q: "queue.Queue[str]" = queue.Queue()
        for r in refs:
            q.put(r)

        n = max(1, min(self.collector.num_threads, len(refs) or 1))
        self.summary.started_ms = int(time.time() * 1000)
        log.info("Crawl %s started: %d reference(s), %d worker(s)", self.collector.run_id, len(refs), n)
        self.events.fire(CrawlerEvent.CRAWLER_STARTED, subject=self, references=len(refs))

        bar = tqdm(total=len(refs), desc=f"crawl {self.collector.run_id}", unit="doc", disable=not self.progress)
        workers = [
            threading.Thread(target=self._worker, args=(q, bar), name=f"crawler-{i}", daemon=True)
            for i in range(n)
        ]
        for w in workers:
            w.start()
        try:
            for w in workers:
                while w.is_alive():
                    w.join(timeout=0.5)
        except KeyboardInterrupt:
            self.stop()
            for w in workers:
                w.join()
        finally:
            bar.close()
            self._finish()
        return self.summary

    def close(self) -> None:
        try:
            self.committer.close()
        finally:
            self.coordinator.close()

    # ---- per reference ----

    def process(self, reference: str) -> PipelineContext:
        """Run one reference through the pipeline; never raises for document-level failures."""
        doc = Document(reference)
        ctx = PipelineContext(
            document=doc,
            request=FetchRequest(reference, document=doc),
            config=self.collector,
            events=self.events,
            committer=self.committer,
        )
        try:
            self.pipeline.run(ctx, stop_event=self._stop)
        except Exception as e:
            log.exception("%s: processing failed", reference)
            if not doc.state.is_terminal:
                ctx.reject(DocumentState.ERROR, f"{type(e).__name__}: {e}", CrawlerEvent.REJECTED_ERROR, e)
        finally:
            self._record(ctx)
            _dispose(ctx)
        return ctx

    def _worker(self, q: "queue.Queue[str]", bar: tqdm) -> None:
        while not self._stop.is_set():
            try:
                ref = q.get_nowait()
            except queue.Empty:
                return
            try:
                self.process(ref)
            finally:
                q.task_done()
                bar.update(1)

    def _record(self, ctx: PipelineContext) -> None:
        doc = ctx.document
        with self._lock:
            s = self.summary
            if doc.state is DocumentState.NEW and self._stop.is_set():
                # stopped between stages
                s.interrupted += 1
                return
            s.processed += 1
            s.committed += len(ctx.committed)
            s.states[doc.state.value] = s.states.get(doc.state.value, 0) + 1
        if doc.state.is_rejected:
            log.info("%s: %s (%s)", doc.reference, doc.state.name, doc.reason)

    # ---- end of run ----

    def _finish(self) -> None:
        s = self.summary
        s.finished_ms = int(time.time() * 1000)
        s.stopped = self._stop.is_set()
        try:
            self.close()
        except Exception:
            log.exception("Failed to close crawl components")

        work_dir = self.collector.work_dir
        manifest = {
            "run_id": s.run_id,
            "work_dir": work_dir,
            "started_ms": s.started_ms,
            "finished_ms": s.finished_ms,
            "duration_s": round((s.finished_ms - s.started_ms) / 1000.0, 3),
            "num_threads": self.collector.num_threads,
            "total_processed_docs": s.processed,
            "total_committed_docs": s.committed,
            "total_rejected_docs": s.rejected,
            "total_error_docs": s.errors,
            "interrupted_docs": s.interrupted,
            "states": dict(s.states),
            "events": self.counter.snapshot(),
            "stopped": s.stopped,
        }
        write_manifest(os.path.join(work_dir, "manifests", f"{s.run_id}.json"), manifest)
        report = generate_summary_report(work_dir, s.run_id, manifest, self.collector.raw)
        log.info("Crawl %s finished: processed=%d committed=%d rejected=%d errors=%d (report: %s)",
                 s.run_id, s.processed, s.committed, s.rejected, s.errors, report)
        self.events.fire(CrawlerEvent.CRAWLER_FINISHED, subject=self, **s.as_dict())


def _dispose(ctx: PipelineContext) -> None:
    ctx.document.dispose()
    if ctx.import_response is not None:
        for node in ctx.import_response.walk():
            if node.document is not None:
                node.document.dispose()
