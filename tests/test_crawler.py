import json
import threading

from crawl_ingest.config.loader import build_collector
from crawl_ingest.crawler import Crawler
from crawl_ingest.events import CrawlerEvent
from crawl_ingest.pipeline.context import DocumentState

from test_importer import zip_bytes


def _collector(tmp_path, refs, **extra):
    cfg = {
        "run": {"run_id": "t1", "work_dir": str(tmp_path / "work"), "num_threads": 2,
                "max_fetch_retries": 0, "retry_delay": 0},
        "start_references": [str(r) for r in refs],
        "fetchers": [{"type": "file"}],
        "committers": [{"type": "memory"}],
        "importer": {"split_embedded_of": ["*zip"]},
    }
    cfg.update(extra)
    return build_collector(cfg)


def _corpus(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    (data / "a.txt").write_text("alpha text", encoding="utf-8")
    (data / "b.html").write_text("<html><body><p>beta</p></body></html>", encoding="utf-8")
    (data / "c.zip").write_bytes(zip_bytes({"one.txt": "first", "two.txt": "second"}))
    (data / "d.bin").write_bytes(b"\x00\x01")
    return data


def test_crawl_commits_documents_and_writes_outputs(tmp_path):
    data = _corpus(tmp_path)
    refs = [data / "a.txt", data / "b.html", data / "c.zip", data / "missing.txt"]
    collector = _collector(tmp_path, refs)
    memory = collector.committers[0]

    finished = []
    summary = Crawler(collector, listeners=[lambda e: e.name == CrawlerEvent.CRAWLER_FINISHED and finished.append(e)]).start()

    committed = set(memory.references())
    assert committed == {
        str(data / "a.txt"),
        str(data / "b.html"),
        str(data / "c.zip"),
        str(data / "c.zip") + "!one.txt",
        str(data / "c.zip") + "!two.txt",
    }
    assert memory.get(str(data / "b.html")).content == b"beta"
    assert memory.get(str(data / "c.zip") + "!two.txt").content == b"second"

    assert summary.processed == 4
    assert summary.committed == 5
    assert summary.states == {"done": 3, "bad_status": 1}
    assert summary.rejected == 1 and summary.errors == 0
    assert len(finished) == 1

    work = tmp_path / "work"
    rows = [json.loads(ln) for ln in (work / "rejections" / "rejections.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [(r["reference"], r["event"]) for r in rows] == [(str(data / "missing.txt"), CrawlerEvent.REJECTED_BAD_STATUS)]

    manifest = json.loads((work / "manifests" / "t1.json").read_text(encoding="utf-8"))
    assert manifest["total_committed_docs"] == 5
    assert manifest["events"][CrawlerEvent.DOCUMENT_COMMITTED_UPSERT] == 5
    report = (work / "reports" / "t1_summary.txt").read_text(encoding="utf-8")
    assert "Run ID: t1" in report and "Total Committed: 5" in report


def test_reference_filter_rejects_before_fetching(tmp_path):
    data = _corpus(tmp_path)
    collector = _collector(
        tmp_path,
        [data / "a.txt", data / "d.bin"],
        reference_filters=[{"type": "extension", "extensions": "txt", "on_match": "include"}],
    )
    crawler = Crawler(collector)
    summary = crawler.start()
    assert collector.committers[0].references() == [str(data / "a.txt")]
    assert summary.states == {"done": 1, "rejected": 1}
    assert crawler.counter.counts[CrawlerEvent.REJECTED_FILTER] == 1
    assert crawler.counter.counts[CrawlerEvent.DOCUMENT_FETCHED] == 1


def test_custom_stage_list(tmp_path):
    data = _corpus(tmp_path)
    collector = _collector(tmp_path, [data / "b.html"], stages=["fetch", "import"])
    ctx = Crawler(collector).process(str(data / "b.html"))
    # nothing committed and the document never reached a terminal state
    assert ctx.document.state is DocumentState.NEW
    assert ctx.import_response.is_success
    assert len(collector.committers[0]) == 0


def test_stopped_crawler_leaves_documents_unprocessed(tmp_path):
    data = _corpus(tmp_path)
    collector = _collector(tmp_path, [data / "a.txt"])
    crawler = Crawler(collector)
    crawler.stop()
    ctx = crawler.process(str(data / "a.txt"))
    assert ctx.document.state is DocumentState.NEW
    assert crawler.summary.interrupted == 1
    assert crawler.summary.processed == 0


def test_workers_share_one_committer(tmp_path):
    data = tmp_path / "many"
    data.mkdir()
    refs = []
    for i in range(20):
        p = data / f"f{i}.txt"
        p.write_text(f"doc {i}", encoding="utf-8")
        refs.append(p)
    collector = _collector(tmp_path, refs, run={"run_id": "many", "work_dir": str(tmp_path / "w"), "num_threads": 4})
    threads = set()
    summary = Crawler(collector, listeners=[
        lambda e: e.name == CrawlerEvent.DOCUMENT_FETCHED and threads.add(threading.current_thread().name)
    ]).start()
    assert summary.committed == 20
    assert sorted(collector.committers[0].references()) == sorted(str(p) for p in refs)
    assert all(name.startswith("crawler-") for name in threads)
