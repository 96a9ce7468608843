import threading

from crawl_ingest.handlers import FieldReportTagger
from crawl_ingest.handlers.registry import make_handler
from crawl_ingest.pipeline.context import ParseState

from conftest import make_doc


def _tag(t, metadata, times=1):
    for _ in range(times):
        t.apply(make_doc(metadata=metadata), ParseState.PRE)


def test_report_counts_and_truncated_samples(tmp_path):
    report = tmp_path / "report.csv"
    t = FieldReportTagger(file=str(report), max_samples=2, truncate_samples_at=3)
    first = {k: f"{k}1111111" for k in "abcdef"}
    _tag(t, first, times=2)
    _tag(t, {"a": "a2222222", "b": "b2222222", "g": "g2222222"})
    _tag(t, {"a": "a3333333"}, times=3)

    assert report.read_text(encoding="utf-8").splitlines() == [
        "a,6,a11,a22",
        "b,3,b11,b22",
        "c,2,c11,",
        "d,2,d11,",
        "e,2,e11,",
        "f,2,f11,",
        "g,1,g22,",
    ]


def test_samples_are_exactly_truncated(tmp_path):
    t = FieldReportTagger(file=str(tmp_path / "r.csv"), max_samples=2, truncate_samples_at=3)
    _tag(t, {"a": ["abcdef", "uvwxyz"]})
    row = t.render().splitlines()[0].split(",")
    assert row[0] == "a" and row[1] == "2"
    assert [len(s) for s in row[2:]] == [3, 3]


def test_headers_and_no_occurrences(tmp_path):
    t = FieldReportTagger(file=str(tmp_path / "r.csv"), max_samples=1, with_headers=True, with_occurrences=False)
    _tag(t, {"x": "1"})
    assert t.render().splitlines() == ["field,sample1", "x,1"]


def test_thread_safe_counts(tmp_path):
    t = make_handler({"type": "field_report", "file": str(tmp_path / "r.csv")})

    def work():
        _tag(t, {"k": "v"}, times=25)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert t.render().splitlines()[0].startswith("k,100,v")
