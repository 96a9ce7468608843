from crawl_ingest.pipeline.content import CachedStream
from crawl_ingest.pipeline.context import Document, DocumentState, IllegalStateError
from crawl_ingest.pipeline.properties import Properties

import pytest


def test_properties_keep_order_and_multiple_values():
    p = Properties()
    p.add("b", "1")
    p.add("a", "x", "y")
    p.add("b", 2)
    assert p.keys() == ["b", "a"]
    assert p.get_all("b") == ["1", "2"]
    assert p.get("a") == "x"
    assert p.get("missing", "d") == "d"


def test_properties_set_replaces_and_update_appends():
    p = Properties({"k": ["1", "2"]})
    p.set("k", "3")
    assert p.get_all("k") == ["3"]
    p.update({"k": "4", "n": ["5"]})
    assert p.to_dict() == {"k": ["3", "4"], "n": ["5"]}


def test_properties_ignore_case_lookup_and_copy():
    p = Properties({"Content-Type": "text/html"})
    assert p.get_ignore_case("content-type") == "text/html"
    c = p.copy()
    c.add("Content-Type", "x")
    assert p.get_all("Content-Type") == ["text/html"]
    assert c != p


def test_cached_stream_spills_to_disk():
    cs = CachedStream(max_memory=10)
    cs.write(b"0123456789abcdef")
    assert cs.spilled
    assert cs.size == 16
    assert cs.getvalue() == b"0123456789abcdef"
    cs.dispose()
    assert cs.closed


def test_cached_stream_getvalue_leaves_stream_rewound():
    cs = CachedStream(b"hello")
    assert cs.getvalue() == b"hello"
    assert cs.read() == b"hello"


def test_document_terminal_state_is_final():
    d = Document("ref")
    d.set_state(DocumentState.REJECTED, "nope")
    assert d.state.is_terminal and d.state.is_rejected
    assert d.reason == "nope"
    with pytest.raises(IllegalStateError):
        d.set_state(DocumentState.DONE)


def test_document_set_content_disposes_previous():
    d = Document("ref", content=CachedStream(b"old"))
    old = d.content
    d.set_content(CachedStream(b"new"))
    assert old.closed
    assert d.content.getvalue() == b"new"


def test_document_text_uses_charset():
    d = Document("ref", content=CachedStream("é".encode("latin-1")))
    d.metadata.set("Content-Type", "text/plain; charset=latin-1")
    assert d.text() == "é"


def test_state_classification():
    assert not DocumentState.NEW.is_terminal and DocumentState.NEW.is_good
    assert DocumentState.DONE.is_terminal and DocumentState.DONE.is_good
    assert not DocumentState.DONE.is_rejected
    for s in (DocumentState.REJECTED, DocumentState.BAD_STATUS, DocumentState.UNSUPPORTED, DocumentState.ERROR):
        assert s.is_terminal and s.is_rejected and not s.is_good
