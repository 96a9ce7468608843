import pytest

from crawl_ingest.exceptions import ConfigError, HandlerError
from crawl_ingest.handlers import (
    ConstantTagger,
    CopyFieldTagger,
    HandlerChain,
    OnSet,
    RegexReplaceTransformer,
    Restriction,
    Tagger,
    TextFilter,
)
from crawl_ingest.handlers.registry import list_handlers, make_handler, make_handler_chain, register_handler, unregister_handler
from crawl_ingest.pipeline.context import DocumentState, ParseState
from crawl_ingest.pipeline.properties import Properties

from conftest import make_doc


def test_on_set_variants():
    m = Properties({"k": "old"})
    OnSet.APPEND.apply(m, "k", ["a"])
    assert m.get_all("k") == ["old", "a"]
    OnSet.PREPEND.apply(m, "k", ["p"])
    assert m.get_all("k") == ["p", "old", "a"]
    OnSet.REPLACE.apply(m, "k", ["r"])
    assert m.get_all("k") == ["r"]
    OnSet.OPTIONAL.apply(m, "k", ["ignored"])
    OnSet.OPTIONAL.apply(m, "new", ["set"])
    assert m.get_all("k") == ["r"]
    assert m.get_all("new") == ["set"]


def test_taggers():
    doc = make_doc(metadata={"title": "Hello"})
    chain = HandlerChain([
        ConstantTagger(field="source", values=["crawl", "web"]),
        CopyFieldTagger(from_field="title", to_field="dc:title", on_set="replace"),
    ])
    assert chain.apply(doc, ParseState.PRE)
    assert doc.metadata.get_all("source") == ["crawl", "web"]
    assert doc.metadata.get("dc:title") == "Hello"
    assert doc.parse_state is ParseState.PRE


def test_regex_replace_transformer_swaps_content():
    doc = make_doc(content="secret 123 and 456")
    old = doc.content
    assert RegexReplaceTransformer(pattern=r"\d+", replacement="#").apply(doc, ParseState.POST)
    assert doc.content.getvalue() == b"secret # and #"
    assert old.closed


def test_text_filter_veto_names_the_handler():
    doc = make_doc(content="this is spam content")
    chain = HandlerChain([
        ConstantTagger(field="before", values=["x"]),
        TextFilter(pattern="spam", partial=True, on_match="exclude"),
        ConstantTagger(field="after", values=["y"]),
    ])
    assert chain.apply(doc, ParseState.POST) is False
    assert doc.state is DocumentState.REJECTED
    assert "TextFilter" in doc.reason
    assert "post-parse" in doc.reason
    assert "before" in doc.metadata and "after" not in doc.metadata


def test_text_filter_on_field_include():
    f = TextFilter(field="Content-Type", pattern="text/.*", on_match="include")
    assert f.apply(make_doc(metadata={"Content-Type": "text/html"}), ParseState.PRE)
    assert not f.apply(make_doc(metadata={"Content-Type": "image/png"}), ParseState.PRE)


def test_restrict_to_and_parse_state_gate_handlers():
    tagger = ConstantTagger(field="t", values=["1"],
                            restrict_to=[{"field": "Content-Type", "pattern": "text/.*"}],
                            parse_state="post")
    html = make_doc(metadata={"Content-Type": "text/html"})
    png = make_doc(metadata={"Content-Type": "image/png"})
    HandlerChain([tagger]).apply(html, ParseState.PRE)
    assert "t" not in html.metadata
    HandlerChain([tagger]).apply(html, ParseState.POST)
    HandlerChain([tagger]).apply(png, ParseState.POST)
    assert html.metadata.get("t") == "1"
    assert "t" not in png.metadata


def test_handler_exception_is_wrapped_and_aborts():
    class Boom(Tagger):
        def tag(self, doc, parse_state):
            raise RuntimeError("kaboom")

    after = ConstantTagger(field="after", values=["y"])
    doc = make_doc()
    with pytest.raises(HandlerError, match="kaboom"):
        HandlerChain([Boom(), after]).apply(doc, ParseState.PRE)
    assert "after" not in doc.metadata


def test_registry():
    chain = make_handler_chain([
        {"type": "constant", "field": "a", "values": "1"},
        {"type": "text_filter", "pattern": "x", "restrict_to": {"field": "f", "pattern": "v"}},
    ])
    assert len(chain) == 2
    assert isinstance(make_handler({"type": "copy_field", "from_field": "a", "to_field": "b"}), CopyFieldTagger)
    with pytest.raises(ConfigError):
        make_handler({"type": "unknown"})
    with pytest.raises(ConfigError):
        make_handler({"type": "constant"})


def test_dynamic_registration():
    class Upper(Tagger):
        def tag(self, doc, parse_state):
            doc.metadata.set("upper", doc.text().upper())

    register_handler("upper", lambda cfg: Upper(**cfg))
    try:
        assert list_handlers()["upper"] == "dynamic"
        doc = make_doc(content="abc")
        make_handler_chain([{"type": "upper"}]).apply(doc, ParseState.POST)
        assert doc.metadata.get("upper") == "ABC"
        with pytest.raises(ValueError):
            register_handler("constant", lambda cfg: Upper())
    finally:
        unregister_handler("upper")


def test_restriction_pattern_is_validated_up_front():
    r = Restriction("Content-Type", "text/.*")
    assert r.matches(Properties({"Content-Type": "TEXT/html"}))
    assert not Restriction("Content-Type", "text/.*", case_sensitive=True).matches(Properties({"Content-Type": "TEXT/html"}))
    with pytest.raises(ValueError, match="restrict_to"):
        Restriction("f", "([unclosed")
    with pytest.raises(ConfigError):
        make_handler({"type": "constant", "field": "a", "values": "1",
                      "restrict_to": [{"field": "f", "pattern": "*bad"}]})
