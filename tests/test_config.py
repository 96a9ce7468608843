from datetime import datetime, timezone
from pathlib import Path

import pytest

from crawl_ingest.committers import JSONLCommitter, MemoryCommitter
from crawl_ingest.config.loader import build_collector, build_importer, load_collector, load_yaml
from crawl_ingest.exceptions import ConfigError
from crawl_ingest.filters import FilterKind
from crawl_ingest.importer import EmbeddedAction, HtmlParser, PlainTextParser
from crawl_ingest.run_id import generate_run_id, resolve_run_id, resolve_work_dir


def _cfg(tmp_path, **extra):
    cfg = {
        "run": {"run_id": "r1", "work_dir": str(tmp_path / "{run_id}")},
        "start_references": ["file:///data/a.txt"],
        "committers": [{"type": "memory"}],
    }
    cfg.update(extra)
    return cfg


def test_build_collector_defaults(tmp_path):
    c = build_collector(_cfg(tmp_path))
    assert c.run_id == "r1"
    assert c.work_dir == str(tmp_path / "r1")
    assert c.num_threads == 1
    assert [f.name for f in c.fetchers] == ["file", "http"]
    assert isinstance(c.committers[0], MemoryCommitter)
    assert c.stages is None
    assert not c.reference_filters and c.reference_filters.kind is FilterKind.REFERENCE


def test_placeholders_are_expanded(tmp_path):
    c = build_collector(_cfg(tmp_path, committers=[{"type": "jsonl", "directory": "{work_dir}/committed"}]))
    assert isinstance(c.committers[0], JSONLCommitter)
    assert c.committers[0].directory == str(tmp_path / "r1") + "/committed"


def test_missing_committer_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError):
        build_collector(_cfg(tmp_path, committers=[]))
    c = build_collector(_cfg(tmp_path, committers=[]), require_committer=False)
    assert c.committers == []


def test_unknown_component_type(tmp_path):
    with pytest.raises(ConfigError, match="Available"):
        build_collector(_cfg(tmp_path, reference_filters=[{"type": "nope"}]))


def test_bad_thread_count(tmp_path):
    with pytest.raises(ConfigError):
        build_collector(_cfg(tmp_path, run={"run_id": "r1", "num_threads": 0}))


def test_start_references_file(tmp_path):
    refs = tmp_path / "refs.txt"
    refs.write_text("# comment\nfile:///b.txt\n\nfile:///c.txt\n", encoding="utf-8")
    c = build_collector(_cfg(tmp_path, start_references_file=str(refs)))
    assert c.start_references == ["file:///data/a.txt", "file:///b.txt", "file:///c.txt"]
    with pytest.raises(ConfigError):
        build_collector(_cfg(tmp_path, start_references_file=str(tmp_path / "missing.txt")))


def test_build_importer():
    imp = build_importer({
        "max_depth": 3,
        "split_embedded_of": "*zip",
        "skip_embedded": ["image/*"],
        "default_parser": "text",
        "parsers": [{"content_type": "application/x-custom", "parser": "html"}],
        "post_parse_handlers": [{"type": "constant", "field": "source", "values": "crawl"}],
    })
    assert imp.max_depth == 3
    assert imp.embedded.decide("application/zip", "text/plain") is EmbeddedAction.SPLIT
    assert imp.embedded.decide("application/zip", "image/png") is EmbeddedAction.SKIP
    assert isinstance(imp.parsers.for_content_type("application/x-custom"), HtmlParser)
    assert isinstance(imp.parsers.for_content_type("application/unknown"), PlainTextParser)
    assert len(imp.post_parse_handlers) == 1

    with pytest.raises(ConfigError):
        build_importer({"max_depth": -1})
    with pytest.raises(ConfigError):
        build_importer({"parsers": [{"content_type": "x/y", "parser": "pdf"}]})


def test_load_yaml_errors(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("a: [1, 2", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_yaml(str(bad))
    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_yaml(str(scalar))
    with pytest.raises(ConfigError):
        load_yaml(str(tmp_path / "missing.yaml"))


def test_load_collector(tmp_path):
    path = tmp_path / "crawl.yaml"
    path.write_text(
        "run:\n"
        "  run_id: yaml_run\n"
        f"  work_dir: {tmp_path}/work\n"
        "  num_threads: 2\n"
        "  ignore_robots_meta: true\n"
        "start_references: [a.txt]\n"
        "committers:\n"
        "  - type: log\n",
        encoding="utf-8",
    )
    c = load_collector(str(path))
    assert c.run_id == "yaml_run" and c.num_threads == 2 and c.ignore_robots_meta


def test_run_id_resolution():
    assert resolve_run_id({"run": {"run_id": " explicit "}}) == "explicit"
    assert resolve_run_id({}) == "crawl"
    auto = resolve_run_id({
        "run": {"run_id_auto": {"prefix_digits": 4, "suffix_digits": 0}},
        "start_references": ["https://www.example.com:8080/x"],
    })
    assert auto.startswith("www_example_com_") and len(auto.rsplit("_", 1)[-1]) == 4
    assert generate_run_id(["/data/dump.zip"], {"suffix_digits": 0, "prefix_digits": 0}) == "dump"
    fixed = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert generate_run_id([], {"prefix_digits": 8, "suffix_digits": 6}, now=fixed) == "crawl_20240506_070809"
    assert generate_run_id(["file:///x/a b.txt"], {"include_input_name": True, "separator": "-"}, now=fixed) == "a_b-2024-070809"
    assert resolve_work_dir({"run": {"work_dir": "out/{run_id}"}}, "r9") == "out/r9"
    assert resolve_work_dir({}, "r9") == "work"


def test_sample_config_loads():
    path = Path(__file__).resolve().parent.parent / "examples" / "crawl_local.yaml"
    c = load_collector(str(path))
    assert c.run_id.startswith("notes_")
    assert c.work_dir == f"work/{c.run_id}"
    assert [f.name for f in c.fetchers] == ["file", "http"]
    assert [x.name for x in c.committers] == ["jsonl", "log"]
    assert c.importer.parse_errors_dir == f"work/{c.run_id}/parse_errors"
    assert len(c.importer.post_parse_handlers) == 2
