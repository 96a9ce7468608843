"""Crawl configuration.

A single YAML file describes one collector: run settings, start references,
fetchers, filters, importer and committers. Keeping it in YAML allows:
- versioned configuration across runs
- review of what a crawl keeps and drops without reading code
- swapping components by `type` name only

`build_collector` turns the parsed YAML into a CollectorConfig holding
ready-to-use components. The result is read-only after startup and shared by
every worker.

String values may use `{run_id}` and `{work_dir}` placeholders.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..committers.base import Committer
from ..committers.registry import make_committers
from ..exceptions import ConfigError
from ..fetch.base import Fetcher
from ..fetch.registry import make_fetchers
from ..filters.base import FilterChain, FilterKind
from ..filters.registry import make_filter_chain
from ..handlers.registry import make_handler_chain
from ..importer.embedded import EmbeddedPolicy
from ..importer.engine import DEFAULT_MAX_DEPTH, ImporterConfig
from ..importer.parser import DEFAULT_CONTENT_TYPE, HtmlParser, ParserRegistry, PlainTextParser, ZipParser
from ..pipeline.content import DEFAULT_MAX_MEMORY
from ..run_id import resolve_run_id, resolve_work_dir

_PARSERS = {
    "text": PlainTextParser,
    "html": HtmlParser,
    "zip": ZipParser,
}


def load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping at the top level")
    return data


@dataclass
class CollectorConfig:
    run_id: str
    work_dir: str
    start_references: List[str] = field(default_factory=list)
    num_threads: int = 1
    max_fetch_retries: int = 2
    retry_delay: float = 0.5
    ignore_robots_meta: bool = False
    log_dir: Optional[str] = None
    log_level: str = "INFO"
    fetchers: List[Fetcher] = field(default_factory=list)
    reference_filters: FilterChain = field(default_factory=lambda: FilterChain(kind=FilterKind.REFERENCE))
    metadata_filters: FilterChain = field(default_factory=lambda: FilterChain(kind=FilterKind.METADATA))
    document_filters: FilterChain = field(default_factory=lambda: FilterChain(kind=FilterKind.DOCUMENT))
    importer: ImporterConfig = field(default_factory=ImporterConfig)
    committers: List[Committer] = field(default_factory=list)
    stages: Optional[List[str]] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _expand(obj: Any, values: Mapping[str, str]) -> Any:
    if isinstance(obj, str):
        for k, v in values.items():
            obj = obj.replace("{" + k + "}", v)
        return obj
    if isinstance(obj, list):
        return [_expand(o, values) for o in obj]
    if isinstance(obj, dict):
        return {k: _expand(v, values) for k, v in obj.items()}
    return obj


def _read_references(path: str) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return [ln.strip() for ln in f if ln.strip() and not ln.lstrip().startswith("#")]
    except OSError as e:
        raise ConfigError(f"Cannot read start_references_file {path}: {e}") from e


def _make_parsers(cfg: Mapping[str, Any]) -> ParserRegistry:
    default_name = cfg.get("default_parser", "text")
    if default_name not in _PARSERS:
        raise ConfigError(f"Unknown parser: {default_name}. Available: {sorted(_PARSERS)}")
    reg = ParserRegistry.with_builtins(default=_PARSERS[default_name]())
    for entry in cfg.get("parsers") or []:
        name = entry.get("parser")
        pattern = entry.get("content_type")
        if not pattern or name not in _PARSERS:
            raise ConfigError(f"Invalid parser mapping {entry}. Parsers: {sorted(_PARSERS)}")
        reg.register(pattern, _PARSERS[name]())
    return reg


def build_importer(cfg: Optional[Mapping[str, Any]], temp_dir: Optional[str] = None) -> ImporterConfig:
    cfg = dict(cfg or {})
    max_depth = int(cfg.get("max_depth", DEFAULT_MAX_DEPTH))
    if max_depth < 0:
        raise ConfigError("importer.max_depth must be >= 0")
    return ImporterConfig(
        pre_parse_handlers=make_handler_chain(cfg.get("pre_parse_handlers")),
        post_parse_handlers=make_handler_chain(cfg.get("post_parse_handlers")),
        parsers=_make_parsers(cfg),
        embedded=EmbeddedPolicy(
            split_embedded_of=cfg.get("split_embedded_of"),
            split_embedded=cfg.get("split_embedded"),
            skip_embedded=cfg.get("skip_embedded"),
        ),
        max_depth=max_depth,
        default_content_type=str(cfg.get("default_content_type") or DEFAULT_CONTENT_TYPE),
        parse_errors_dir=cfg.get("parse_errors_dir"),
        max_memory=int(cfg.get("max_memory", DEFAULT_MAX_MEMORY)),
        temp_dir=cfg.get("temp_dir", temp_dir),
    )


def build_collector(cfg: Dict[str, Any], *, require_committer: bool = True) -> CollectorConfig:
    run_id = resolve_run_id(cfg)
    work_dir = resolve_work_dir(cfg, run_id)
    cfg = _expand(cfg, {"run_id": run_id, "work_dir": work_dir})
    run = cfg.get("run") or {}

    refs = [str(r) for r in (cfg.get("start_references") or [])]
    if cfg.get("start_references_file"):
        refs.extend(_read_references(cfg["start_references_file"]))

    num_threads = int(run.get("num_threads", 1))
    if num_threads < 1:
        raise ConfigError("run.num_threads must be >= 1")

    fetcher_cfgs = cfg.get("fetchers")
    if fetcher_cfgs is None:
        fetcher_cfgs = [{"type": "file"}, {"type": "http"}]

    committers = make_committers(cfg.get("committers"))
    if require_committer and not committers:
        raise ConfigError("No committer configured; add at least one entry under 'committers'")

    return CollectorConfig(
        run_id=run_id,
        work_dir=work_dir,
        start_references=refs,
        num_threads=num_threads,
        max_fetch_retries=int(run.get("max_fetch_retries", 2)),
        retry_delay=float(run.get("retry_delay", 0.5)),
        ignore_robots_meta=bool(run.get("ignore_robots_meta", False)),
        log_dir=run.get("log_dir"),
        log_level=str(run.get("log_level", "INFO")),
        fetchers=make_fetchers(fetcher_cfgs),
        reference_filters=make_filter_chain(cfg.get("reference_filters"), FilterKind.REFERENCE),
        metadata_filters=make_filter_chain(cfg.get("metadata_filters"), FilterKind.METADATA),
        document_filters=make_filter_chain(cfg.get("document_filters"), FilterKind.DOCUMENT),
        importer=build_importer(cfg.get("importer"), temp_dir=run.get("temp_dir")),
        committers=committers,
        stages=cfg.get("stages"),
        raw=cfg,
    )


def load_collector(path: str, **kwargs: Any) -> CollectorConfig:
    return build_collector(load_yaml(path), **kwargs)
