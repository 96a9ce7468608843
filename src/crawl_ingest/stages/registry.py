"""Stage registry.

Stages are configured by name under `stages:` in the crawl YAML; when absent
the default crawl pipeline is used. Each name maps to a factory receiving the
shared crawl components.

Custom stages:
    register_stage("my_stage", lambda comps: MyStage(comps.collector.raw["my"]))
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..committers.service import CommitDispatcher
from ..exceptions import ConfigError
from ..fetch.coordinator import FetchCoordinator
from ..importer.engine import ImportEngine
from .base import Stage
from .impl import (
    CommitStage,
    DocumentFilterStage,
    FetchStage,
    ImportStage,
    MetadataFilterStage,
    ReferenceFilterStage,
    RobotsMetaExtractStage,
    RobotsMetaNoIndexStage,
)

DEFAULT_STAGES = [
    "reference_filter",
    "fetch",
    "metadata_filter",
    "robots_meta_extract",
    "robots_meta_noindex",
    "import",
    "document_filter",
    "commit",
]


@dataclass
class CrawlComponents:
    collector: Any                  # CollectorConfig
    coordinator: FetchCoordinator
    importer: ImportEngine
    committer: CommitDispatcher


StageFactory = Callable[[CrawlComponents], Stage]

_STATIC: Dict[str, StageFactory] = {
    "reference_filter": lambda c: ReferenceFilterStage(c.collector.reference_filters),
    "fetch": lambda c: FetchStage(c.coordinator),
    "metadata_filter": lambda c: MetadataFilterStage(c.collector.metadata_filters),
    "robots_meta_extract": lambda c: RobotsMetaExtractStage(),
    "robots_meta_noindex": lambda c: RobotsMetaNoIndexStage(c.collector.ignore_robots_meta),
    "import": lambda c: ImportStage(c.importer),
    "document_filter": lambda c: DocumentFilterStage(c.collector.document_filters),
    "commit": lambda c: CommitStage(c.committer),
}
_DYNAMIC: Dict[str, StageFactory] = {}


def register_stage(name: str, factory: StageFactory) -> None:
    if name in _STATIC:
        raise ValueError(f"Stage '{name}' is already registered statically. Use a different name.")
    _DYNAMIC[name] = factory


def unregister_stage(name: str) -> None:
    _DYNAMIC.pop(name, None)


def list_stages() -> Dict[str, str]:
    out = {k: "static" for k in _STATIC}
    out.update({k: "dynamic" for k in _DYNAMIC})
    return out


def make_stages(names: Optional[List[str]], components: CrawlComponents) -> List[Stage]:
    stages = []
    for n in names or DEFAULT_STAGES:
        factory = _STATIC.get(n) or _DYNAMIC.get(n)
        if factory is None:
            raise ConfigError(
                f"Unknown stage: {n}. Available: {sorted(list_stages())}. "
                f"Register it with register_stage()"
            )
        stages.append(factory(components))
    return stages
