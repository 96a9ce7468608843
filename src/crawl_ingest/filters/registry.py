"""Filter registry.

Filters are configured by `type` under `reference_filters`, `metadata_filters`
and `document_filters` in the crawl YAML. Any filter can be used in any of
the three lists; metadata and document lists simply give it more to look at.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
from ..registry import Registry
from .base import FilterChain, FilterKind, OnMatchFilter
from .impl import ExtensionReferenceFilter, RegexMetadataFilter, RegexReferenceFilter

_REGISTRY: Registry[OnMatchFilter] = Registry("filter", {
    "extension": lambda cfg: ExtensionReferenceFilter(**cfg),
    "regex_reference": lambda cfg: RegexReferenceFilter(**cfg),
    "regex_metadata": lambda cfg: RegexMetadataFilter(**cfg),
})


def register_filter(kind: str, factory: Callable[[Dict[str, Any]], OnMatchFilter]) -> None:
    """Register a new filter type dynamically.

    Example:
        register_filter("max_depth", lambda cfg: MaxDepthFilter(**cfg))
    """
    _REGISTRY.register(kind, factory)


def unregister_filter(kind: str) -> None:
    _REGISTRY.unregister(kind)


def list_filters() -> Dict[str, str]:
    return _REGISTRY.list()


def make_filter(cfg: Mapping[str, Any]) -> OnMatchFilter:
    return _REGISTRY.make(cfg)


def make_filter_chain(
    cfgs: Optional[List[Mapping[str, Any]]],
    kind: FilterKind,
    default_accept: Optional[bool] = None,
) -> FilterChain:
    return FilterChain(_REGISTRY.make_all(cfgs), default_accept=default_accept, kind=kind)
