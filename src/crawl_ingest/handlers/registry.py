"""Handler registry.

Handlers are configured by `type` under `importer.pre_parse_handlers` and
`importer.post_parse_handlers`. Built-ins: constant, copy_field,
regex_replace, text_filter, external, field_report.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
from ..registry import Registry
from .base import Handler, HandlerChain, handler_config
from .external import ExternalTransformer
from .field_report import FieldReportTagger
from .impl import ConstantTagger, CopyFieldTagger, RegexReplaceTransformer, TextFilter


def _factory(cls) -> Callable[[Dict[str, Any]], Handler]:
    return lambda cfg: cls(**handler_config(cfg))


_REGISTRY: Registry[Handler] = Registry("handler", {
    "constant": _factory(ConstantTagger),
    "copy_field": _factory(CopyFieldTagger),
    "regex_replace": _factory(RegexReplaceTransformer),
    "text_filter": _factory(TextFilter),
    "external": _factory(ExternalTransformer),
    "field_report": _factory(FieldReportTagger),
})


def register_handler(kind: str, factory: Callable[[Dict[str, Any]], Handler]) -> None:
    _REGISTRY.register(kind, factory)


def unregister_handler(kind: str) -> None:
    _REGISTRY.unregister(kind)


def list_handlers() -> Dict[str, str]:
    return _REGISTRY.list()


def make_handler(cfg: Mapping[str, Any]) -> Handler:
    return _REGISTRY.make(cfg)


def make_handler_chain(cfgs: Optional[List[Mapping[str, Any]]]) -> HandlerChain:
    return HandlerChain(_REGISTRY.make_all(cfgs))
