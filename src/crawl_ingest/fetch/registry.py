"""Fetcher registry.

Built-ins: `file`, `http`. Order in the YAML list is the order in which the
coordinator asks fetchers whether they accept a request.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
from ..registry import Registry
from .base import Fetcher
from .file import FileFetcher


def _make_http_fetcher(cfg: Dict[str, Any]) -> Fetcher:
    """Lazy import so that file-only setups do not need requests at import time."""
    try:
        from .http import HttpFetcher
    except ImportError as e:
        raise ImportError(
            f"HTTP fetcher requires requests. "
            f"Install with: pip install requests. "
            f"Original error: {e}"
        )
    return HttpFetcher(**cfg)


_REGISTRY: Registry[Fetcher] = Registry("fetcher", {
    "file": lambda cfg: FileFetcher(**cfg),
    "http": _make_http_fetcher,
})


def register_fetcher(kind: str, factory: Callable[[Dict[str, Any]], Fetcher]) -> None:
    _REGISTRY.register(kind, factory)


def unregister_fetcher(kind: str) -> None:
    _REGISTRY.unregister(kind)


def list_fetchers() -> Dict[str, str]:
    return _REGISTRY.list()


def make_fetchers(cfgs: Optional[List[Mapping[str, Any]]]) -> List[Fetcher]:
    return _REGISTRY.make_all(cfgs)
