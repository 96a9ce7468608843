"""Committer registry.

```yaml
committers:
  - type: jsonl
    directory: work/committed
  - type: log
    level: DEBUG
```
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
from ..registry import Registry
from .base import Committer
from .impl import JSONLCommitter, LogCommitter, MemoryCommitter

_REGISTRY: Registry[Committer] = Registry("committer", {
    "memory": lambda cfg: MemoryCommitter(**cfg),
    "jsonl": lambda cfg: JSONLCommitter(**cfg),
    "log": lambda cfg: LogCommitter(**cfg),
})


def register_committer(kind: str, factory: Callable[[Dict[str, Any]], Committer]) -> None:
    _REGISTRY.register(kind, factory)


def unregister_committer(kind: str) -> None:
    _REGISTRY.unregister(kind)


def list_committers() -> Dict[str, str]:
    return _REGISTRY.list()


def make_committers(cfgs: Optional[List[Mapping[str, Any]]]) -> List[Committer]:
    return _REGISTRY.make_all(cfgs)
