"""Component registry.

Every pluggable family (fetchers, filters, handlers, committers, stages) is
configured by a `type` name. A registry maps that name to a factory taking
the component's config dict.

Adding a new component:
1) implement the family's base class
2) call the family's `register_*` function at startup (dynamic), or add it to
   the family's static table
3) reference it by `type` in the crawl YAML

Built-in names cannot be overridden dynamically.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Generic, List, Mapping, TypeVar
from .exceptions import ConfigError

T = TypeVar("T")
Factory = Callable[[Dict[str, Any]], T]


class Registry(Generic[T]):
    def __init__(self, family: str, static: Mapping[str, Factory] | None = None):
        self.family = family
        self._static: Dict[str, Factory] = dict(static or {})
        self._dynamic: Dict[str, Factory] = {}

    def register_static(self, kind: str, factory: Factory) -> None:
        self._static[kind] = factory

    def register(self, kind: str, factory: Factory) -> None:
        if kind in self._static:
            raise ValueError(f"{self.family} type '{kind}' is already registered statically. Use a different name.")
        self._dynamic[kind] = factory

    def unregister(self, kind: str) -> None:
        self._dynamic.pop(kind, None)

    def list(self) -> Dict[str, str]:
        out = {k: "static" for k in self._static}
        out.update({k: "dynamic" for k in self._dynamic})
        return out

    def make(self, cfg: Mapping[str, Any]) -> T:
        cfg = dict(cfg or {})
        kind = cfg.pop("type", None)
        if not kind:
            raise ConfigError(f"{self.family} config is missing 'type': {cfg}")
        factory = self._static.get(kind) or self._dynamic.get(kind)
        if factory is None:
            raise ConfigError(
                f"Unknown {self.family} type: {kind}. "
                f"Available: {sorted(self.list())}. "
                f"Register dynamically with register_{self.family}()"
            )
        try:
            return factory(cfg)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid {self.family} config for type '{kind}': {e}") from e

    def make_all(self, cfgs: List[Mapping[str, Any]] | None) -> List[T]:
        return [self.make(c) for c in (cfgs or [])]
