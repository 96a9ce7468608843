"""Ordered multi-valued metadata.

Keys are unique and keep insertion order; each key holds an ordered list of
string values. This is the metadata shape used everywhere a document flows:
fetch headers, handler tags, external process output, committer payloads.
"""

from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

ValueLike = Union[str, int, float, bool]


def _as_values(values: Iterable[ValueLike]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        if isinstance(v, (list, tuple)):
            out.extend(_as_values(v))
        else:
            out.append(str(v))
    return out


class Properties:
    def __init__(self, data: Optional[Union["Properties", Mapping[str, object]]] = None):
        self._data: Dict[str, List[str]] = {}
        if data:
            self.update(data)

    def add(self, key: str, *values: ValueLike) -> None:
        """Append values to a key, creating it if needed."""
        self._data.setdefault(key, []).extend(_as_values(values))

    def set(self, key: str, *values: ValueLike) -> None:
        """Replace all values of a key."""
        self._data[key] = _as_values(values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        vals = self._data.get(key)
        return vals[0] if vals else default

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def get_ignore_case(self, key: str, default: Optional[str] = None) -> Optional[str]:
        low = key.lower()
        for k, vals in self._data.items():
            if k.lower() == low and vals:
                return vals[0]
        return default

    def remove(self, key: str) -> List[str]:
        return self._data.pop(key, [])

    def update(self, other: Union["Properties", Mapping[str, object]]) -> None:
        """Append every value of `other` (values of existing keys are kept)."""
        items = other.items() if isinstance(other, (Properties, Mapping)) else other
        for k, v in items:
            if isinstance(v, (list, tuple)):
                self.add(k, *v)
            else:
                self.add(k, v)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def items(self) -> List[Tuple[str, List[str]]]:
        return [(k, list(v)) for k, v in self._data.items()]

    def copy(self) -> "Properties":
        return Properties(self)

    def to_dict(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._data.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Properties):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Properties({self._data!r})"
