"""Split/skip policy for embedded parts.

```yaml
importer:
  split_embedded_of: ["*zip"]       # container types whose parts become child documents
  split_embedded: ["application/pdf"]  # part types that always become child documents
  skip_embedded: ["*jpeg", "*wmf"]  # part types dropped entirely
```

Patterns are shell-style wildcards matched case-insensitively against the
content type. Skip wins over split; anything else is merged inline.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatch
from typing import List, Optional


class EmbeddedAction(str, Enum):
    SPLIT = "split"
    SKIP = "skip"
    INLINE = "inline"


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def _matches(content_type: Optional[str], patterns: List[str]) -> bool:
    ct = (content_type or "").lower()
    return bool(ct) and any(fnmatch(ct, p.lower()) for p in patterns)


@dataclass
class EmbeddedPolicy:
    split_embedded_of: List[str] = field(default_factory=list)
    split_embedded: List[str] = field(default_factory=list)
    skip_embedded: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.split_embedded_of = _as_list(self.split_embedded_of)
        self.split_embedded = _as_list(self.split_embedded)
        self.skip_embedded = _as_list(self.skip_embedded)

    def decide(self, container_type: Optional[str], part_type: Optional[str]) -> EmbeddedAction:
        if _matches(part_type, self.skip_embedded):
            return EmbeddedAction.SKIP
        if _matches(container_type, self.split_embedded_of) or _matches(part_type, self.split_embedded):
            return EmbeddedAction.SPLIT
        return EmbeddedAction.INLINE
