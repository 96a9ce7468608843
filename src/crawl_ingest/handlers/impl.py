"""Built-in handlers.

- constant      (tagger)      : set fixed values on a field
- copy_field    (tagger)      : copy values from one field to another
- regex_replace (transformer) : regex substitution over content text
- text_filter   (filter)      : veto on a field value (or content) matching a regex

```yaml
importer:
  pre_parse_handlers:
    - type: constant
      field: collection
      values: [news]
  post_parse_handlers:
    - type: text_filter
      field: Content-Type
      pattern: application/pdf
      partial: true
      on_match: exclude
```
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import re

from ..pipeline.content import CachedStream
from ..pipeline.context import Document, ParseState
from .base import HandlerFilter, OnSet, Tagger, Transformer


@dataclass
class ConstantTagger(Tagger):
    field: str
    values: List[str] = field(default_factory=list)
    on_set: OnSet = OnSet.APPEND

    name = "constant"

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.values, str):
            self.values = [self.values]
        self.values = [str(v) for v in self.values]
        self.on_set = OnSet.parse(self.on_set)

    def tag(self, doc: Document, parse_state: ParseState) -> None:
        self.on_set.apply(doc.metadata, self.field, self.values)


@dataclass
class CopyFieldTagger(Tagger):
    from_field: str
    to_field: str
    on_set: OnSet = OnSet.APPEND

    name = "copy_field"

    def __post_init__(self):
        super().__post_init__()
        self.on_set = OnSet.parse(self.on_set)

    def tag(self, doc: Document, parse_state: ParseState) -> None:
        values = doc.metadata.get_all(self.from_field)
        if values:
            self.on_set.apply(doc.metadata, self.to_field, values)


@dataclass
class RegexReplaceTransformer(Transformer):
    pattern: str
    replacement: str = ""
    case_sensitive: bool = True
    encoding: str = "utf-8"

    name = "regex_replace"

    def __post_init__(self):
        super().__post_init__()
        self._regex = re.compile(self.pattern, 0 if self.case_sensitive else re.IGNORECASE)

    def transform(self, doc: Document, input: CachedStream, output: CachedStream, parse_state: ParseState) -> None:
        text = input.read().decode(self.encoding, errors="replace")
        output.write(self._regex.sub(self.replacement, text).encode(self.encoding))


@dataclass
class TextFilter(HandlerFilter):
    pattern: str
    field: Optional[str] = None     # None: match against content text
    partial: bool = False
    case_sensitive: bool = False

    name = "text_filter"

    def __post_init__(self):
        super().__post_init__()
        self._regex = re.compile(self.pattern, 0 if self.case_sensitive else re.IGNORECASE)

    def _match(self, value: str) -> bool:
        if self.partial:
            return self._regex.search(value) is not None
        return self._regex.fullmatch(value) is not None

    def matches(self, doc: Document, parse_state: ParseState) -> bool:
        if self.field is None:
            return self._match(doc.text())
        return any(self._match(v) for v in doc.metadata.get_all(self.field))
