"""Built-in filters.

- extension       : reference extension in a configured set
- regex_reference : reference matches a regular expression
- regex_metadata  : a metadata field has a value matching a regular expression

YAML examples:
```yaml
reference_filters:
  - type: extension
    extensions: html,htm,php,asp     # or a list
    on_match: include
    case_sensitive: false
metadata_filters:
  - type: regex_metadata
    field: Content-Type
    pattern: "image/.*"
    on_match: exclude
```
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Union
from urllib.parse import urlparse
import re

from ..pipeline.properties import Properties
from .base import OnMatch, OnMatchFilter

_SEP_RE = re.compile(r"[/\\]")


def reference_extension(reference: str) -> str:
    """Extension of the path part of a reference (query and fragment ignored)."""
    path = reference
    parsed = urlparse(reference)
    # single-letter schemes are Windows drive letters, not URLs
    if len(parsed.scheme) > 1 and (parsed.netloc or parsed.scheme == "file"):
        path = parsed.path
    name = _SEP_RE.split(path)[-1]
    _, dot, ext = name.rpartition(".")
    return ext if dot else ""


def _parse_extensions(extensions: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    if not extensions:
        return frozenset()
    if isinstance(extensions, str):
        extensions = extensions.split(",")
    return frozenset(e.strip().lstrip(".") for e in extensions if e and e.strip().lstrip("."))


@dataclass
class ExtensionReferenceFilter(OnMatchFilter):
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    on_match: OnMatch = OnMatch.INCLUDE
    case_sensitive: bool = False

    name = "extension"

    def __post_init__(self):
        self.extensions = _parse_extensions(self.extensions)
        self.on_match = OnMatch.parse(self.on_match)

    def matches_reference(self, reference: str) -> bool:
        # an empty set matches everything
        if not self.extensions:
            return True
        ext = reference_extension(reference)
        if self.case_sensitive:
            return ext in self.extensions
        low = ext.lower()
        return any(e.lower() == low for e in self.extensions)


@dataclass
class RegexReferenceFilter(OnMatchFilter):
    pattern: str = ".*"
    on_match: OnMatch = OnMatch.INCLUDE
    case_sensitive: bool = False

    name = "regex_reference"

    def __post_init__(self):
        self.on_match = OnMatch.parse(self.on_match)
        flags = 0 if self.case_sensitive else re.IGNORECASE
        self._regex = re.compile(self.pattern, flags)

    def matches_reference(self, reference: str) -> bool:
        return self._regex.fullmatch(reference) is not None


@dataclass
class RegexMetadataFilter(OnMatchFilter):
    field: str = ""
    pattern: str = ".*"
    on_match: OnMatch = OnMatch.INCLUDE
    case_sensitive: bool = False
    partial: bool = False

    name = "regex_metadata"

    def __post_init__(self):
        if not self.field:
            raise ValueError("regex_metadata filter requires a 'field'")
        self.on_match = OnMatch.parse(self.on_match)
        flags = 0 if self.case_sensitive else re.IGNORECASE
        self._regex = re.compile(self.pattern, flags)

    def _value_matches(self, value: str) -> bool:
        if self.partial:
            return self._regex.search(value) is not None
        return self._regex.fullmatch(value) is not None

    def matches_reference(self, reference: str) -> bool:
        return False

    def matches_metadata(self, reference: str, metadata: Optional[Properties]) -> bool:
        if metadata is None:
            return False
        return any(self._value_matches(v) for v in metadata.get_all(self.field))
