"""Filter primitives.

A filter only answers "does my predicate match this value?". What a match
means is the filter's OnMatch policy:

- INCLUDE: a match accepts the value
- EXCLUDE: a match rejects the value

Filters are evaluated in order by FilterChain; the first match decides. When
nothing matches the chain falls back to its default. The same algorithm
serves the three filter kinds (reference, metadata, parsed document).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Union

from ..pipeline.context import Document
from ..pipeline.properties import Properties


class OnMatch(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"

    @classmethod
    def include_if_none(cls, value: Optional["OnMatch"]) -> "OnMatch":
        return cls.INCLUDE if value is None else value

    @classmethod
    def parse(cls, value: Union[str, "OnMatch", None]) -> "OnMatch":
        if value is None or isinstance(value, OnMatch):
            return cls.include_if_none(value)
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"on_match must be 'include' or 'exclude', got {value!r}")


class FilterResult(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"
    NO_MATCH = "no_match"


class FilterKind(str, Enum):
    REFERENCE = "reference"
    METADATA = "metadata"
    DOCUMENT = "document"


class OnMatchFilter(ABC):
    name: str = "filter"
    on_match: OnMatch = OnMatch.INCLUDE

    @abstractmethod
    def matches_reference(self, reference: str) -> bool:
        ...

    def matches_metadata(self, reference: str, metadata: Properties) -> bool:
        return self.matches_reference(reference)

    def matches_document(self, document: Document) -> bool:
        return self.matches_metadata(document.reference, document.metadata)

    def matches(self, value: Any, kind: Optional[FilterKind] = None) -> bool:
        kind = kind or _kind_of(value)
        if kind is FilterKind.DOCUMENT:
            return self.matches_document(value)
        if kind is FilterKind.METADATA:
            reference, metadata = value
            return self.matches_metadata(reference, metadata)
        return self.matches_reference(value)

    def evaluate(self, value: Any, kind: Optional[FilterKind] = None) -> FilterResult:
        if not self.matches(value, kind):
            return FilterResult.NO_MATCH
        if OnMatch.include_if_none(self.on_match) is OnMatch.INCLUDE:
            return FilterResult.INCLUDE
        return FilterResult.EXCLUDE

    # Stand-alone use: a filter on its own rejects non-matching values when
    # it includes, and accepts them when it excludes.
    def accept(self, value: Any, kind: Optional[FilterKind] = None) -> bool:
        res = self.evaluate(value, kind)
        if res is FilterResult.NO_MATCH:
            return OnMatch.include_if_none(self.on_match) is OnMatch.EXCLUDE
        return res is FilterResult.INCLUDE

    def accept_reference(self, reference: str) -> bool:
        return self.accept(reference, FilterKind.REFERENCE)

    def accept_metadata(self, reference: str, metadata: Properties) -> bool:
        return self.accept((reference, metadata), FilterKind.METADATA)

    def accept_document(self, document: Document) -> bool:
        return self.accept(document, FilterKind.DOCUMENT)


def _kind_of(value: Any) -> FilterKind:
    if isinstance(value, Document):
        return FilterKind.DOCUMENT
    if isinstance(value, tuple):
        return FilterKind.METADATA
    return FilterKind.REFERENCE


def accept_chain(
    value: Any,
    filters: Sequence[OnMatchFilter],
    default_accept: bool = True,
    kind: Optional[FilterKind] = None,
) -> bool:
    """First matching filter decides; `default_accept` when none matches."""
    for f in filters:
        res = f.evaluate(value, kind)
        if res is not FilterResult.NO_MATCH:
            return res is FilterResult.INCLUDE
    return default_accept


class FilterChain:
    """Ordered filters of one kind.

    When `default_accept` is not given it is derived from the filters: a chain
    holding at least one INCLUDE filter only accepts what some filter
    includes, otherwise everything not excluded is accepted.
    """

    def __init__(
        self,
        filters: Optional[Sequence[OnMatchFilter]] = None,
        default_accept: Optional[bool] = None,
        kind: FilterKind = FilterKind.REFERENCE,
    ):
        self.filters = tuple(filters or ())
        self.kind = kind
        if default_accept is None:
            default_accept = not any(
                OnMatch.include_if_none(f.on_match) is OnMatch.INCLUDE for f in self.filters
            )
        self.default_accept = default_accept

    def evaluate(self, value: Any) -> Tuple[bool, Optional[OnMatchFilter]]:
        """Return (accepted, deciding filter or None when the default applied)."""
        for f in self.filters:
            res = f.evaluate(value, self.kind)
            if res is not FilterResult.NO_MATCH:
                return res is FilterResult.INCLUDE, f
        return self.default_accept, None

    def accept(self, value: Any) -> bool:
        return self.evaluate(value)[0]

    def __len__(self) -> int:
        return len(self.filters)

    def __bool__(self) -> bool:
        return bool(self.filters)
