from .base import FilterChain, FilterKind, FilterResult, OnMatch, OnMatchFilter, accept_chain
from .impl import ExtensionReferenceFilter, RegexMetadataFilter, RegexReferenceFilter

__all__ = [
    "FilterChain",
    "FilterKind",
    "FilterResult",
    "OnMatch",
    "OnMatchFilter",
    "accept_chain",
    "ExtensionReferenceFilter",
    "RegexMetadataFilter",
    "RegexReferenceFilter",
]
