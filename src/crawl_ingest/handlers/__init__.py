from .base import (
    Handler,
    HandlerChain,
    HandlerFilter,
    HandlerKind,
    OnSet,
    Restriction,
    Tagger,
    Transformer,
)
from .external import ExternalTransformer, ExtractionPattern
from .field_report import FieldReportTagger
from .impl import ConstantTagger, CopyFieldTagger, RegexReplaceTransformer, TextFilter

__all__ = [
    "Handler",
    "HandlerChain",
    "HandlerFilter",
    "HandlerKind",
    "OnSet",
    "Restriction",
    "Tagger",
    "Transformer",
    "ExternalTransformer",
    "ExtractionPattern",
    "FieldReportTagger",
    "ConstantTagger",
    "CopyFieldTagger",
    "RegexReplaceTransformer",
    "TextFilter",
]
