from .embedded import EmbeddedAction, EmbeddedPolicy
from .engine import ImportEngine, ImporterConfig, ImporterRequest
from .parser import (
    DocumentParser,
    EmbeddedPart,
    HtmlParser,
    ParserRegistry,
    PlainTextParser,
    ZipParser,
    detect_content_type,
)
from .response import ImportResponse, ImportStatus

__all__ = [
    "EmbeddedAction",
    "EmbeddedPolicy",
    "ImportEngine",
    "ImporterConfig",
    "ImporterRequest",
    "DocumentParser",
    "EmbeddedPart",
    "HtmlParser",
    "ParserRegistry",
    "PlainTextParser",
    "ZipParser",
    "detect_content_type",
    "ImportResponse",
    "ImportStatus",
]
