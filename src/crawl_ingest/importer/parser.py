"""Document parsers.

A parser turns a document's raw content into text (written to `output`),
may add metadata to the document, and may return embedded parts found
inside it (archive members, attachments, ...). What happens to those parts
is decided by the importer, not the parser.

Built-in parsers are deliberately small:
- text/*          : decode to text (charset from Content-Type, else utf-8)
- text/html       : BeautifulSoup text extraction, title/description/robots metadata
- application/zip : one embedded part per archive member
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import Dict, List, Optional, Tuple
import mimetypes
import re
import zipfile

from bs4 import BeautifulSoup

from ..exceptions import ParseError
from ..filters.impl import reference_extension
from ..pipeline.content import CachedStream
from ..pipeline.context import Document, _charset
from ..pipeline.properties import Properties

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class EmbeddedPart:
    name: str
    content: CachedStream
    content_type: Optional[str] = None
    metadata: Properties = field(default_factory=Properties)


class DocumentParser(ABC):
    name: str = "parser"

    @abstractmethod
    def parse(self, doc: Document, output: CachedStream) -> List[EmbeddedPart]:
        ...


def guess_content_type(name: str) -> Optional[str]:
    ctype, _ = mimetypes.guess_type(name, strict=False)
    if ctype:
        return ctype
    ext = reference_extension(name).lower()
    return {"md": "text/markdown", "csv": "text/csv", "log": "text/plain"}.get(ext)


def detect_content_type(doc: Document, default: str = DEFAULT_CONTENT_TYPE) -> str:
    """Content-Type metadata (parameters stripped), else a guess from the reference, else `default`."""
    declared = doc.content_type or doc.metadata.get_ignore_case("Content-Type")
    if declared:
        base = declared.split(";", 1)[0].strip().lower()
        if base:
            return base
    return guess_content_type(doc.reference) or default


class PlainTextParser(DocumentParser):
    name = "text"

    def __init__(self, encoding: Optional[str] = None):
        self.encoding = encoding

    def parse(self, doc: Document, output: CachedStream) -> List[EmbeddedPart]:
        enc = self.encoding or _charset(doc.metadata) or "utf-8"
        try:
            text = doc.content.getvalue().decode(enc, errors="replace")
        except LookupError as e:
            raise ParseError(f"Unknown charset {enc!r}") from e
        output.write(text.encode("utf-8"))
        return []


_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


class HtmlParser(DocumentParser):
    name = "html"

    def parse(self, doc: Document, output: CachedStream) -> List[EmbeddedPart]:
        raw = doc.content.getvalue()
        enc = _charset(doc.metadata)
        soup = BeautifulSoup(raw, "html.parser", from_encoding=enc)
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        if soup.title and soup.title.string:
            doc.metadata.set("dc:title", soup.title.string.strip())
        for meta in soup.find_all("meta"):
            name = (meta.get("name") or "").strip().lower()
            content = meta.get("content")
            if name in ("description", "keywords", "robots", "author") and content:
                doc.metadata.add(name if name != "author" else "dc:creator", content.strip())

        body = soup.body or soup
        text = body.get_text("\n")
        text = "\n".join(line.strip() for line in text.splitlines())
        text = _BLANK_LINES_RE.sub("\n\n", text).strip()
        output.write(text.encode("utf-8"))
        return []


class ZipParser(DocumentParser):
    name = "zip"

    def parse(self, doc: Document, output: CachedStream) -> List[EmbeddedPart]:
        doc.content.rewind()
        try:
            zf = zipfile.ZipFile(doc.content)
        except zipfile.BadZipFile as e:
            raise ParseError(f"Not a valid zip archive: {e}") from e
        parts: List[EmbeddedPart] = []
        with zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                part = doc.content.new_stream()
                with zf.open(info) as member:
                    for chunk in iter(lambda: member.read(65536), b""):
                        part.write(chunk)
                part.rewind()
                meta = Properties()
                meta.set("embedded.name", info.filename)
                meta.set("Content-Length", info.file_size)
                parts.append(EmbeddedPart(info.filename, part, guess_content_type(info.filename), meta))
        doc.content.rewind()
        return parts


class ParserRegistry:
    """Content-type wildcard -> parser, first match wins, `default` otherwise."""

    def __init__(self, parsers: Optional[List[Tuple[str, DocumentParser]]] = None, default: Optional[DocumentParser] = None):
        self._parsers: List[Tuple[str, DocumentParser]] = list(parsers or [])
        self.default = default or PlainTextParser()

    @classmethod
    def with_builtins(cls, default: Optional[DocumentParser] = None) -> "ParserRegistry":
        return cls([
            ("text/html", HtmlParser()),
            ("application/xhtml+xml", HtmlParser()),
            ("application/zip", ZipParser()),
            ("application/x-zip-compressed", ZipParser()),
            ("text/*", PlainTextParser()),
        ], default=default)

    def register(self, content_type_pattern: str, parser: DocumentParser, first: bool = True) -> None:
        if first:
            self._parsers.insert(0, (content_type_pattern, parser))
        else:
            self._parsers.append((content_type_pattern, parser))

    def for_content_type(self, content_type: str) -> DocumentParser:
        ct = (content_type or "").lower()
        for pattern, parser in self._parsers:
            if fnmatch(ct, pattern.lower()):
                return parser
        return self.default

    def patterns(self) -> Dict[str, str]:
        return {p: type(parser).__name__ for p, parser in self._parsers}
