"""Robots meta directives.

Directives come from the `X-Robots-Tag` response header and from
`<meta name="robots" content="...">` tags near the top of HTML content.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional
import re

from bs4 import BeautifulSoup

from .pipeline.context import Document

HEAD_BYTES = 64 * 1024

_ROBOTS_NAME_RE = re.compile(r"^\s*robots\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class RobotsMeta:
    noindex: bool = False
    nofollow: bool = False

    @classmethod
    def parse(cls, directives: Iterable[str]) -> "RobotsMeta":
        noindex = nofollow = False
        for d in directives:
            for token in re.split(r"[,\s]+", d.lower()):
                # "googlebot: noindex" style prefixes apply to us too
                token = token.rsplit(":", 1)[-1].strip()
                if token in ("noindex", "none"):
                    noindex = True
                if token in ("nofollow", "none"):
                    nofollow = True
        return cls(noindex=noindex, nofollow=nofollow)

    @property
    def empty(self) -> bool:
        return not (self.noindex or self.nofollow)


def html_robots_directives(html: str) -> List[str]:
    soup = BeautifulSoup(html, "html.parser")
    found = []
    for tag in soup.find_all("meta", attrs={"name": _ROBOTS_NAME_RE}):
        content = (tag.get("content") or "").strip()
        if content:
            found.append(content)
    return found


def extract_robots_meta(doc: Document, content_type: Optional[str] = None) -> RobotsMeta:
    directives = list(doc.metadata.get_all("X-Robots-Tag"))
    ct = (content_type or doc.metadata.get_ignore_case("Content-Type") or "").lower()
    if "html" in ct and not doc.content.closed:
        doc.content.rewind()
        head = doc.content.read(HEAD_BYTES)
        doc.content.rewind()
        directives.extend(html_robots_directives(head.decode("utf-8", errors="replace")))
    return RobotsMeta.parse(directives)
