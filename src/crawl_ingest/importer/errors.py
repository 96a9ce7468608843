"""Parse-error artifacts.

For each document that fails to parse, three files land in the configured
directory, sharing one prefix:

    <safe-name>-<uuid>-content<ext>   content as handed to the parser
    <safe-name>-<uuid>-meta.txt       metadata snapshot (key=value)
    <safe-name>-<uuid>-error.txt      exception and traceback
"""

from __future__ import annotations
from typing import List
import logging
import os
import re
import traceback
import uuid

from ..filters.impl import reference_extension
from ..handlers import metadata_format
from ..pipeline.context import Document

log = logging.getLogger("crawl_ingest.importer.errors")

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(reference: str, max_len: int = 64) -> str:
    base = reference.rstrip("/").rsplit("/", 1)[-1] or "document"
    base = _UNSAFE_RE.sub("_", base).strip("._") or "document"
    return base[:max_len]


def save_parse_error(directory: str, doc: Document, exc: BaseException) -> List[str]:
    """Write the three artifacts; returns their paths."""
    os.makedirs(directory, exist_ok=True)
    name = safe_name(doc.reference)
    ext = reference_extension(name)
    prefix = os.path.join(directory, f"{name}-{uuid.uuid4().hex[:12]}")

    content_path = f"{prefix}-content" + (f".{ext}" if ext and len(ext) <= 10 else "")
    meta_path = f"{prefix}-meta.txt"
    error_path = f"{prefix}-error.txt"

    with open(content_path, "wb") as f:
        doc.content.copy_to(f)
    with open(meta_path, "w", encoding="utf-8") as f:
        f.write(metadata_format.serialize(doc.metadata, metadata_format.FORMAT_PROPERTIES))
    with open(error_path, "w", encoding="utf-8") as f:
        f.write(f"reference: {doc.reference}\n\n")
        f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    log.info("Saved parse error artifacts for %s under %s", doc.reference, prefix)
    return [content_path, meta_path, error_path]
