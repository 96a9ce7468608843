from __future__ import annotations
import sys
import textwrap
from pathlib import Path
from typing import Dict, Optional

import pytest

from crawl_ingest.pipeline.content import CachedStream
from crawl_ingest.pipeline.context import Document
from crawl_ingest.pipeline.properties import Properties


def make_doc(reference: str = "http://example.com/doc.txt", content=b"", metadata: Optional[Dict] = None) -> Document:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return Document(reference=reference, content=CachedStream(content), metadata=Properties(metadata or {}))


@pytest.fixture
def doc_factory():
    return make_doc


@pytest.fixture
def python_script(tmp_path: Path):
    """Write a helper script into tmp_path; returns the argv prefix that runs it."""
    def _write(name: str, code: str) -> list:
        path = tmp_path / name
        path.write_text(textwrap.dedent(code), encoding="utf-8")
        return [sys.executable, str(path)]
    return _write
