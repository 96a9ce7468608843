"""Built-in committers.

- memory : keeps requests in lists (tests, embedding applications)
- jsonl  : one JSON line per request under `directory`
- log    : logs each request
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import os
import threading
import time

from ..exceptions import CommitError
from ..pipeline.context import Document
from ..pipeline.properties import Properties
from ..storage.writer import append_jsonl
from .base import Committer

log = logging.getLogger("crawl_ingest.committers")


@dataclass
class CommittedDocument:
    reference: str
    metadata: Properties
    content: bytes


class MemoryCommitter(Committer):
    name = "memory"

    def __init__(self, keep_content: bool = True):
        self.keep_content = keep_content
        self.upserts: List[CommittedDocument] = []
        self.deletes: List[str] = []
        self._lock = threading.Lock()

    def upsert(self, document: Document) -> None:
        content = document.content.getvalue() if self.keep_content else b""
        with self._lock:
            self.upserts.append(CommittedDocument(document.reference, document.metadata.copy(), content))

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        with self._lock:
            self.deletes.append(reference)

    def references(self) -> List[str]:
        with self._lock:
            return [d.reference for d in self.upserts]

    def get(self, reference: str) -> Optional[CommittedDocument]:
        with self._lock:
            for d in self.upserts:
                if d.reference == reference:
                    return d
        return None

    def __len__(self) -> int:
        return len(self.upserts)


class JSONLCommitter(Committer):
    name = "jsonl"

    def __init__(self, directory: str, file_name: str = "committed.jsonl", include_content: bool = True, encoding: str = "utf-8"):
        self.directory = directory
        self.path = os.path.join(directory, file_name)
        self.include_content = include_content
        self.encoding = encoding

    def _append(self, row: Dict[str, Any]) -> None:
        try:
            append_jsonl(self.path, [row])
        except OSError as e:
            raise CommitError(f"Cannot write {self.path}: {e}") from e

    def upsert(self, document: Document) -> None:
        row: Dict[str, Any] = {
            "operation": "upsert",
            "reference": document.reference,
            "metadata": document.metadata.to_dict(),
            "ts_ms": int(time.time() * 1000),
        }
        if self.include_content:
            row["content"] = document.content.getvalue().decode(self.encoding, errors="replace")
        self._append(row)

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        self._append({
            "operation": "delete",
            "reference": reference,
            "metadata": metadata.to_dict() if metadata is not None else {},
            "ts_ms": int(time.time() * 1000),
        })


class LogCommitter(Committer):
    name = "log"

    def __init__(self, level: str = "INFO", log_content: bool = False, max_chars: int = 200):
        self.level = logging.getLevelName(str(level).upper())
        if not isinstance(self.level, int):
            raise ValueError(f"Unknown log level: {level}")
        self.log_content = log_content
        self.max_chars = max_chars

    def upsert(self, document: Document) -> None:
        if self.log_content:
            text = document.content.getvalue()[: self.max_chars].decode("utf-8", errors="replace")
            log.log(self.level, "UPSERT %s fields=%d content=%r", document.reference, len(document.metadata), text)
        else:
            log.log(self.level, "UPSERT %s fields=%d", document.reference, len(document.metadata))

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        log.log(self.level, "DELETE %s", reference)
