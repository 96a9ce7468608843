"""Field statistics report.

Tags nothing; collects, across every document it sees, which fields exist,
how many values each had, and a few sample values. The report is a CSV
table rewritten after each document:

    field,occurrences,sample1,sample2,...
    a,6,a11,a22
    c,2,c11,

Rows are sorted by field name. Samples are the first distinct values seen,
truncated to `truncate_samples_at` characters; missing samples are left
empty so every row has `max_samples` sample cells.

One instance is shared by all workers; updates are serialized by a lock.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List
import csv
import io
import logging
import os
import threading

from ..pipeline.context import Document, ParseState
from .base import Tagger

log = logging.getLogger("crawl_ingest.handlers.field_report")


@dataclass
class _FieldStats:
    occurrences: int = 0
    samples: List[str] = field(default_factory=list)


@dataclass
class FieldReportTagger(Tagger):
    file: str
    max_samples: int = 3
    truncate_samples_at: int = -1
    with_headers: bool = False
    with_occurrences: bool = True

    name = "field_report"

    def __post_init__(self):
        super().__post_init__()
        self.file = os.fspath(self.file)
        self._fields: Dict[str, _FieldStats] = {}
        self._lock = threading.Lock()

    def tag(self, doc: Document, parse_state: ParseState) -> None:
        with self._lock:
            for key, values in doc.metadata.items():
                stats = self._fields.setdefault(key, _FieldStats())
                for v in values:
                    stats.occurrences += 1
                    if len(stats.samples) >= self.max_samples:
                        continue
                    sample = v[: self.truncate_samples_at] if self.truncate_samples_at >= 0 else v
                    if sample not in stats.samples:
                        stats.samples.append(sample)
            self._write()

    def render(self) -> str:
        buf = io.StringIO()
        w = csv.writer(buf, lineterminator="\n")
        if self.with_headers:
            header = ["field"]
            if self.with_occurrences:
                header.append("occurrences")
            header.extend(f"sample{i}" for i in range(1, self.max_samples + 1))
            w.writerow(header)
        for name in sorted(self._fields):
            stats = self._fields[name]
            row = [name]
            if self.with_occurrences:
                row.append(str(stats.occurrences))
            row.extend(stats.samples)
            row.extend([""] * (self.max_samples - len(stats.samples)))
            w.writerow(row)
        return buf.getvalue()

    def _write(self) -> None:
        parent = os.path.dirname(self.file)
        if parent:
            os.makedirs(parent, exist_ok=True)
        tmp = self.file + ".tmp"
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(self.render())
        os.replace(tmp, self.file)
