"""Example: adding a committer type at runtime without touching the registry module.

Once registered, the type can be used from YAML like any built-in:

    committers:
      - type: csv_index
        path: work/index.csv
"""

import csv
import threading
from typing import Optional

from crawl_ingest.committers import Committer, list_committers, register_committer
from crawl_ingest.pipeline.context import Document
from crawl_ingest.pipeline.properties import Properties


class CsvIndexCommitter(Committer):
    """Appends reference, title and text length to a CSV file."""

    name = "csv_index"

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def upsert(self, document: Document) -> None:
        text = document.text()
        with self._lock, open(self.path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(["upsert", document.reference, document.metadata.get("dc:title", ""), len(text)])

    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        with self._lock, open(self.path, "a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(["delete", reference, "", 0])


register_committer("csv_index", lambda cfg: CsvIndexCommitter(**cfg))

print("Registered committers:")
for kind, how in list_committers().items():
    print(f"  {kind}: {how}")
