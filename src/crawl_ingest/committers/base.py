"""Committer interface.

A committer persists accepted documents to a downstream target (index,
files, queue). Failures are raised as CommitError and propagate to the
caller; committers may retry internally, the dispatcher never does.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from ..pipeline.context import Document
from ..pipeline.properties import Properties


class Committer(ABC):
    name: str = "committer"

    @abstractmethod
    def upsert(self, document: Document) -> None:
        """Add or replace a document."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, reference: str, metadata: Optional[Properties] = None) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass
