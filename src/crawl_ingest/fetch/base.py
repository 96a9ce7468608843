"""Fetcher plugin interface.

A fetcher retrieves raw content for a reference. It must:
- say whether it can handle a request (`accept`)
- return a FetchResponse whose `state` is always set
- raise FetchError for transport failures, flagging whether a retry may help

Fetchers never touch the document's current content; they hand a new stream
back in the response and the coordinator attaches it.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..pipeline.content import CachedStream
from ..pipeline.context import Document, DocumentState
from ..pipeline.properties import Properties


@dataclass
class FetchRequest:
    reference: str
    method: str = "GET"
    document: Optional[Document] = None


@dataclass
class FetchResponse:
    state: DocumentState
    status_code: int = -1
    reason: str = ""
    user_agent: Optional[str] = None
    content: Optional[CachedStream] = None
    metadata: Properties = field(default_factory=Properties)

    @property
    def ok(self) -> bool:
        return self.state is DocumentState.NEW


class Fetcher(ABC):
    name: str = "fetcher"

    @abstractmethod
    def accept(self, request: FetchRequest) -> bool:
        ...

    @abstractmethod
    def fetch(self, request: FetchRequest) -> FetchResponse:
        ...

    def close(self) -> None:
        pass
