from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Optional, Tuple

from ..pipeline.context import Document


class ImportStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass(frozen=True)
class ImportResponse:
    """One node of an import result tree.

    REJECTED and ERROR nodes carry no document but keep any nested responses
    produced before the failure. Nodes are immutable; processors return a new
    node built with `with_status`.
    """
    reference: str
    status: ImportStatus = ImportStatus.SUCCESS
    document: Optional[Document] = None
    description: str = ""
    exception: Optional[BaseException] = None
    nested: Tuple["ImportResponse", ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status is ImportStatus.SUCCESS

    @property
    def is_rejected(self) -> bool:
        return self.status is ImportStatus.REJECTED

    @property
    def is_error(self) -> bool:
        return self.status is ImportStatus.ERROR

    @property
    def exception_kind(self) -> Optional[str]:
        return type(self.exception).__name__ if self.exception is not None else None

    def with_status(self, status: ImportStatus, description: str = "", exception: Optional[BaseException] = None) -> "ImportResponse":
        doc = self.document if status is ImportStatus.SUCCESS else None
        return replace(
            self,
            status=status,
            document=doc,
            description=description or self.description,
            exception=exception if exception is not None else self.exception,
        )

    def walk(self) -> Iterator["ImportResponse"]:
        """Depth-first, parent before children."""
        yield self
        for child in self.nested:
            yield from child.walk()

    def count(self) -> int:
        return sum(1 for _ in self.walk())

    def __repr__(self) -> str:
        return (
            f"ImportResponse({self.reference!r}, {self.status.name}, "
            f"nested={len(self.nested)}, description={self.description!r})"
        )
