"""Stage interface.

Stages must:
- take the shared PipelineContext
- return True to let the document continue, False to stop its journey
- set the document's terminal state (and reason) themselves before returning False
- fire their own events through `ctx.fire` / `ctx.reject`

Stages are stateless between documents; one instance is shared by every worker.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from ..pipeline.context import PipelineContext


class Stage(ABC):
    name: str = "stage"

    @abstractmethod
    def execute(self, ctx: PipelineContext) -> bool:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"
