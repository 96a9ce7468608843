"""Ordered, short-circuiting stage executor.

`run` walks the stages in order. The first stage returning False ends the run
and its state mutation is the document's final word. The engine keeps no
state between runs, so a single instance serves every worker.

A set `stop_event` is honoured at stage boundaries only: the running stage
finishes, the next one never starts, and the document keeps its state.
"""

from __future__ import annotations
from typing import Optional, Sequence
import logging
import threading

from ..stages.base import Stage
from .context import PipelineContext

log = logging.getLogger("crawl_ingest.pipeline.engine")


class PipelineEngine:
    def __init__(self, stages: Optional[Sequence[Stage]] = None):
        self.stages = tuple(stages or ())

    def run(
        self,
        ctx: PipelineContext,
        stages: Optional[Sequence[Stage]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        for st in (self.stages if stages is None else stages):
            if ctx.document.state.is_terminal:
                log.debug("%s: state=%s, skipping remaining stages from %s",
                          ctx.document.reference, ctx.document.state.name, st.name)
                return False
            if stop_event is not None and stop_event.is_set():
                log.info("%s: shutdown requested, not starting stage=%s", ctx.document.reference, st.name)
                return False
            if not st.execute(ctx):
                log.debug("%s: stopped at stage=%s state=%s reason=%s",
                          ctx.document.reference, st.name,
                          ctx.document.state.name, ctx.document.reason)
                return False
        return True
