"""Run IDs.

A run ID names the log file, manifest and report of one crawl. It is either
given as `run.run_id` or built from `run.run_id_auto`:

```yaml
run:
  run_id_auto:
    prefix_digits: 8          # leading digits of the UTC stamp YYYYMMDDHHMMSS
    suffix_digits: 6          # trailing digits of the same stamp
    include_input_name: true  # slug of the first start reference
    separator: "_"
  work_dir: work/{run_id}
```
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse
import os
import re

DEFAULT_RUN_ID = "crawl"
DEFAULT_WORK_DIR = "work"

_SLUG_RE = re.compile(r"[^\w\-]+")


def utc_stamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")


def reference_slug(reference: str) -> str:
    """Host for URLs, file stem for paths; safe for file names."""
    ref = reference.strip()
    parsed = urlparse(ref)
    if parsed.netloc:
        raw = parsed.hostname or parsed.netloc
    else:
        path = parsed.path if parsed.scheme == "file" else ref
        raw = os.path.splitext(os.path.basename(os.path.normpath(path)))[0]
    return _SLUG_RE.sub("_", raw).strip("_")


def generate_run_id(
    start_references: Iterable[str],
    auto_cfg: Dict[str, Any],
    now: Optional[datetime] = None,
) -> str:
    stamp = utc_stamp(now)
    head = int(auto_cfg.get("prefix_digits", 4))
    tail = int(auto_cfg.get("suffix_digits", 6))

    parts: List[str] = []
    if auto_cfg.get("include_input_name", True):
        first = next(iter(start_references), None)
        parts.append((reference_slug(str(first)) if first is not None else "") or DEFAULT_RUN_ID)
    if head > 0:
        parts.append(stamp[:head])
    if tail > 0:
        parts.append(stamp[-tail:])
    return str(auto_cfg.get("separator", "_")).join(parts) or DEFAULT_RUN_ID


def resolve_run_id(cfg: Dict[str, Any]) -> str:
    run = cfg.get("run") or {}
    explicit = str(run.get("run_id") or "").strip()
    if explicit:
        return explicit
    auto_cfg = run.get("run_id_auto")
    if isinstance(auto_cfg, dict) and auto_cfg.get("enabled", True):
        return generate_run_id(cfg.get("start_references") or [], auto_cfg)
    return DEFAULT_RUN_ID


def resolve_work_dir(cfg: Dict[str, Any], run_id: str) -> str:
    run = cfg.get("run") or {}
    return str(run.get("work_dir") or DEFAULT_WORK_DIR).replace("{run_id}", run_id)
