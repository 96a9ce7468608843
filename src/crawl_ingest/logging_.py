"""Logging utilities.

Standard `logging` with a plain, grep-friendly format.

- Logs go to: `<log_dir>/<run_id>.log` (default `<work_dir>/logs`)
- Also prints concise progress to stderr.
"""

from __future__ import annotations
import logging
import os
from typing import Optional, Union

FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"

# marks handlers we installed so a second call replaces instead of stacking them
_HANDLER_ATTR = "_crawl_ingest_handler"


def setup_logging(
    work_dir: str,
    run_id: str,
    log_dir: Optional[str] = None,
    level: Union[str, int] = "INFO",
) -> str:
    """
    Setup logging configuration; returns the log file path.

    Args:
        work_dir: Crawl working directory
        run_id: Run identifier (log file name)
        log_dir: Log directory (if None, uses work_dir/logs)
        level: Root log level name or number
    """
    if log_dir is None:
        log_dir = os.path.join(work_dir, "logs")

    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, f"{run_id}.log")

    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for h in list(root.handlers):
        if getattr(h, _HANDLER_ATTR, False):
            root.removeHandler(h)
            h.close()

    fmt = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    # File
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(fmt)
    setattr(fh, _HANDLER_ATTR, True)
    root.addHandler(fh)

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    setattr(ch, _HANDLER_ATTR, True)
    root.addHandler(ch)
    return log_path
