"""Exception taxonomy.

- ConfigError: startup problems (unknown component type, bad command template).
  The only kind of error that aborts a whole run.
- FetchError: transport failure. `retryable` separates network/timeout
  failures from protocol failures.
- ParseError / HandlerError: local to one document (or one embedded node).
- CommitError: raised by committers, never swallowed by the dispatcher.

Filter vetoes are not errors; they end as a REJECTED state with a reason.
"""

from __future__ import annotations


class CrawlIngestError(Exception):
    """Base class for all errors raised by crawl_ingest."""


class ConfigError(CrawlIngestError):
    pass


class FetchError(CrawlIngestError):
    def __init__(self, message: str, *, retryable: bool = False, status_code: int = -1):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class ParseError(CrawlIngestError):
    pass


class HandlerError(CrawlIngestError):
    pass


class CommitError(CrawlIngestError):
    pass
