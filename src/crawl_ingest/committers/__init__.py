from .base import Committer
from .impl import CommittedDocument, JSONLCommitter, LogCommitter, MemoryCommitter
from .registry import list_committers, make_committers, register_committer, unregister_committer
from .service import CommitDispatcher, CommitterService

__all__ = [
    "Committer",
    "CommittedDocument",
    "JSONLCommitter",
    "LogCommitter",
    "MemoryCommitter",
    "CommitDispatcher",
    "CommitterService",
    "list_committers",
    "make_committers",
    "register_committer",
    "unregister_committer",
]
