"""
Reorganization Runtime v1

Interactive session, commit batching and persistence adapters around the
Hierarchy Kernel.
"""

from .directory_store import (
    DirectoryStore,
    DirectoryStoreError,
    InMemoryDirectoryStore,
    SqliteDirectoryStore,
)
from .commit import CommitFailure, CommitManager, CommitResult
from .session import (
    EDITING,
    VIEW,
    GestureResult,
    ReorganizationSession,
    SessionStateError,
)
from .view_state import ViewState, ViewStateCache
from .drift import compare_with_directory
from .observability import SessionMetrics, collect_metrics

__all__ = [
    "DirectoryStore",
    "DirectoryStoreError",
    "InMemoryDirectoryStore",
    "SqliteDirectoryStore",
    "CommitFailure",
    "CommitManager",
    "CommitResult",
    "EDITING",
    "VIEW",
    "GestureResult",
    "ReorganizationSession",
    "SessionStateError",
    "ViewState",
    "ViewStateCache",
    "compare_with_directory",
    "SessionMetrics",
    "collect_metrics",
]
