"""
Awwal Classroom - Runtime components for tracking learner progress.

This module provides:
- ProgressStore functions: load/save/record/query a LearnerProgress
- ProgressReconciler: merge local progress with the server's
- HttpProgressClient: the account/progress API
- AuthSession: sign-in state and token persistence
- ProgressService: session-scoped orchestrator
"""

from .clock import (
    Clock,
    SystemClock,
    FixedClock,
    DAY_MS,
)

from .errors import (
    ProgressError,
    StorageReadError,
    StorageWriteError,
    RemoteFetchError,
    RemoteSyncError,
    AuthError,
)

from .storage import (
    KeyValueStorage,
    SQLiteStorage,
    MemoryStorage,
    DEFAULT_STORAGE_DIR,
    DEFAULT_STORAGE_DB,
)

from .progress import (
    STORAGE_KEY,
    REVIEW_INTERVAL_MS,
    LoadResult,
    parse_progress,
    try_load_progress,
    load_progress,
    save_progress,
    clear_progress,
    update_streak,
    record_lesson_complete,
    is_lesson_completed,
    get_completion_stats,
    due_for_review,
)

from .reconciler import (
    ProgressReconciler,
    merge_progress,
    snapshot_to_progress,
    REMOTE_DEFAULT_SCORE,
)

from .remote import (
    RemoteProgressClient,
    HttpProgressClient,
    DEFAULT_API_URL,
    DEFAULT_TIMEOUT,
)

from .auth import (
    AuthSession,
    TOKEN_KEY,
)

from .service import ProgressService

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "FixedClock",
    "DAY_MS",
    # Errors
    "ProgressError",
    "StorageReadError",
    "StorageWriteError",
    "RemoteFetchError",
    "RemoteSyncError",
    "AuthError",
    # Storage
    "KeyValueStorage",
    "SQLiteStorage",
    "MemoryStorage",
    "DEFAULT_STORAGE_DIR",
    "DEFAULT_STORAGE_DB",
    # Progress
    "STORAGE_KEY",
    "REVIEW_INTERVAL_MS",
    "LoadResult",
    "parse_progress",
    "try_load_progress",
    "load_progress",
    "save_progress",
    "clear_progress",
    "update_streak",
    "record_lesson_complete",
    "is_lesson_completed",
    "get_completion_stats",
    "due_for_review",
    # Reconciler
    "ProgressReconciler",
    "merge_progress",
    "snapshot_to_progress",
    "REMOTE_DEFAULT_SCORE",
    # Remote
    "RemoteProgressClient",
    "HttpProgressClient",
    "DEFAULT_API_URL",
    "DEFAULT_TIMEOUT",
    # Auth
    "AuthSession",
    "TOKEN_KEY",
    # Service
    "ProgressService",
]
