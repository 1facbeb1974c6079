"""
ProgressService - Owns the learner's in-memory progress for one session.

Combines the ProgressStore functions (local, synchronous, authoritative)
with the RemoteProgressClient (asynchronous side channel):
- complete_lesson updates and persists locally, then mirrors to the server
- signing in fetches the server snapshot and reconciles it into the record
- refresh reloads from storage and, when signed in, reconciles again

No public method raises. Failures are logged and reported through
SyncResult values and the `last_*` attributes.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional

from awwal.schemas import LearnerProgress, SessionState, SyncResult

from .clock import Clock, SystemClock
from .errors import RemoteFetchError, RemoteSyncError, StorageWriteError
from .progress import (
    get_completion_stats,
    is_lesson_completed,
    load_progress,
    record_lesson_complete,
    save_progress,
)
from .reconciler import ProgressReconciler
from .remote import RemoteProgressClient
from .storage import KeyValueStorage


logger = logging.getLogger(__name__)


class ProgressService:
    """
    Session-scoped progress owner.

    State is two independent axes: anonymous/authenticated (driven by
    on_session_change) and idle/syncing (`is_loading`). Every mutation
    replaces the record under a lock, so readers see either the old or
    the new record, never a partial one.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        client: Optional[RemoteProgressClient] = None,
        clock: Optional[Clock] = None,
        reconciler: Optional[ProgressReconciler] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the service from local storage (anonymous state).

        Args:
            storage: Persistence port holding the progress blob
            client: Remote API client; None runs local-only
            clock: Time source for streaks and review hints
            reconciler: Merge policy for sign-in (default ProgressReconciler)
            executor: Runs remote calls; default is a single worker thread
        """
        self.storage = storage
        self.client = client
        self.clock = clock or SystemClock()
        self.reconciler = reconciler or ProgressReconciler()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="progress-sync"
        )

        self._lock = threading.Lock()
        self._progress = load_progress(storage)
        self._session = SessionState()
        self._syncing = 0

        self.last_sync_result: Optional[SyncResult] = None
        self.last_write_error: Optional[StorageWriteError] = None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def progress(self) -> LearnerProgress:
        return self._progress

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._syncing > 0

    def is_completed(self, level_id: str, lesson_id: str) -> bool:
        return is_lesson_completed(self._progress, level_id, lesson_id)

    def stats(self, total_lessons: Optional[int] = None) -> dict:
        return get_completion_stats(self._progress, total_lessons)

    # -------------------------------------------------------------------------
    # Local writes
    # -------------------------------------------------------------------------

    def _persist(self, progress: LearnerProgress):
        """Persist under the lock. Write errors are kept, not raised."""
        self.last_write_error = save_progress(self.storage, progress)

    def complete_lesson(
        self,
        level_id: str,
        lesson_id: str,
        score: Optional[float] = None,
    ) -> Optional[Future]:
        """
        Record a completion locally, then mirror it to the server.

        The local record is updated and persisted before this returns.

        Returns:
            Future resolving to the remote SyncResult when signed in, else None
        """
        with self._lock:
            self._progress = record_lesson_complete(
                self._progress, level_id, lesson_id, score, self.clock
            )
            self._persist(self._progress)
            session = self._session

        if not (session.is_authenticated and session.token and self.client):
            return None
        return self._submit(self._push_completion, session.token, level_id, lesson_id)

    def refresh(self) -> Optional[Future]:
        """Reload from local storage and, when signed in, reconcile with the server.

        After a failed write the in-memory record is still the source of
        truth, so it is written again instead of being replaced by the
        stale stored copy.
        """
        with self._lock:
            if self.last_write_error is not None:
                logger.info("Last write failed; retrying save instead of reloading")
                self._persist(self._progress)
            else:
                self._progress = load_progress(self.storage)
            session = self._session

        if session.is_authenticated:
            return self.sync_remote()
        return None

    def reset(self):
        """Drop back to the anonymous default record (logout is a hard reset)."""
        with self._lock:
            self._progress = LearnerProgress.default()
            self._session = SessionState()
            self.last_sync_result = None
            self.last_write_error = None
        logger.info("Progress reset to defaults")

    # -------------------------------------------------------------------------
    # Session transitions
    # -------------------------------------------------------------------------

    def on_session_change(self, state: SessionState) -> Optional[Future]:
        """
        React to an authentication transition.

        anonymous -> authenticated: fetch and reconcile remote progress.
        authenticated -> anonymous: hard reset.
        """
        with self._lock:
            previous = self._session
            self._session = state

        if state.is_authenticated and not previous.is_authenticated:
            return self.sync_remote()
        if previous.is_authenticated and not state.is_authenticated:
            self.reset()
        return None

    def attach(self, auth) -> Optional[Future]:
        """Follow an AuthSession's transitions, starting from its current state."""
        auth.add_listener(self.on_session_change)
        return self.on_session_change(auth.state)

    def sync_remote(self) -> Optional[Future]:
        """Schedule a fetch-and-reconcile with the server."""
        session = self._session
        if not (session.is_authenticated and session.token and self.client):
            return None
        return self._submit(self._fetch_and_reconcile, session.token)

    # -------------------------------------------------------------------------
    # Remote side channel (runs on the executor)
    # -------------------------------------------------------------------------

    def _submit(self, fn, *args) -> Optional[Future]:
        with self._lock:
            self._syncing += 1
        try:
            return self._executor.submit(self._run, fn, *args)
        except RuntimeError as e:
            # executor already shut down
            with self._lock:
                self._syncing -= 1
            logger.warning(f"Remote call not scheduled: {e}")
            return None

    def _run(self, fn, *args) -> SyncResult:
        result = None
        try:
            result = fn(*args)
            return result
        finally:
            with self._lock:
                self._syncing -= 1
                if result is not None:
                    self.last_sync_result = result

    def _push_completion(self, token: str, level_id: str, lesson_id: str) -> SyncResult:
        try:
            self.client.complete_lesson(token, level_id, lesson_id)
        except RemoteSyncError as e:
            logger.warning(f"Failed to sync completion {level_id}/{lesson_id}: {e}")
            return SyncResult(ok=False, error="RemoteSyncError", detail=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error syncing {level_id}/{lesson_id}")
            return SyncResult(ok=False, error="RemoteSyncError", detail=str(e))

        logger.debug(f"Synced completion {level_id}/{lesson_id}")
        return SyncResult(ok=True)

    def _fetch_and_reconcile(self, token: str) -> SyncResult:
        try:
            snapshot = self.client.fetch_progress(token)
        except RemoteFetchError as e:
            logger.warning(f"Failed to load progress from server, staying local: {e}")
            return SyncResult(ok=False, error="RemoteFetchError", detail=str(e))
        except Exception as e:
            logger.exception("Unexpected error fetching remote progress")
            return SyncResult(ok=False, error="RemoteFetchError", detail=str(e))

        with self._lock:
            if self._session.token != token:
                logger.info("Session changed during fetch; discarding server snapshot")
                return SyncResult(ok=False, error="RemoteFetchError", detail="session changed")

            # merge against the current record so concurrent completions survive
            try:
                merged = self.reconciler.reconcile(self._progress, snapshot)
            except Exception as e:
                logger.exception("Could not reconcile server progress, staying local")
                return SyncResult(ok=False, error="RemoteFetchError", detail=str(e))
            self._progress = merged
            self._persist(merged)

        return SyncResult(ok=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self, wait: bool = True):
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
