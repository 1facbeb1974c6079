"""
ProgressService tests.

Covers optimistic local completion, fire-and-forget sync, sign-in
reconciliation, refresh and the logout hard reset.
"""

import threading

import pytest

from awwal.classroom import (
    STORAGE_KEY,
    AuthError,
    AuthSession,
    MemoryStorage,
    ProgressService,
    RemoteFetchError,
    StorageWriteError,
    load_progress,
    record_lesson_complete,
    save_progress,
)
from awwal.schemas import (
    LearnerProgress,
    RemoteProgressSnapshot,
    SessionState,
)


SIGNED_IN = SessionState(is_authenticated=True, token="tok-123")


def server_snapshot(*keys, streak=0, last_activity=None):
    return RemoteProgressSnapshot.model_validate({
        "progress": [
            {"levelId": level, "lessonId": lesson, "completedAt": "2026-10-01T08:00:00Z"}
            for level, lesson in keys
        ],
        "stats": {
            "streakDays": streak,
            "lastActivityDate": last_activity,
            "totalLessonsCompleted": len(keys),
        },
    })


@pytest.fixture
def service(storage, remote, clock):
    svc = ProgressService(storage, remote, clock=clock)
    yield svc
    svc.close()


class TestAnonymous:
    """Test local-only behaviour."""

    def test_initial_state_from_storage(self, storage, remote, clock):
        saved = record_lesson_complete(LearnerProgress(), "L1", "alif", clock=clock)
        save_progress(storage, saved)

        with ProgressService(storage, remote, clock=clock) as svc:
            assert svc.progress == saved
            assert not svc.is_authenticated
            assert svc.is_completed("L1", "alif")

    def test_complete_lesson_is_local_and_persisted(self, service, storage, remote, today):
        assert service.complete_lesson("L1", "alif", 90) is None

        assert service.is_completed("L1", "alif")
        assert service.progress.streak_days == 1
        assert service.progress.last_activity_date == today
        assert load_progress(storage) == service.progress
        assert remote.completed == []

    def test_no_client_runs_local_only(self, storage, clock):
        with ProgressService(storage, clock=clock) as svc:
            svc.on_session_change(SIGNED_IN)
            assert svc.complete_lesson("L1", "alif") is None
            assert svc.is_completed("L1", "alif")

    def test_corrupt_storage_starts_from_default(self, clock):
        with ProgressService(MemoryStorage({STORAGE_KEY: "{oops"}), clock=clock) as svc:
            assert svc.progress == LearnerProgress()

    def test_write_failure_keeps_memory_record(self, clock, broken_storage):
        with ProgressService(broken_storage, clock=clock) as svc:
            svc.complete_lesson("L1", "alif")
            assert svc.is_completed("L1", "alif")
            assert isinstance(svc.last_write_error, StorageWriteError)

    def test_stats(self, service):
        service.complete_lesson("L1", "alif")
        service.complete_lesson("L1", "ba")
        stats = service.stats(total_lessons=4)
        assert stats["completed"] == 2
        assert stats["completion_percent"] == 50.0


class TestSignIn:
    """Test reconciliation on the anonymous -> authenticated transition."""

    def test_merges_remote_into_local(self, service, storage, remote):
        service.complete_lesson("L1", "A", 40)
        remote.snapshot = server_snapshot(("L1", "A"), ("L2", "C"), streak=7, last_activity="2026-10-18")

        result = service.on_session_change(SIGNED_IN).result()

        assert result.ok
        progress = service.progress
        assert len(progress.lesson_progress) == 2
        assert progress.lesson_progress[0].score == 40
        assert service.is_completed("L2", "C")
        assert progress.streak_days == 7
        assert progress.last_activity_date == "2026-10-18"
        assert progress.total_lessons_completed == 2
        assert load_progress(storage) == progress
        assert service.last_sync_result == result
        assert not service.is_loading

    def test_fetch_failure_stays_local(self, service, remote):
        service.complete_lesson("L1", "A")
        before = service.progress
        remote.fetch_error = RemoteFetchError("GET /api/progress failed: timeout")

        result = service.on_session_change(SIGNED_IN).result()

        assert not result.ok
        assert result.error == "RemoteFetchError"
        assert service.progress == before
        assert service.is_authenticated

    def test_unexpected_client_error_is_absorbed(self, service, remote):
        remote.fetch_error = KeyError("progress")
        result = service.on_session_change(SIGNED_IN).result()
        assert not result.ok
        assert service.progress == LearnerProgress()

    def test_out_of_range_server_timestamp_keeps_local(self, service, remote):
        service.complete_lesson("L1", "A")
        remote.snapshot = RemoteProgressSnapshot.model_validate({
            "progress": [
                {"levelId": "L2", "lessonId": "C", "completedAt": 10**20},
                {"levelId": "L2", "lessonId": "D", "completedAt": "2026-10-01T08:00:00Z"},
            ],
            "stats": {"lastActivityDate": "99999999999999999999"},
        })

        result = service.on_session_change(SIGNED_IN).result()

        assert result.ok
        assert service.is_completed("L1", "A")
        assert service.is_completed("L2", "D")
        assert not service.is_completed("L2", "C")

    def test_reconcile_failure_is_absorbed(self, storage, remote, clock):
        class ExplodingReconciler:
            def reconcile(self, local, remote):
                raise ValueError("bad snapshot")

        with ProgressService(storage, remote, clock=clock, reconciler=ExplodingReconciler()) as svc:
            svc.complete_lesson("L1", "A")
            before = svc.progress

            result = svc.on_session_change(SIGNED_IN).result()

            assert not result.ok
            assert result.error == "RemoteFetchError"
            assert svc.progress == before
            assert not svc.is_loading

    def test_repeated_signed_in_state_does_not_refetch(self, service, remote):
        service.on_session_change(SIGNED_IN).result()
        assert service.on_session_change(SIGNED_IN) is None
        assert remote.fetch_calls == 1

    def test_completion_during_fetch_survives(self, service, remote):
        remote.snapshot = server_snapshot(("L2", "C"))
        remote.fetch_gate = threading.Event()

        future = service.on_session_change(SIGNED_IN)
        assert remote.fetch_started.wait(timeout=5)
        assert service.is_loading

        service.complete_lesson("L1", "A")
        remote.fetch_gate.set()
        future.result()

        assert service.is_completed("L1", "A")
        assert service.is_completed("L2", "C")
        assert service.progress.total_lessons_completed == 2

    def test_sign_out_during_fetch_discards_snapshot(self, service, remote):
        remote.snapshot = server_snapshot(("L2", "C"))
        remote.fetch_gate = threading.Event()

        future = service.on_session_change(SIGNED_IN)
        assert remote.fetch_started.wait(timeout=5)
        service.on_session_change(SessionState())
        remote.fetch_gate.set()

        assert not future.result().ok
        assert not service.is_completed("L2", "C")


class TestRemoteSync:
    """Test fire-and-forget mirroring of completions."""

    def test_completion_is_mirrored(self, service, remote):
        service.on_session_change(SIGNED_IN).result()

        result = service.complete_lesson("L1", "alif", 80).result()

        assert result.ok
        assert remote.completed == [("tok-123", "L1", "alif")]

    def test_sync_failure_does_not_revert(self, service, remote, sync_error):
        service.on_session_change(SIGNED_IN).result()
        remote.sync_error = sync_error

        result = service.complete_lesson("L1", "alif").result()

        assert not result.ok
        assert result.error == "RemoteSyncError"
        assert service.is_completed("L1", "alif")
        assert service.last_sync_result == result

    def test_local_update_visible_before_sync_finishes(self, service, remote):
        service.on_session_change(SIGNED_IN).result()
        remote.fetch_gate = threading.Event()
        remote.fetch_started.clear()

        refresh = service.sync_remote()
        assert remote.fetch_started.wait(timeout=5)
        # queued behind the blocked fetch on the single worker
        pending = service.complete_lesson("L1", "alif")
        assert service.is_completed("L1", "alif")

        remote.fetch_gate.set()
        refresh.result()
        assert pending.result().ok


class TestRefresh:
    """Test reloading from storage."""

    def test_anonymous_refresh_reloads_storage(self, service, storage, clock):
        external = record_lesson_complete(LearnerProgress(), "L9", "z", clock=clock)
        save_progress(storage, external)

        assert service.refresh() is None
        assert service.is_completed("L9", "z")

    def test_signed_in_refresh_reconciles(self, service, storage, remote, clock):
        service.on_session_change(SIGNED_IN).result()
        save_progress(storage, record_lesson_complete(LearnerProgress(), "L9", "z", clock=clock))
        remote.snapshot = server_snapshot(("L2", "C"))

        assert service.refresh().result().ok
        assert service.is_completed("L9", "z")
        assert service.is_completed("L2", "C")

    def test_refresh_after_write_failure_keeps_memory_record(self, clock, broken_storage):
        with ProgressService(broken_storage, clock=clock) as svc:
            svc.complete_lesson("L1", "alif")
            assert isinstance(svc.last_write_error, StorageWriteError)

            assert svc.refresh() is None
            assert svc.is_completed("L1", "alif")
            assert isinstance(svc.last_write_error, StorageWriteError)

    def test_refresh_retries_failed_write(self, service, storage, monkeypatch):
        def full_disk(key, value):
            raise OSError("quota exceeded")

        monkeypatch.setattr(storage, "set_item", full_disk)
        service.complete_lesson("L1", "alif")
        assert service.last_write_error is not None

        monkeypatch.undo()
        service.refresh()

        assert service.last_write_error is None
        assert service.is_completed("L1", "alif")
        assert load_progress(storage) == service.progress


class TestWithAuthSession:
    """Test the service following an AuthSession."""

    def test_login_triggers_reconcile_and_logout_resets(self, storage, clock, make_remote):
        remote = make_remote(server_snapshot(("L2", "C"), streak=3))
        auth = AuthSession(remote, storage)

        with ProgressService(storage, remote, clock=clock) as svc:
            assert svc.attach(auth) is None
            svc.complete_lesson("L1", "A")

            auth.login("amina@example.com", "sesame")
            svc.close()  # drain the reconcile queued by the listener

            assert svc.is_authenticated
            assert svc.is_completed("L2", "C")
            assert svc.progress.streak_days == 3

            auth.logout()
            assert not svc.is_authenticated
            assert svc.progress == LearnerProgress()
            assert storage.get_item(STORAGE_KEY) is None

    def test_restored_session_reconciles_on_attach(self, storage, clock, make_remote):
        remote = make_remote(server_snapshot(("L2", "C")))
        storage.set_item("token", "tok-123")
        auth = AuthSession(remote, storage)
        assert auth.restore()

        with ProgressService(storage, remote, clock=clock) as svc:
            assert svc.attach(auth).result().ok
            assert svc.is_completed("L2", "C")

    def test_failed_login_leaves_progress_alone(self, storage, clock, make_remote):
        remote = make_remote()
        auth = AuthSession(remote, storage)

        with ProgressService(storage, remote, clock=clock) as svc:
            svc.attach(auth)
            svc.complete_lesson("L1", "A")
            before = svc.progress

            with pytest.raises(AuthError):
                auth.login("amina@example.com", "wrong")

            assert svc.progress == before
            assert not svc.is_authenticated
            assert remote.fetch_calls == 0
