"""Shared fixtures for the progress-tracking tests."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from awwal.classroom import (
    AuthError,
    FixedClock,
    MemoryStorage,
    RemoteFetchError,
    RemoteSyncError,
)
from awwal.schemas import (
    AuthPayload,
    RemoteProgressSnapshot,
    User,
    UserStats,
)


class FakeRemoteClient:
    """In-memory stand-in for the progress API."""

    def __init__(self, snapshot: Optional[RemoteProgressSnapshot] = None):
        self.snapshot = snapshot or RemoteProgressSnapshot()
        self.fetch_error: Optional[Exception] = None
        self.sync_error: Optional[Exception] = None
        self.valid_tokens = {"tok-123"}
        self.accounts = {"amina@example.com": "sesame"}
        self.completed: list[tuple[str, str, str]] = []
        self.fetch_calls = 0
        # set to block fetch_progress until released
        self.fetch_gate: Optional[threading.Event] = None
        self.fetch_started = threading.Event()

    def fetch_progress(self, token: str) -> RemoteProgressSnapshot:
        self.fetch_calls += 1
        self.fetch_started.set()
        if self.fetch_gate is not None:
            self.fetch_gate.wait(timeout=5)
        if self.fetch_error:
            raise self.fetch_error
        if token not in self.valid_tokens:
            raise RemoteFetchError("GET /api/progress returned 401")
        return self.snapshot

    def complete_lesson(self, token: str, level_id: str, lesson_id: str) -> None:
        if self.sync_error:
            raise self.sync_error
        self.completed.append((token, level_id, lesson_id))

    def login(self, email: str, password: str) -> AuthPayload:
        if self.accounts.get(email) != password:
            raise AuthError("Invalid email or password")
        return AuthPayload(
            token="tok-123",
            user=User(id="u1", email=email, name="Amina"),
            stats=UserStats(streak_days=4, total_lessons_completed=2),
        )

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthPayload:
        if email in self.accounts:
            raise AuthError("Email already registered")
        self.accounts[email] = password
        return AuthPayload(token="tok-123", user=User(id="u2", email=email, name=name))

    def me(self, token: str) -> AuthPayload:
        if token not in self.valid_tokens:
            raise RemoteFetchError("GET /api/auth/me returned 401")
        return AuthPayload(user=User(id="u1", email="amina@example.com"))


class BrokenStorage:
    """Storage whose every operation fails, like a full or locked disk."""

    def get_item(self, key):
        raise OSError("disk unavailable")

    def set_item(self, key, value):
        raise OSError("quota exceeded")

    def remove_item(self, key):
        raise OSError("disk unavailable")


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def remote():
    return FakeRemoteClient()


@pytest.fixture
def sync_error():
    return RemoteSyncError("POST /api/progress/complete returned 500")


@pytest.fixture
def today(clock):
    return clock.today().isoformat()


@pytest.fixture
def yesterday(clock):
    return (clock.today() - timedelta(days=1)).isoformat()


@pytest.fixture
def broken_storage():
    return BrokenStorage()


@pytest.fixture
def make_remote():
    """Factory for remotes preloaded with a server snapshot."""
    return FakeRemoteClient
