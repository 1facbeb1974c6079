"""Error kinds raised and absorbed by the progress-tracking core."""


class ProgressError(Exception):
    """Base class for progress-tracking errors."""


class StorageReadError(ProgressError):
    """Local persistence unreadable or corrupt. Recovered with the default record."""


class StorageWriteError(ProgressError):
    """Local persistence write failed. In-memory record stays authoritative."""


class RemoteFetchError(ProgressError):
    """Network, timeout or non-2xx on a remote read."""


class RemoteSyncError(ProgressError):
    """Network, timeout or non-2xx on POST /progress/complete."""


class AuthError(ProgressError):
    """Login or registration rejected. The only kind surfaced to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
