"""
AuthSession - Client-side account session.

Holds the bearer token, user and stats, persists the token in the same
key-value storage as progress, and notifies listeners whenever the
session signs in or out. ProgressService subscribes to these events to
run reconciliation.
"""

import logging
from typing import Callable, Optional

from awwal.schemas import AuthPayload, SessionState, User, UserStats

from .errors import AuthError, RemoteFetchError
from .progress import clear_progress
from .remote import RemoteProgressClient
from .storage import KeyValueStorage


logger = logging.getLogger(__name__)

TOKEN_KEY = "token"

SessionListener = Callable[[SessionState], None]


class AuthSession:
    """
    Track authentication state for one learner on one device.

    Only login/register failures raise (AuthError); the message is also
    kept on `error` until the next attempt or clear_error().
    """

    def __init__(self, client: RemoteProgressClient, storage: KeyValueStorage):
        self.client = client
        self.storage = storage
        self.token: Optional[str] = None
        self.user: Optional[User] = None
        self.stats: Optional[UserStats] = None
        self.error: Optional[str] = None
        self.is_loading = False
        self._listeners: list[SessionListener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    @property
    def state(self) -> SessionState:
        return SessionState(
            is_authenticated=self.is_authenticated,
            token=self.token if self.is_authenticated else None,
        )

    def add_listener(self, listener: SessionListener):
        self._listeners.append(listener)

    def _notify(self):
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")

    def _read_token(self) -> Optional[str]:
        try:
            return self.storage.get_item(TOKEN_KEY)
        except Exception as e:
            logger.warning(f"Could not read stored token: {e}")
            return None

    def _drop_token(self):
        self.token = None
        try:
            self.storage.remove_item(TOKEN_KEY)
        except Exception as e:
            logger.warning(f"Could not remove stored token: {e}")

    def _adopt(self, token: str, payload: AuthPayload):
        try:
            self.storage.set_item(TOKEN_KEY, token)
        except Exception as e:
            logger.warning(f"Could not persist token: {e}")
        self.token = token
        self.user = payload.user
        self.stats = payload.stats

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def restore(self) -> bool:
        """
        Validate a stored token on startup.

        Returns:
            True if the stored session is valid and now active
        """
        stored = self._read_token()
        if not stored:
            return False

        self.is_loading = True
        try:
            payload = self.client.me(stored)
        except RemoteFetchError as e:
            logger.warning(f"Stored session rejected, signing out: {e}")
            self._drop_token()
            return False
        finally:
            self.is_loading = False

        self._adopt(stored, payload)
        self._notify()
        return True

    def login(self, email: str, password: str):
        self.is_loading = True
        self.error = None
        try:
            payload = self.client.login(email, password)
            if not payload.token:
                raise AuthError("Login failed")
        except AuthError as e:
            self.error = e.message
            raise
        finally:
            self.is_loading = False

        self._adopt(payload.token, payload)
        logger.info(f"Signed in as {payload.user.email}")
        self._notify()

    def register(self, email: str, password: str, name: Optional[str] = None):
        self.is_loading = True
        self.error = None
        try:
            payload = self.client.register(email, password, name)
            if not payload.token:
                raise AuthError("Registration failed")
        except AuthError as e:
            self.error = e.message
            raise
        finally:
            self.is_loading = False

        self._adopt(payload.token, payload)
        logger.info(f"Registered {payload.user.email}")
        self._notify()

    def logout(self):
        """Clear the session and local progress. A hard reset, not a merge."""
        self._drop_token()
        self.user = None
        self.stats = None
        self.error = None
        clear_progress(self.storage)
        logger.info("Signed out; local progress cleared")
        self._notify()

    def clear_error(self):
        self.error = None
