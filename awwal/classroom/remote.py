"""
RemoteProgressClient - Access to the account/progress HTTP API.

The server is an external collaborator. The core only depends on the
RemoteProgressClient protocol; HttpProgressClient is the requests-based
adapter used by the application.

Endpoints:
- GET  /api/progress            (Bearer)
- POST /api/progress/complete   (Bearer)
- POST /api/auth/login
- POST /api/auth/register
- GET  /api/auth/me             (Bearer)
"""

import logging
from typing import Optional, Protocol

import requests
from pydantic import ValidationError

from awwal.schemas import AuthPayload, RemoteProgressSnapshot, UserStats

from .errors import AuthError, RemoteFetchError, RemoteSyncError


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3001"
DEFAULT_TIMEOUT = 10.0


class RemoteProgressClient(Protocol):
    def fetch_progress(self, token: str) -> RemoteProgressSnapshot: ...

    def complete_lesson(self, token: str, level_id: str, lesson_id: str) -> None: ...

    def login(self, email: str, password: str) -> AuthPayload: ...

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthPayload: ...

    def me(self, token: str) -> AuthPayload: ...


def _error_message(response: requests.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return fallback


class HttpProgressClient:
    """
    requests-based client for the progress API.

    Every call is bounded by `timeout`; expiry is treated like any other
    network failure.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @staticmethod
    def _auth_headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def fetch_progress(self, token: str) -> RemoteProgressSnapshot:
        try:
            response = self.session.get(
                self._url("/api/progress"),
                headers=self._auth_headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteFetchError(f"GET /api/progress failed: {e}") from e

        if not response.ok:
            raise RemoteFetchError(f"GET /api/progress returned {response.status_code}")

        try:
            return RemoteProgressSnapshot.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteFetchError(f"Malformed progress response: {e}") from e

    def complete_lesson(self, token: str, level_id: str, lesson_id: str) -> None:
        try:
            response = self.session.post(
                self._url("/api/progress/complete"),
                json={"levelId": level_id, "lessonId": lesson_id},
                headers=self._auth_headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteSyncError(f"POST /api/progress/complete failed: {e}") from e

        if not response.ok:
            raise RemoteSyncError(
                f"POST /api/progress/complete returned {response.status_code}"
            )

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def _post_auth(self, path: str, body: dict, fallback: str) -> AuthPayload:
        try:
            response = self.session.post(self._url(path), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"POST {path} failed: {e}")
            raise AuthError(fallback) from e

        if not response.ok:
            raise AuthError(_error_message(response, fallback))

        try:
            return AuthPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(f"Malformed response from {path}: {e}")
            raise AuthError(fallback) from e

    def login(self, email: str, password: str) -> AuthPayload:
        return self._post_auth(
            "/api/auth/login",
            {"email": email, "password": password},
            "Login failed",
        )

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthPayload:
        body = {"email": email, "password": password}
        if name is not None:
            body["name"] = name
        payload = self._post_auth("/api/auth/register", body, "Registration failed")
        # register does not return stats; a new account starts from zero
        return payload.model_copy(update={"stats": UserStats()})

    def me(self, token: str) -> AuthPayload:
        try:
            response = self.session.get(
                self._url("/api/auth/me"),
                headers=self._auth_headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteFetchError(f"GET /api/auth/me failed: {e}") from e

        if not response.ok:
            raise RemoteFetchError(f"GET /api/auth/me returned {response.status_code}")

        try:
            return AuthPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteFetchError(f"Malformed /api/auth/me response: {e}") from e
