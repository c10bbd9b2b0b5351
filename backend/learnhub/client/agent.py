"""Client session agent used by the admin console and the learner site.

Wraps ``httpx.Client``: attaches the stored access token, and when the API
answers 401 with code ``TOKEN_EXPIRED`` refreshes once and replays the
request once. Concurrent callers that hit the expiry together share a
single refresh call.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from learnhub.client.session_store import MemorySessionStore, SessionStore, SessionTokens

logger = logging.getLogger(__name__)

TOKEN_EXPIRED_CODE = "TOKEN_EXPIRED"


class SessionExpiredError(Exception):
    """The session could not be renewed; the agent has logged out."""


class ApiError(Exception):
    def __init__(self, response: httpx.Response):
        self.response = response
        self.status_code = response.status_code
        error = _error_body(response)
        self.code = error.get("code")
        super().__init__(error.get("message") or f"HTTP {response.status_code}")


@dataclass(frozen=True)
class AgentProfile:
    """Endpoints for one account kind."""

    name: str
    account_key: str
    login_path: str
    register_path: str
    refresh_path: str


ADMIN_PROFILE = AgentProfile(
    name="admin",
    account_key="admin",
    login_path="/api/admin/login",
    register_path="/api/admin/register",
    refresh_path="/api/admin/refresh-token",
)

USER_PROFILE = AgentProfile(
    name="user",
    account_key="user",
    login_path="/api/users/login",
    register_path="/api/users/register",
    refresh_path="/api/users/refresh-token",
)


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def is_auth_expired(response: httpx.Response) -> bool:
    """True for the API's "access token expired" answer, and only that one."""
    return response.status_code == 401 and _error_body(response).get("code") == TOKEN_EXPIRED_CODE


class SessionAgent:
    def __init__(
        self,
        base_url: str,
        profile: AgentProfile,
        store: Optional[SessionStore] = None,
        on_logout: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Args:
            base_url: API origin, e.g. ``http://localhost:8000``
            profile: ADMIN_PROFILE or USER_PROFILE
            store: token store; defaults to a fresh MemorySessionStore
            on_logout: called once when the session is lost (redirect to login)
            transport: httpx transport override, used by tests
        """
        self.profile = profile
        self.store: SessionStore = store if store is not None else MemorySessionStore()
        self.on_logout = on_logout
        self._client = httpx.Client(base_url=base_url, transport=transport, timeout=timeout)

        # Bumped after every refresh attempt; callers that saw an older value
        # reuse that attempt's outcome instead of refreshing again.
        self._refresh_lock = threading.Lock()
        self._generation = 0
        self._last_refresh_failed = False

    def __enter__(self) -> "SessionAgent":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = dict(extra or {})
        tokens = self.store.get()
        if tokens and tokens.access_token:
            headers["Authorization"] = f"Bearer {tokens.access_token}"
        return headers

    def _send(self, method: str, url: str, retried: bool, **kwargs: Any) -> httpx.Response:
        generation = self._generation
        headers = self._headers(kwargs.pop("headers", None))
        response = self._client.request(method, url, headers=headers, **kwargs)

        if retried or not is_auth_expired(response):
            return response

        self._refresh(generation)
        return self._send(method, url, retried=True, headers=headers_without_auth(headers), **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the session's token.

        Raises:
            SessionExpiredError: the token expired and could not be refreshed
        """
        return self._send(method, url, retried=False, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _refresh(self, seen_generation: int) -> None:
        with self._refresh_lock:
            if self._generation != seen_generation:
                # Someone else refreshed while we waited
                if self._last_refresh_failed:
                    raise SessionExpiredError("Session expired")
                return

            try:
                self._do_refresh()
            except SessionExpiredError:
                self._last_refresh_failed = True
                self._generation += 1
                self._force_logout()
                raise

            self._last_refresh_failed = False
            self._generation += 1

    def _do_refresh(self) -> None:
        tokens = self.store.get()
        if not tokens or not tokens.refresh_token:
            raise SessionExpiredError("No refresh token")

        try:
            response = self._client.post(
                self.profile.refresh_path, json={"refreshToken": tokens.refresh_token}
            )
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed: %s", e)
            raise SessionExpiredError("Token refresh failed") from e

        if response.status_code != 200:
            logger.info("Token refresh rejected with %s", response.status_code)
            raise SessionExpiredError("Token refresh rejected")

        try:
            body = response.json()
        except ValueError as e:
            raise SessionExpiredError("Token refresh returned an invalid body") from e
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data.get("token"):
            raise SessionExpiredError("Token refresh returned no token")
        self.store.set(
            SessionTokens(
                access_token=data["token"],
                refresh_token=data.get("refreshToken") or tokens.refresh_token,
            )
        )

    def _force_logout(self) -> None:
        self.store.clear()
        if self.on_logout is not None:
            self.on_logout()

    def _start_session(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self._client.post(path, json=body)
        if response.status_code >= 400:
            raise ApiError(response)
        data = response.json()["data"]
        with self._refresh_lock:
            self.store.set(
                SessionTokens(access_token=data["token"], refresh_token=data.get("refreshToken"))
            )
            self._last_refresh_failed = False
            self._generation += 1
        return data[self.profile.account_key]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in and keep the returned tokens. Returns the account profile."""
        return self._start_session(self.profile.login_path, {"email": email, "password": password})

    def register(self, name: str, email: str, password: str, **extra: Any) -> Dict[str, Any]:
        body = {"name": name, "email": email, "password": password, **extra}
        return self._start_session(self.profile.register_path, body)

    def logout(self) -> None:
        """Drop the stored tokens. Tokens are stateless, so the server is not called."""
        self.store.clear()

    @property
    def is_authenticated(self) -> bool:
        return self.store.get() is not None


def headers_without_auth(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() != "authorization"}
