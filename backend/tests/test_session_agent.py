"""Client session agent: transparent refresh, single-flight and forced logout."""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from learnhub.client.agent import (
    USER_PROFILE,
    ApiError,
    SessionAgent,
    SessionExpiredError,
    is_auth_expired,
)
from learnhub.client.session_store import MemorySessionStore, SessionTokens


def _error(status, code, message):
    return httpx.Response(status, json={"success": False, "error": {"code": code, "message": message}})


class FakeAuthApi:
    """Serves /api/users/* with rotating opaque tokens."""

    def __init__(self):
        self.access = "access-1"
        self.refresh = "refresh-1"
        self.refresh_calls = 0
        self.refresh_ok = True
        self.refresh_body = None
        self.resource_calls = 0
        self.barrier = None
        self.always_expired = False
        self._counter = 1
        self._lock = threading.Lock()

    def expire(self):
        with self._lock:
            self._counter += 1
            self.access = f"access-{self._counter}"

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/users/login":
            body = json.loads(request.content)
            if body["password"] != "secret123":
                return _error(401, "UNAUTHENTICATED", "Invalid credentials")
            return self._session()
        if path == "/api/users/refresh-token":
            with self._lock:
                self.refresh_calls += 1
            body = json.loads(request.content)
            if not self.refresh_ok or body.get("refreshToken") != self.refresh:
                return _error(401, "UNAUTHENTICATED", "Invalid or expired refresh token")
            if self.refresh_body is not None:
                return httpx.Response(200, content=self.refresh_body)
            with self._lock:
                self._counter += 1
                self.access = f"access-{self._counter}"
                self.refresh = f"refresh-{self._counter}"
            return httpx.Response(200, json={"success": True, "data": {"token": self.access, "refreshToken": self.refresh}})
        if path == "/api/users/profile":
            with self._lock:
                self.resource_calls += 1
            auth = request.headers.get("Authorization")
            if auth is None:
                return _error(401, "UNAUTHENTICATED", "No token provided")
            if auth == "Bearer forbidden":
                return _error(401, "UNAUTHENTICATED", "Invalid token")
            if self.always_expired or auth != f"Bearer {self.access}":
                if self.barrier is not None:
                    self.barrier.wait(timeout=5)
                return _error(401, "TOKEN_EXPIRED", "Token expired")
            return httpx.Response(200, json={"success": True, "data": {"name": "Lee"}})
        return httpx.Response(404)

    def _session(self):
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {"user": {"id": "u1"}, "token": self.access, "refreshToken": self.refresh},
            },
        )


@pytest.fixture
def api():
    return FakeAuthApi()


@pytest.fixture
def logouts():
    return []


@pytest.fixture
def agent(api, logouts):
    agent = SessionAgent(
        "http://api.test",
        USER_PROFILE,
        on_logout=lambda: logouts.append(True),
        transport=httpx.MockTransport(api.handle),
    )
    yield agent
    agent.close()


class TestLogin:
    def test_login_stores_tokens_and_notifies_listeners(self, agent):
        seen = []
        agent.store.subscribe(seen.append)

        account = agent.login("learner@example.com", "secret123")

        assert account == {"id": "u1"}
        assert agent.is_authenticated
        assert seen == [SessionTokens("access-1", "refresh-1")]

    def test_failed_login_raises_api_error(self, agent):
        with pytest.raises(ApiError) as exc:
            agent.login("learner@example.com", "wrong")

        assert exc.value.status_code == 401
        assert str(exc.value) == "Invalid credentials"
        assert not agent.is_authenticated

    def test_logout_clears_store(self, agent):
        agent.login("learner@example.com", "secret123")

        agent.logout()

        assert not agent.is_authenticated


class TestRefresh:
    def test_expired_token_is_refreshed_once_and_replayed(self, agent, api):
        agent.login("learner@example.com", "secret123")
        api.expire()

        response = agent.get("/api/users/profile")

        assert response.status_code == 200
        assert api.refresh_calls == 1
        assert api.resource_calls == 2
        assert agent.store.get().refresh_token == api.refresh

    def test_failed_refresh_logs_out(self, agent, api, logouts):
        agent.login("learner@example.com", "secret123")
        api.expire()
        api.refresh_ok = False

        with pytest.raises(SessionExpiredError):
            agent.get("/api/users/profile")

        assert logouts == [True]
        assert not agent.is_authenticated
        assert api.refresh_calls == 1

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"data": "token"}'])
    def test_unreadable_refresh_response_logs_out(self, agent, api, logouts, body):
        agent.login("learner@example.com", "secret123")
        api.expire()
        api.refresh_body = body

        with pytest.raises(SessionExpiredError):
            agent.get("/api/users/profile")

        assert logouts == [True]
        assert not agent.is_authenticated

    def test_no_refresh_token_logs_out_without_calling_api(self, api, logouts):
        store = MemorySessionStore(SessionTokens("stale-access"))
        agent = SessionAgent(
            "http://api.test",
            USER_PROFILE,
            store=store,
            on_logout=lambda: logouts.append(True),
            transport=httpx.MockTransport(api.handle),
        )

        with pytest.raises(SessionExpiredError):
            agent.get("/api/users/profile")

        assert api.refresh_calls == 0
        assert logouts == [True]

    def test_replayed_request_is_not_refreshed_again(self, agent, api):
        agent.login("learner@example.com", "secret123")
        api.always_expired = True

        response = agent.get("/api/users/profile")

        assert response.status_code == 401
        assert api.refresh_calls == 1
        assert api.resource_calls == 2

    def test_other_401_is_not_refreshed(self, agent, api):
        agent.login("learner@example.com", "secret123")
        agent.store.set(SessionTokens("forbidden", "refresh-1"))

        response = agent.get("/api/users/profile")

        assert response.status_code == 401
        assert not is_auth_expired(response)
        assert api.refresh_calls == 0

    def test_concurrent_expiries_share_one_refresh(self, agent, api):
        agent.login("learner@example.com", "secret123")
        api.expire()
        api.barrier = threading.Barrier(2)

        with ThreadPoolExecutor(max_workers=2) as pool:
            responses = list(pool.map(lambda _: agent.get("/api/users/profile"), range(2)))

        assert [r.status_code for r in responses] == [200, 200]
        assert api.refresh_calls == 1
