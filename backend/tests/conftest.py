"""Shared fixtures: in-memory MongoDB, a fake payment provider and API helpers."""

import os
import tempfile

os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="learnhub-test-"))
os.environ.setdefault("PAYMENT_SECRET_KEY", "sk_test_key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("ENV", "test")

import itertools
import json
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

from learnhub.config import settings
from learnhub.database.ensure_indexes import ensure_indexes
from learnhub.database.mongo import get_db
from learnhub.entities.course import Course
from learnhub.repositories.course import CourseRepository
from learnhub.services.payment_provider import PaymentProviderClient, get_payment_provider
from learnhub.services.payment_webhook import SIGNATURE_HEADER, compute_signature

PASSWORD = "secret123"


class FakeCheckoutProvider:
    """Minimal stand-in for the hosted-checkout API, served through httpx.MockTransport."""

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.idempotency: Dict[str, str] = {}
        self.fail_next = 0
        self._ids = itertools.count(1)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next > 0:
            self.fail_next -= 1
            return httpx.Response(503, json={"error": {"message": "unavailable"}})

        path = request.url.path
        if request.method == "POST" and path == "/v1/checkout/sessions":
            return self._create(request)

        parts = path.split("/")
        # /v1/checkout/sessions/{id}[/expire]
        session_id = parts[4] if len(parts) > 4 else None
        session = self.sessions.get(session_id)
        if session is None:
            return httpx.Response(404, json={"error": {"message": "No such checkout session"}})
        if request.method == "GET":
            return httpx.Response(200, json=session)
        if request.method == "POST" and path.endswith("/expire"):
            if session["status"] != "open":
                return httpx.Response(400, json={"error": {"message": "Session is not open"}})
            session["status"] = "expired"
            return httpx.Response(200, json=session)
        return httpx.Response(405)

    def _create(self, request: httpx.Request) -> httpx.Response:
        key = request.headers.get("Idempotency-Key")
        if key and key in self.idempotency:
            return httpx.Response(200, json=self.sessions[self.idempotency[key]])

        form = dict(parse_qsl(request.content.decode()))
        session_id = f"cs_test_{next(self._ids)}"
        session = {
            "id": session_id,
            "object": "checkout.session",
            "url": f"https://checkout.example.com/pay/{session_id}",
            "status": "open",
            "payment_status": "unpaid",
            "amount_total": int(form["line_items[0][price_data][unit_amount]"]),
            "currency": form["line_items[0][price_data][currency]"],
            "client_reference_id": form.get("client_reference_id"),
            "metadata": {
                "userId": form.get("metadata[userId]"),
                "courseId": form.get("metadata[courseId]"),
            },
            "success_url": form.get("success_url"),
            "cancel_url": form.get("cancel_url"),
            "form": form,
        }
        self.sessions[session_id] = session
        if key:
            self.idempotency[key] = session_id
        return httpx.Response(200, json=session)

    def complete(self, session_id: str, payment_status: str = "paid") -> Dict[str, Any]:
        session = self.sessions[session_id]
        session["status"] = "complete"
        session["payment_status"] = payment_status
        return session


def signed_event(
    event_type: str,
    session: Dict[str, Any],
    event_id: str = "evt_1",
    secret: Optional[str] = None,
) -> tuple:
    """Build a webhook body and its signature headers."""
    body = json.dumps(
        {"id": event_id, "type": event_type, "data": {"object": session}}
    ).encode()
    timestamp = int(time.time())
    signature = compute_signature(body, secret or settings.PAYMENT_WEBHOOK_SECRET, timestamp)
    return body, {SIGNATURE_HEADER: f"t={timestamp},v1={signature}"}


@pytest.fixture
def db():
    database = mongomock.MongoClient(tz_aware=True)["learnhub_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def fake_provider():
    return FakeCheckoutProvider()


@pytest.fixture
def provider_client(fake_provider):
    client = PaymentProviderClient(
        api_url="https://payments.example.com/v1",
        secret_key="sk_test_key",
        transport=httpx.MockTransport(fake_provider.handle),
        max_retries=3,
        retry_delay=0,
        retry_max_delay=0,
    )
    yield client
    client.close()


@pytest.fixture
def client(db, provider_client):
    from learnhub.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_provider] = lambda: provider_client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register an account through the API and return its session data."""

    def _register(kind: str = "users", email: str = "learner@example.com", name: str = "Test Learner"):
        response = client.post(
            f"/api/{kind}/register",
            json={"name": name, "email": email, "password": PASSWORD},
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        account = data["admin" if kind == "admin" else "user"]
        return {
            "id": account["id"],
            "token": data["token"],
            "refresh_token": data["refreshToken"],
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _register


@pytest.fixture
def admin(register):
    return register("admin", "admin@example.com", "Ada Admin")


@pytest.fixture
def user(register):
    return register("users", "learner@example.com", "Lee Learner")


@pytest.fixture
def make_course(db):
    """Insert a course directly and return it."""

    def _make_course(instructor_id: str, **overrides) -> Course:
        fields = {
            "title": "Python for Data Work",
            "description": "A practical course about processing data with Python.",
            "price": 49.99,
            "published": True,
            "instructor": instructor_id,
            "category": "development",
            "level": "beginner",
            "duration": 120,
        }
        fields.update(overrides)
        return CourseRepository(db).insert_one(Course(**fields))

    return _make_course
