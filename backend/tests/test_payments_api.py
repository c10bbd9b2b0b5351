"""Hosted checkout and webhook fulfillment against a fake provider."""

import logging
import time

from bson import ObjectId

from learnhub.config import settings
from learnhub.services.payment_webhook import SIGNATURE_HEADER, compute_signature

from conftest import signed_event


def _checkout(client, user, course, origin="https://learn.example.com"):
    return client.post(
        f"/api/payments/checkout/{course.id}",
        headers={**user["headers"], "Origin": origin},
    )


def _owned(db, user):
    return db.users.find_one({"_id": ObjectId(user["id"])}).get("purchased_courses", [])


class TestCheckout:
    def test_creates_session_with_metadata_and_urls(self, client, db, fake_provider, admin, user, make_course):
        course = make_course(admin["id"], price=19.99)

        response = _checkout(client, user, course)

        assert response.status_code == 200
        data = response.json()["data"]
        session = fake_provider.sessions[data["sessionId"]]
        assert data["url"] == session["url"]
        assert session["metadata"] == {"userId": user["id"], "courseId": str(course.id)}
        assert session["amount_total"] == 1999
        assert session["success_url"] == (
            "https://learn.example.com/courses/success?session_id={CHECKOUT_SESSION_ID}"
        )
        assert session["cancel_url"] == f"https://learn.example.com/courses/{course.id}"
        assert fake_provider.requests[0].headers["Idempotency-Key"]

        order = db.orders.find_one({"session_id": data["sessionId"]})
        assert order["status"] == "created"
        assert order["amount"] == 1999

    def test_already_owned_creates_no_provider_session(self, client, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        client.post(f"/api/users/courses/{course.id}/purchase", headers=user["headers"])

        response = _checkout(client, user, course)

        assert response.status_code == 409
        assert fake_provider.sessions == {}
        assert fake_provider.requests == []

    def test_unpublished_course(self, client, admin, user, make_course):
        course = make_course(admin["id"], published=False)

        assert _checkout(client, user, course).status_code == 400

    def test_admin_cannot_check_out(self, client, admin, make_course):
        course = make_course(admin["id"])

        assert _checkout(client, admin, course).status_code == 403

    def test_provider_outage_is_retryable_upstream_error(self, client, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        fake_provider.fail_next = 10

        response = _checkout(client, user, course)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "UPSTREAM_ERROR"
        assert error["retryable"] is True
        assert len(fake_provider.requests) == 3

    def test_transient_failure_is_retried_with_same_idempotency_key(self, client, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        fake_provider.fail_next = 1

        response = _checkout(client, user, course)

        assert response.status_code == 200
        keys = {r.headers["Idempotency-Key"] for r in fake_provider.requests}
        assert len(keys) == 1
        assert len(fake_provider.sessions) == 1


class TestWebhook:
    def test_bad_signature_is_rejected_without_side_effects(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        session = fake_provider.complete(session_id)
        body, headers = signed_event("checkout.session.completed", session, secret="wrong-secret")

        response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.status_code == 400
        assert _owned(db, user) == []
        assert db.payment_events.count_documents({}) == 0

    def test_missing_signature(self, client):
        response = client.post("/api/payments/webhook", content=b"{}")

        assert response.status_code == 400

    def test_completed_paid_session_grants_and_redelivery_is_harmless(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        session = fake_provider.complete(session_id)
        body, headers = signed_event("checkout.session.completed", session, event_id="evt_paid")

        first = client.post("/api/payments/webhook", content=body, headers=headers)
        second = client.post("/api/payments/webhook", content=body, headers=headers)

        assert first.json()["outcome"] == "fulfilled"
        assert second.status_code == 200
        assert second.json()["outcome"] == "already_fulfilled"
        assert _owned(db, user) == [course.id]
        assert db.orders.find_one({"session_id": session_id})["status"] == "fulfilled"
        assert db.payment_events.find_one({"_id": "evt_paid"})["deliveries"] == 2

    def test_async_payment_flow(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        pending = fake_provider.complete(session_id, payment_status="unpaid")

        body, headers = signed_event("checkout.session.completed", pending, event_id="evt_1")
        client.post("/api/payments/webhook", content=body, headers=headers)
        assert _owned(db, user) == []
        assert db.orders.find_one({"session_id": session_id})["status"] == "completed"

        paid = fake_provider.complete(session_id, payment_status="paid")
        body, headers = signed_event("checkout.session.async_payment_succeeded", paid, event_id="evt_2")
        client.post("/api/payments/webhook", content=body, headers=headers)
        assert _owned(db, user) == [course.id]
        assert db.orders.find_one({"session_id": session_id})["status"] == "fulfilled"

    def test_async_payment_failure_cancels_order(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        session = fake_provider.complete(session_id, payment_status="unpaid")

        body, headers = signed_event("checkout.session.async_payment_failed", session)
        client.post("/api/payments/webhook", content=body, headers=headers)

        assert _owned(db, user) == []
        assert db.orders.find_one({"session_id": session_id})["status"] == "canceled"

    def test_expired_session(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        session = dict(fake_provider.sessions[session_id], status="expired")

        body, headers = signed_event("checkout.session.expired", session)
        response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.json()["outcome"] == "expired"
        assert db.orders.find_one({"session_id": session_id})["status"] == "expired"

    def test_completion_without_metadata_is_acknowledged(self, client, db, user):
        session = {"id": "cs_orphan", "payment_status": "paid", "metadata": {}}
        body, headers = signed_event("checkout.session.completed", session)

        response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "missing_metadata"
        assert _owned(db, user) == []

    def test_unhandled_event_type_is_ignored(self, client):
        body, headers = signed_event("customer.created", {"id": "cus_1"})

        response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    def test_completion_for_unknown_user_leaves_order_open(self, client, db, admin, user, make_course, fake_provider):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        session = fake_provider.complete(session_id)
        session = dict(session, metadata={"userId": str(ObjectId()), "courseId": str(course.id)})
        body, headers = signed_event("checkout.session.completed", session)

        response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "unknown_user"
        assert db.orders.find_one({"session_id": session_id})["status"] == "created"
        assert _owned(db, user) == []

    def test_signed_malformed_payload_is_rejected_and_logged(self, client, db, caplog):
        body = b'{"id": "evt_x"}'
        timestamp = int(time.time())
        signature = compute_signature(body, settings.PAYMENT_WEBHOOK_SECRET, timestamp)
        headers = {SIGNATURE_HEADER: f"t={timestamp},v1={signature}"}

        with caplog.at_level(logging.WARNING, logger="learnhub.services.payment_service"):
            response = client.post("/api/payments/webhook", content=body, headers=headers)

        assert response.status_code == 400
        assert db.payment_events.count_documents({}) == 0
        assert any(
            "Rejected payment webhook with malformed payload" in record.getMessage()
            for record in caplog.records
        )


class TestSessionStatus:
    def test_status_is_read_from_provider(self, client, admin, user, make_course, fake_provider):
        course = make_course(admin["id"], price=25)
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        fake_provider.complete(session_id)

        response = client.get(f"/api/payments/session/{session_id}", headers=user["headers"])

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "complete"
        assert data["paymentStatus"] == "paid"
        assert data["amountTotal"] == 25
        assert data["orderStatus"] == "created"

    def test_other_users_session_is_not_found(self, client, register, admin, user, make_course):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]
        stranger = register("users", "stranger@example.com", "Stranger")

        response = client.get(f"/api/payments/session/{session_id}", headers=stranger["headers"])

        assert response.status_code == 404

    def test_unknown_session(self, client, user):
        response = client.get("/api/payments/session/cs_missing", headers=user["headers"])

        assert response.status_code == 404

    def test_cancel_open_session(self, client, db, admin, user, make_course):
        course = make_course(admin["id"])
        session_id = _checkout(client, user, course).json()["data"]["sessionId"]

        response = client.post(f"/api/payments/session/{session_id}/cancel", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "expired"
        assert db.orders.find_one({"session_id": session_id})["status"] == "canceled"

    def test_history_lists_own_orders(self, client, register, admin, user, make_course):
        first = make_course(admin["id"], title="First course")
        second = make_course(admin["id"], title="Second course")
        _checkout(client, user, first)
        _checkout(client, user, second)

        response = client.get("/api/payments/history", headers=user["headers"])

        orders = response.json()["data"]
        assert {o["courseId"] for o in orders} == {str(first.id), str(second.id)}
        assert all(o["status"] == "created" for o in orders)

        stranger = register("users", "stranger@example.com", "Stranger")
        other = client.get("/api/payments/history", headers=stranger["headers"])
        assert other.json()["data"] == []
