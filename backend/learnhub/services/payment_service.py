"""Checkout and fulfillment: hosted checkout sessions and their webhooks.

The provider is the system of record for a session. Orders mirror sessions
locally for history; entitlements are granted through the ledger, whose
grant is idempotent, so redelivered events always converge on one state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from bson import ObjectId
from pymongo.database import Database

from learnhub.config import settings
from learnhub.dtos.payment import (
    CheckoutSessionResponse,
    CheckoutStatusResponse,
    OrderResponse,
    WebhookAck,
)
from learnhub.entities.enums import OrderStatus
from learnhub.entities.order import Order
from learnhub.middleware.auth import Identity
from learnhub.repositories.account import UserRepository
from learnhub.repositories.course import CourseRepository
from learnhub.repositories.order import OrderRepository, PaymentEventRepository
from learnhub.services.entitlement_service import EntitlementLedger
from learnhub.services.exceptions import (
    AlreadyOwned,
    BadRequest,
    NotFound,
    WebhookVerificationError,
)
from learnhub.services.payment_provider import PaymentProviderClient
from learnhub.services.payment_webhook import parse_event, verify_signature
from learnhub.utils.prometheus_metrics import (
    CHECKOUT_SESSIONS_CREATED,
    PAYMENT_WEBHOOK_EVENTS,
)

logger = logging.getLogger(__name__)

EVENT_COMPLETED = "checkout.session.completed"
EVENT_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_ASYNC_FAILED = "checkout.session.async_payment_failed"
EVENT_EXPIRED = "checkout.session.expired"

PAID_STATUSES = {"paid", "no_payment_required"}


def to_minor_units(price: float) -> int:
    return int(round(price * 100))


def _metadata_ids(session: Dict[str, Any]) -> Optional[tuple[ObjectId, ObjectId]]:
    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId")
    course_id = metadata.get("courseId")
    if not user_id or not course_id:
        return None
    if not ObjectId.is_valid(user_id) or not ObjectId.is_valid(course_id):
        return None
    return ObjectId(user_id), ObjectId(course_id)


class CheckoutService:
    def __init__(self, db: Database, provider: PaymentProviderClient):
        self.db = db
        self.provider = provider
        self.ledger = EntitlementLedger(db)
        self.user_repo = UserRepository(db)
        self.course_repo = CourseRepository(db)
        self.order_repo = OrderRepository(db)
        self.event_repo = PaymentEventRepository(db)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_session(
        self, identity: Identity, course_id: str, origin: Optional[str] = None
    ) -> CheckoutSessionResponse:
        """Open a hosted checkout session for one course.

        Raises:
            NotFound: course or user missing
            BadRequest: course not published
            AlreadyOwned: user already holds the course; no session is created
            PaymentProviderUnavailable / PaymentProviderError: provider failure
        """
        if not ObjectId.is_valid(course_id):
            raise NotFound("Course not found")
        course = self.course_repo.find_by_id(course_id)
        if course is None:
            raise NotFound("Course not found")
        if not course.published:
            raise BadRequest("Course is not available for purchase")

        user = self.user_repo.find_by_id(identity.subject_id)
        if user is None:
            raise NotFound("User not found")
        if course.id in user.purchased_courses:
            raise AlreadyOwned()

        base = (origin or settings.FRONTEND_BASE_URL).rstrip("/")
        product: Dict[str, Any] = {
            "name": course.title,
            "description": course.description,
        }
        if course.image_link.startswith(("http://", "https://")):
            product["images"] = [course.image_link]

        amount = to_minor_units(course.price)
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": settings.PAYMENT_CURRENCY,
                        "product_data": product,
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            ],
            "customer_email": user.email,
            "client_reference_id": str(user.id),
            "metadata": {"courseId": str(course.id), "userId": str(user.id)},
            "success_url": f"{base}/courses/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base}/courses/{course.id}",
        }

        session = self.provider.create_checkout_session(
            params, idempotency_key=f"checkout-{user.id}-{course.id}-{uuid4().hex}"
        )
        session_id = session["id"]

        self.order_repo.insert_one(
            Order(
                session_id=session_id,
                user_id=user.id,
                course_id=course.id,
                amount=amount,
                currency=settings.PAYMENT_CURRENCY,
                checkout_url=session.get("url"),
            )
        )
        CHECKOUT_SESSIONS_CREATED.inc()
        logger.info(
            "Checkout session %s created for user %s course %s",
            session_id,
            user.id,
            course.id,
        )
        return CheckoutSessionResponse(session_id=session_id, url=session.get("url") or "")

    def _owned_session(self, session_id: str, identity: Identity) -> Dict[str, Any]:
        session = self.provider.retrieve_session(session_id)
        metadata = session.get("metadata") or {}
        if metadata.get("userId") != identity.subject_id:
            # Other users' sessions are indistinguishable from missing ones
            raise NotFound("Checkout session not found")
        return session

    def _status_response(self, session: Dict[str, Any]) -> CheckoutStatusResponse:
        order = self.order_repo.find_by_session_id(session["id"])
        amount_total = session.get("amount_total")
        return CheckoutStatusResponse(
            session_id=session["id"],
            status=session.get("status"),
            payment_status=session.get("payment_status"),
            amount_total=amount_total / 100 if amount_total is not None else None,
            currency=session.get("currency"),
            order_status=order.status if order else None,
        )

    def get_status(self, session_id: str, identity: Identity) -> CheckoutStatusResponse:
        """Read-through to the provider; never served from the local mirror."""
        return self._status_response(self._owned_session(session_id, identity))

    def cancel_session(self, session_id: str, identity: Identity) -> CheckoutStatusResponse:
        session = self._owned_session(session_id, identity)
        if session.get("status") != "open":
            raise BadRequest("Checkout session is no longer open")
        expired = self.provider.expire_session(session_id)
        self.order_repo.transition(session_id, [OrderStatus.CREATED], OrderStatus.CANCELED)
        logger.info("Checkout session %s canceled by user %s", session_id, identity.subject_id)
        return self._status_response(expired)

    def list_history(self, user_id: str) -> List[OrderResponse]:
        if not ObjectId.is_valid(user_id):
            return []
        orders = self.order_repo.list_for_user(ObjectId(user_id))
        return [OrderResponse.model_validate(o.model_dump()) for o in orders]

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def handle_webhook(self, payload: bytes, signature_header: Optional[str]) -> WebhookAck:
        """Verify, record and apply one webhook delivery.

        Raises:
            WebhookVerificationError: signature or payload rejected; nothing
                has been read or written
        """
        try:
            verify_signature(payload, signature_header)
        except WebhookVerificationError:
            PAYMENT_WEBHOOK_EVENTS.labels(type="unknown", outcome="rejected").inc()
            logger.warning("Rejected payment webhook with invalid signature")
            raise

        try:
            event = parse_event(payload)
        except WebhookVerificationError as e:
            PAYMENT_WEBHOOK_EVENTS.labels(type="unknown", outcome="rejected").inc()
            logger.warning("Rejected payment webhook with malformed payload: %s", e.message)
            raise

        event_id = event["id"]
        event_type = event["type"]
        session = event["data"]["object"]
        session_id = session.get("id")

        deliveries = self.event_repo.record_delivery(event_id, event_type, session_id)
        if deliveries > 1:
            logger.info("Redelivery #%d of event %s (%s)", deliveries, event_id, event_type)

        if event_type in (EVENT_COMPLETED, EVENT_ASYNC_SUCCEEDED):
            outcome = self._on_completed(event_id, event_type, session)
        elif event_type == EVENT_ASYNC_FAILED:
            outcome = self._on_failed(event_id, session)
        elif event_type == EVENT_EXPIRED:
            outcome = self._on_expired(event_id, session)
        else:
            outcome = "ignored"

        PAYMENT_WEBHOOK_EVENTS.labels(type=event_type, outcome=outcome).inc()
        return WebhookAck(event_type=event_type, outcome=outcome)

    def _on_completed(self, event_id: str, event_type: str, session: Dict[str, Any]) -> str:
        ids = _metadata_ids(session)
        if ids is None:
            logger.warning(
                "Event %s for session %s has no usable userId/courseId metadata",
                event_id,
                session.get("id"),
            )
            return "missing_metadata"

        user_id, course_id = ids
        if self.user_repo.find_by_id(user_id) is None:
            logger.warning(
                "Event %s for session %s names unknown user %s", event_id, session.get("id"), user_id
            )
            return "unknown_user"

        paid = event_type == EVENT_ASYNC_SUCCEEDED or session.get("payment_status") in PAID_STATUSES
        if not paid:
            self.order_repo.transition(
                session["id"],
                [OrderStatus.CREATED],
                OrderStatus.COMPLETED,
                extra={"last_event_id": event_id},
            )
            logger.info("Session %s completed, awaiting payment", session["id"])
            return "awaiting_payment"

        added = self.ledger.grant(user_id, course_id, source="webhook")
        self.order_repo.transition(
            session["id"],
            [OrderStatus.CREATED, OrderStatus.COMPLETED],
            OrderStatus.FULFILLED,
            extra={"last_event_id": event_id},
        )
        return "fulfilled" if added else "already_fulfilled"

    def _on_failed(self, event_id: str, session: Dict[str, Any]) -> str:
        self.order_repo.transition(
            session.get("id", ""),
            [OrderStatus.CREATED, OrderStatus.COMPLETED],
            OrderStatus.CANCELED,
            extra={"last_event_id": event_id},
        )
        logger.info("Async payment failed for session %s", session.get("id"))
        return "payment_failed"

    def _on_expired(self, event_id: str, session: Dict[str, Any]) -> str:
        self.order_repo.transition(
            session.get("id", ""),
            [OrderStatus.CREATED],
            OrderStatus.EXPIRED,
            extra={"last_event_id": event_id},
        )
        return "expired"
