"""Hosted checkout endpoints and the payment provider webhook."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Request
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from learnhub.database.mongo import get_db
from learnhub.dtos.common import ApiResponse
from learnhub.dtos.payment import (
    CheckoutSessionResponse,
    CheckoutStatusResponse,
    OrderResponse,
    WebhookAck,
)
from learnhub.middleware.auth import Identity
from learnhub.middleware.rbac import require_user
from learnhub.services.payment_provider import PaymentProviderClient, get_payment_provider
from learnhub.services.payment_service import CheckoutService
from learnhub.services.payment_webhook import SIGNATURE_HEADER

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/checkout/{course_id}", response_model=ApiResponse[CheckoutSessionResponse])
def create_checkout_session(
    course_id: str = Path(..., description="Course ID"),
    origin: Optional[str] = Header(None),
    db: Database = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
    identity: Identity = Depends(require_user),
):
    """Open a hosted checkout session; the client redirects to ``url``."""
    session = CheckoutService(db, provider).create_session(identity, course_id, origin)
    return ApiResponse(data=session)


@router.get("/session/{session_id}", response_model=ApiResponse[CheckoutStatusResponse])
def get_checkout_status(
    session_id: str = Path(..., description="Checkout session ID"),
    db: Database = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
    identity: Identity = Depends(require_user),
):
    return ApiResponse(data=CheckoutService(db, provider).get_status(session_id, identity))


@router.post(
    "/session/{session_id}/cancel",
    response_model=ApiResponse[CheckoutStatusResponse],
)
def cancel_checkout_session(
    session_id: str = Path(..., description="Checkout session ID"),
    db: Database = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
    identity: Identity = Depends(require_user),
):
    result = CheckoutService(db, provider).cancel_session(session_id, identity)
    return ApiResponse(message="Checkout session canceled", data=result)


@router.get("/history", response_model=ApiResponse[List[OrderResponse]])
def payment_history(
    db: Database = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
    identity: Identity = Depends(require_user),
):
    return ApiResponse(data=CheckoutService(db, provider).list_history(identity.subject_id))


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: Database = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
):
    """Provider webhook. The raw body is verified before it is parsed."""
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    service = CheckoutService(db, provider)
    return await run_in_threadpool(service.handle_webhook, payload, signature)
