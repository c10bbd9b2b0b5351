"""Verification and parsing of signed payment webhook deliveries.

Signature header format: ``t=<unix ts>,v1=<hex hmac>[,v1=<hex hmac>...]``
where the HMAC-SHA256 is computed over ``"<ts>.<raw body>"`` with the
webhook secret.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from learnhub.config import settings
from learnhub.services.exceptions import WebhookVerificationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
SIGNATURE_SCHEME = "v1"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), msg=signed, digestmod=hashlib.sha256).hexdigest()


def _parse_header(header: str) -> Tuple[Optional[int], List[str]]:
    timestamp: Optional[int] = None
    signatures: List[str] = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, []
        elif key == SIGNATURE_SCHEME and value:
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
    now: Optional[float] = None,
) -> None:
    """Check the delivery signature before anything reads the payload.

    Raises:
        WebhookVerificationError: secret unset, header missing or malformed,
            timestamp outside tolerance, or no signature matches
    """
    secret = secret if secret is not None else settings.PAYMENT_WEBHOOK_SECRET
    tolerance = tolerance if tolerance is not None else settings.PAYMENT_WEBHOOK_TOLERANCE_SECONDS

    if not secret:
        logger.error("Webhook secret is not configured; rejecting delivery")
        raise WebhookVerificationError("Webhook secret is not configured on the server")

    if not signature_header:
        raise WebhookVerificationError("Missing webhook signature")

    timestamp, signatures = _parse_header(signature_header)
    if timestamp is None or not signatures:
        raise WebhookVerificationError("Malformed webhook signature")

    current = now if now is not None else time.time()
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        raise WebhookVerificationError("Webhook timestamp outside the tolerance zone")

    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookVerificationError("Webhook signature mismatch")


def parse_event(payload: bytes) -> Dict[str, Any]:
    """Decode a verified payload into an event dict with ``id``, ``type`` and ``data.object``."""
    try:
        event = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise WebhookVerificationError("Webhook payload is not valid JSON") from e
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise WebhookVerificationError("Webhook payload is not an event")
    data = event.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise WebhookVerificationError("Webhook event has no data object")
    return event
