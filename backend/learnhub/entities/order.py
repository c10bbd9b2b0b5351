"""Order entity - local mirror of a checkout session owned by the payment provider."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId
from .enums import OrderStatus


class Order(BaseEntity):
    COLLECTION: ClassVar[str] = "orders"

    session_id: str = Field(..., description="Provider checkout session id")
    user_id: PyObjectId
    course_id: PyObjectId
    amount: int = Field(..., description="Amount in the currency's minor unit")
    currency: str
    status: OrderStatus = OrderStatus.CREATED
    checkout_url: Optional[str] = None
    last_event_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None


class PaymentEvent(BaseEntity):
    """Audit record of a verified webhook delivery, keyed by provider event id."""

    COLLECTION: ClassVar[str] = "payment_events"

    id: str = Field(..., alias="_id")
    type: str
    session_id: Optional[str] = None
    deliveries: int = 1
    last_seen_at: Optional[datetime] = None
