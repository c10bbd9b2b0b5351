"""Checkout and payment DTOs"""

from datetime import datetime
from typing import Optional

from learnhub.entities.base import PyObjectIdStr
from learnhub.entities.enums import OrderStatus

from .common import CamelModel


class CheckoutSessionResponse(CamelModel):
    session_id: str
    url: str


class CheckoutStatusResponse(CamelModel):
    session_id: str
    status: Optional[str] = None
    payment_status: Optional[str] = None
    # Major currency units
    amount_total: Optional[float] = None
    currency: Optional[str] = None
    order_status: Optional[OrderStatus] = None


class OrderResponse(CamelModel):
    id: PyObjectIdStr
    session_id: str
    course_id: PyObjectIdStr
    amount: int
    currency: str
    status: OrderStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None


class WebhookAck(CamelModel):
    received: bool = True
    event_type: Optional[str] = None
    outcome: Optional[str] = None
