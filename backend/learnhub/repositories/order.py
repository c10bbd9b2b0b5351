"""Order and payment event repositories"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from learnhub.entities.base import utc_now
from learnhub.entities.enums import OrderStatus
from learnhub.entities.order import Order, PaymentEvent

from .base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Repository for checkout orders"""

    def __init__(self, db: Database):
        super().__init__(db, Order.COLLECTION, Order)

    def find_by_session_id(self, session_id: str) -> Optional[Order]:
        return self.find_one({"session_id": session_id})

    def list_for_user(self, user_id: ObjectId, limit: int = 50) -> List[Order]:
        return self.find_many({"user_id": user_id}, sort=[("created_at", -1)], limit=limit)

    def transition(
        self,
        session_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Move an order to ``to_status`` only if it is in one of ``from_statuses``.

        Conditional update, so transitions stay monotonic under redelivered
        or reordered webhook events.
        """
        now = utc_now()
        updates: Dict[str, Any] = {"status": to_status.value, "updated_at": now}
        if to_status is OrderStatus.COMPLETED:
            updates["completed_at"] = now
        elif to_status is OrderStatus.FULFILLED:
            updates["fulfilled_at"] = now
        if extra:
            updates.update(extra)
        return self.update_one_raw(
            {
                "session_id": session_id,
                "status": {"$in": [s.value for s in from_statuses]},
            },
            {"$set": updates},
        )


class PaymentEventRepository(BaseRepository[PaymentEvent]):
    """Audit log of verified webhook deliveries"""

    def __init__(self, db: Database):
        super().__init__(db, PaymentEvent.COLLECTION, PaymentEvent)

    def record_delivery(self, event_id: str, event_type: str, session_id: Optional[str]) -> int:
        """Upsert the event and return how many times it has been delivered."""
        now = utc_now()
        event = self.find_one_and_update(
            {"_id": event_id},
            {
                "$inc": {"deliveries": 1},
                "$set": {"last_seen_at": now},
                "$setOnInsert": {
                    "type": event_type,
                    "session_id": session_id,
                    "created_at": now,
                },
            },
            upsert=True,
        )
        return event.deliveries if event else 1
