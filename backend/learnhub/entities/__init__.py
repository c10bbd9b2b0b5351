"""Database entity models - represents the actual structure stored in MongoDB"""

from .account import Account, Admin, NotificationPreferences, User, UserPreferences
from .base import BaseEntity, PyObjectId, PyObjectIdStr, utc_now
from .course import Chapter, Course, Review
from .enums import ContentType, CourseCategory, CourseLevel, OrderStatus, Role
from .order import Order, PaymentEvent

__all__ = [
    "BaseEntity",
    "PyObjectId",
    "PyObjectIdStr",
    "utc_now",
    "Account",
    "Admin",
    "User",
    "UserPreferences",
    "NotificationPreferences",
    "Course",
    "Chapter",
    "Review",
    "Order",
    "PaymentEvent",
    # Enums
    "Role",
    "CourseCategory",
    "CourseLevel",
    "ContentType",
    "OrderStatus",
]
