"""Repository layer for database operations"""

from .account import AccountRepository, AdminRepository, UserRepository, normalize_email
from .base import BaseRepository
from .course import CourseRepository
from .order import OrderRepository, PaymentEventRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "AdminRepository",
    "UserRepository",
    "normalize_email",
    "CourseRepository",
    "OrderRepository",
    "PaymentEventRepository",
]
