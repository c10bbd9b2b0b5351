"""
Shared enums for entities.

This module contains enums that are used across multiple entity files.
"""

from enum import Enum


class Role(str, Enum):
    """Account roles. Fixed at account creation."""

    ADMIN = "admin"
    USER = "user"


class CourseCategory(str, Enum):
    DEVELOPMENT = "development"
    BUSINESS = "business"
    DESIGN = "design"
    MARKETING = "marketing"
    PHOTOGRAPHY = "photography"
    MUSIC = "music"
    OTHER = "other"


class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ALL_LEVELS = "all-levels"


class ContentType(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    QUIZ = "quiz"


class OrderStatus(str, Enum):
    """Lifecycle of a checkout attempt.

    created -> completed -> fulfilled (happy path)
    created -> expired | canceled
    """

    CREATED = "created"
    COMPLETED = "completed"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    CANCELED = "canceled"
