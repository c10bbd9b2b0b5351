"""Account entities - admins and users live in separate collections."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, PyObjectId
from .enums import Role

DEFAULT_PROFILE_IMAGE = "https://via.placeholder.com/150"


class Account(BaseEntity):
    """Fields shared by both account kinds."""

    name: str
    email: str
    password_hash: str
    role: Role
    bio: Optional[str] = None
    profile_image: str = DEFAULT_PROFILE_IMAGE
    # Bumped on password change; refresh tokens minted with an older
    # version are rejected.
    token_version: int = 0
    last_login_at: Optional[datetime] = None


class Admin(Account):
    COLLECTION: ClassVar[str] = "admins"

    role: Role = Role.ADMIN


class NotificationPreferences(BaseModel):
    email: bool = True
    marketing: bool = False


class UserPreferences(BaseModel):
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    theme: Literal["light", "dark"] = "light"


class User(Account):
    COLLECTION: ClassVar[str] = "users"

    role: Role = Role.USER
    purchased_courses: List[PyObjectId] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
