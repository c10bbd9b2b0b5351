"""Account profile DTOs. Password hashes never appear here."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from learnhub.entities.base import PyObjectIdStr
from learnhub.entities.enums import Role

from .common import CamelModel


class NotificationPreferencesDto(CamelModel):
    email: bool = True
    marketing: bool = False


class UserPreferencesDto(CamelModel):
    notifications: NotificationPreferencesDto = Field(default_factory=NotificationPreferencesDto)
    theme: Literal["light", "dark"] = "light"


class AccountProfile(CamelModel):
    id: PyObjectIdStr
    name: str
    email: str
    role: Role
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class AdminProfile(AccountProfile):
    pass


class UserProfile(AccountProfile):
    purchased_courses: List[PyObjectIdStr] = Field(default_factory=list)
    preferences: UserPreferencesDto = Field(default_factory=UserPreferencesDto)


class AdminProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    profile_image: Optional[str] = None


class NotificationPreferencesUpdate(CamelModel):
    email: Optional[bool] = None
    marketing: Optional[bool] = None


class UserPreferencesUpdate(CamelModel):
    notifications: Optional[NotificationPreferencesUpdate] = None
    theme: Optional[Literal["light", "dark"]] = None


class UserProfileUpdate(AdminProfileUpdate):
    preferences: Optional[UserPreferencesUpdate] = None
