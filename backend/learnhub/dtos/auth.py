"""Authentication DTOs"""

from typing import Optional

from pydantic import EmailStr, Field

from .account import AdminProfile, UserProfile
from .common import CamelModel


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    bio: Optional[str] = Field(None, max_length=500)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    # Optional so a missing token is reported as NoRefreshToken, not a
    # generic validation error
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class TokenPair(CamelModel):
    token: str
    refresh_token: str


class AdminAuthResponse(TokenPair):
    admin: AdminProfile


class UserAuthResponse(TokenPair):
    user: UserProfile
