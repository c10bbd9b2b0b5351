"""Data Transfer Objects (DTOs) for API requests and responses"""

from .account import (
    AdminProfile,
    AdminProfileUpdate,
    UserProfile,
    UserProfileUpdate,
)
from .auth import (
    AdminAuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserAuthResponse,
)
from .common import ApiResponse, CamelModel, MessageResponse, Pagination
from .course import (
    ChapterDto,
    CourseAnalytics,
    CourseCreateRequest,
    CourseDetail,
    CourseListResponse,
    CourseSummary,
    CourseUpdateRequest,
    ReviewRequest,
)
from .payment import (
    CheckoutSessionResponse,
    CheckoutStatusResponse,
    OrderResponse,
    WebhookAck,
)

__all__ = [
    # Common
    "ApiResponse",
    "CamelModel",
    "MessageResponse",
    "Pagination",
    # Accounts
    "AdminProfile",
    "AdminProfileUpdate",
    "UserProfile",
    "UserProfileUpdate",
    # Auth
    "AdminAuthResponse",
    "UserAuthResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "RefreshRequest",
    "RegisterRequest",
    "TokenPair",
    # Courses
    "ChapterDto",
    "CourseAnalytics",
    "CourseCreateRequest",
    "CourseDetail",
    "CourseListResponse",
    "CourseSummary",
    "CourseUpdateRequest",
    "ReviewRequest",
    # Payments
    "CheckoutSessionResponse",
    "CheckoutStatusResponse",
    "OrderResponse",
    "WebhookAck",
]
