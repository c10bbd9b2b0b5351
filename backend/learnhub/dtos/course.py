"""Course DTOs"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from learnhub.entities.base import PyObjectIdStr
from learnhub.entities.enums import ContentType, CourseCategory, CourseLevel

from .common import CamelModel, Pagination


class ChapterDto(CamelModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    video_url: Optional[str] = None
    content_type: ContentType = ContentType.VIDEO
    is_free: bool = False
    duration: Optional[float] = Field(None, ge=0)
    order: int


class CourseCreateRequest(CamelModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=20, max_length=2000)
    price: float = Field(..., ge=0)
    image_link: Optional[str] = None
    published: bool = False
    category: CourseCategory
    level: CourseLevel
    duration: float = Field(..., ge=0, description="Duration in minutes")
    chapters: List[ChapterDto] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class CourseUpdateRequest(CamelModel):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=20, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    image_link: Optional[str] = None
    published: Optional[bool] = None
    category: Optional[CourseCategory] = None
    level: Optional[CourseLevel] = None
    duration: Optional[float] = Field(None, ge=0)
    chapters: Optional[List[ChapterDto]] = None
    learning_outcomes: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class ReviewRequest(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field("", max_length=500)


class ReviewDto(CamelModel):
    user: PyObjectIdStr
    rating: int
    comment: str = ""
    created_at: datetime


class CourseSummary(CamelModel):
    id: PyObjectIdStr
    title: str
    description: str
    price: float
    image_link: str
    published: bool
    instructor: PyObjectIdStr
    category: CourseCategory
    level: CourseLevel
    duration: float
    tags: List[str] = Field(default_factory=list)
    rating: float = 0
    number_of_reviews: int = 0
    average_rating: float = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class CourseDetail(CourseSummary):
    chapters: List[ChapterDto] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    reviews: List[ReviewDto] = Field(default_factory=list)


class CourseListResponse(CamelModel):
    courses: List[CourseSummary]
    pagination: Pagination


class CourseAnalytics(CamelModel):
    total_enrolled: int
    total_revenue: float
    average_rating: float
    publish_status: str
