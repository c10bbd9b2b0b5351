"""Course entity with embedded chapters and reviews."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import BaseEntity, PyObjectId, utc_now
from .enums import ContentType, CourseCategory, CourseLevel

DEFAULT_COURSE_IMAGE = "https://via.placeholder.com/300"


class Chapter(BaseModel):
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    content_type: ContentType = ContentType.VIDEO
    is_free: bool = False
    duration: Optional[float] = None
    order: int

    model_config = ConfigDict(use_enum_values=True)


class Review(BaseModel):
    user: PyObjectId
    rating: int
    comment: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Course(BaseEntity):
    COLLECTION: ClassVar[str] = "courses"

    title: str
    description: str
    price: float
    image_link: str = DEFAULT_COURSE_IMAGE
    published: bool = False
    instructor: PyObjectId
    category: CourseCategory
    level: CourseLevel
    duration: float
    chapters: List[Chapter] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    # Running sum of review ratings, not a mean
    rating: float = 0
    number_of_reviews: int = 0
    reviews: List[Review] = Field(default_factory=list)

    @property
    def average_rating(self) -> float:
        if self.number_of_reviews == 0:
            return 0.0
        return self.rating / self.number_of_reviews
