"""Course catalogue service: listing, CRUD, analytics and reviews."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.database import Database

from learnhub.dtos.common import Pagination
from learnhub.dtos.course import (
    CourseAnalytics,
    CourseCreateRequest,
    CourseDetail,
    CourseListResponse,
    CourseSummary,
    CourseUpdateRequest,
    ReviewRequest,
)
from learnhub.entities.base import utc_now
from learnhub.entities.course import DEFAULT_COURSE_IMAGE, Course
from learnhub.entities.enums import CourseCategory, Role
from learnhub.middleware.auth import Identity
from learnhub.middleware.rbac import require_owner_or_role
from learnhub.repositories.account import UserRepository
from learnhub.repositories.course import CourseRepository
from learnhub.services.exceptions import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

DEFAULT_SORT = ("created_at", -1)

# Sortable fields; camelCase names from the web clients are accepted too
SORT_FIELDS = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "price": "price",
    "title": "title",
    "rating": "rating",
    "number_of_reviews": "number_of_reviews",
    "numberOfReviews": "number_of_reviews",
    "duration": "duration",
}


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    """Parse ``field:dir`` into a pymongo sort list.

    Raises:
        ValidationFailed: unknown field or direction
    """
    if not sort:
        return [DEFAULT_SORT]
    field, _, direction = sort.partition(":")
    key = SORT_FIELDS.get(field.strip())
    if key is None:
        raise ValidationFailed(
            f"Cannot sort by '{field}'",
            details=[{"field": "sort", "message": f"Unsupported sort field '{field}'"}],
        )
    direction = (direction or "asc").strip().lower()
    if direction not in ("asc", "desc"):
        raise ValidationFailed(
            f"Invalid sort direction '{direction}'",
            details=[{"field": "sort", "message": "Direction must be asc or desc"}],
        )
    order = [(key, 1 if direction == "asc" else -1)]
    if key != "created_at":
        order.append(DEFAULT_SORT)
    return order


def to_summary(course: Course) -> CourseSummary:
    data = course.model_dump()
    data["average_rating"] = course.average_rating
    return CourseSummary.model_validate(data)


def to_detail(course: Course) -> CourseDetail:
    data = course.model_dump()
    data["average_rating"] = course.average_rating
    return CourseDetail.model_validate(data)


def _course_oid(course_id: str) -> ObjectId:
    if not ObjectId.is_valid(course_id):
        raise NotFound("Course not found")
    return ObjectId(course_id)


class CourseService:
    def __init__(self, db: Database):
        self.db = db
        self.course_repo = CourseRepository(db)
        self.user_repo = UserRepository(db)

    def _get_or_404(self, course_id: str) -> Course:
        course = self.course_repo.find_by_id(_course_oid(course_id))
        if course is None:
            raise NotFound("Course not found")
        return course

    def list_courses(
        self,
        identity: Optional[Identity],
        search: Optional[str] = None,
        category: Optional[CourseCategory] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        sort: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> CourseListResponse:
        """List courses. Only admins see unpublished ones."""
        query: Dict[str, Any] = {}
        if identity is None or not identity.is_admin:
            query["published"] = True
        if search:
            pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"description": pattern}]
        if category:
            query["category"] = CourseCategory(category).value
        price: Dict[str, float] = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        if price:
            query["price"] = price

        courses, total = self.course_repo.list_courses(
            query, sort=parse_sort(sort), skip=(page - 1) * limit, limit=limit
        )
        return CourseListResponse(
            courses=[to_summary(c) for c in courses],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    def get_course(self, course_id: str, identity: Optional[Identity]) -> Course:
        """Fetch one course; unpublished courses are hidden from non-admins."""
        course = self._get_or_404(course_id)
        if not course.published and (identity is None or not identity.is_admin):
            raise NotFound("Course not found")
        return course

    def create_course(
        self,
        payload: CourseCreateRequest,
        identity: Identity,
        image_link: Optional[str] = None,
    ) -> Course:
        data = payload.model_dump()
        data["chapters"] = sorted(data["chapters"], key=lambda ch: ch["order"])
        data["image_link"] = image_link or data.get("image_link") or DEFAULT_COURSE_IMAGE
        course = Course(instructor=ObjectId(identity.subject_id), **data)
        created = self.course_repo.insert_one(course)
        logger.info("Course %s created by %s", created.id, identity.subject_id)
        return created

    def update_course(
        self,
        course_id: str,
        payload: CourseUpdateRequest,
        identity: Identity,
        image_link: Optional[str] = None,
    ) -> Course:
        course = self._get_or_404(course_id)
        require_owner_or_role(identity, course.instructor, [Role.ADMIN])

        updates = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if "chapters" in updates:
            updates["chapters"] = sorted(updates["chapters"], key=lambda ch: ch["order"])
        if image_link:
            updates["image_link"] = image_link
        if not updates:
            return course

        updated = self.course_repo.update_one(course.id, updates)
        if updated is None:
            raise NotFound("Course not found")
        return updated

    def delete_course(self, course_id: str, identity: Identity) -> None:
        course = self._get_or_404(course_id)
        require_owner_or_role(identity, course.instructor, [Role.ADMIN])
        self.course_repo.delete_one(course.id)
        logger.info("Course %s deleted by %s", course.id, identity.subject_id)

    def list_all(self) -> List[CourseSummary]:
        courses = self.course_repo.find_many(
            {}, sort=[DEFAULT_SORT], projection={"reviews": 0}
        )
        return [to_summary(c) for c in courses]

    def analytics(self, course_id: str, identity: Identity) -> CourseAnalytics:
        course = self._get_or_404(course_id)
        require_owner_or_role(identity, course.instructor, [Role.ADMIN])
        enrolled = self.user_repo.count_enrolled(course.id)
        return CourseAnalytics(
            total_enrolled=enrolled,
            total_revenue=enrolled * course.price,
            average_rating=course.average_rating,
            publish_status="published" if course.published else "draft",
        )

    def add_review(self, course_id: str, payload: ReviewRequest, identity: Identity) -> Course:
        """Add or replace the caller's review.

        The rating sum and review count change only through single-document
        atomic operators, so concurrent reviews are never lost.
        """
        course = self._get_or_404(course_id)
        user_id = ObjectId(identity.subject_id)
        if not self.user_repo.has_purchased(user_id, course.id):
            raise Forbidden("You must purchase this course before reviewing it")

        review = {
            "user": user_id,
            "rating": payload.rating,
            "comment": payload.comment,
            "created_at": utc_now(),
        }
        if not self.course_repo.add_review(course.id, review):
            replaced = self.course_repo.replace_review(
                course.id, user_id, payload.rating, payload.comment
            )
            if replaced is None:
                raise NotFound("Course not found")

        return self._get_or_404(course_id)
