"""Course repository for database operations"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

from learnhub.entities.base import utc_now
from learnhub.entities.course import Course

from .base import BaseRepository

# Embedded reviews can grow large; listings leave them out
LISTING_PROJECTION = {"reviews": 0}


class CourseRepository(BaseRepository[Course]):
    """Repository for course entities"""

    def __init__(self, db: Database):
        super().__init__(db, Course.COLLECTION, Course)

    def list_courses(
        self,
        query: Dict[str, Any],
        sort: List[tuple],
        skip: int,
        limit: int,
    ) -> tuple[List[Course], int]:
        return self.paginate(
            query, sort=sort, skip=skip, limit=limit, projection=LISTING_PROJECTION
        )

    def find_by_ids(self, course_ids: List[ObjectId]) -> List[Course]:
        if not course_ids:
            return []
        return self.find_many(
            {"_id": {"$in": course_ids}},
            sort=[("created_at", -1)],
            projection=LISTING_PROJECTION,
        )

    def add_review(self, course_id: ObjectId, review: Dict[str, Any]) -> bool:
        """Append a first review by this user and bump rating sum and count.

        One atomic update on the course document: concurrent reviews from
        different users are all applied. Returns False when the course does
        not exist or the user has already reviewed it.
        """
        result = self.collection.update_one(
            {"_id": course_id, "reviews.user": {"$ne": review["user"]}},
            {
                "$push": {"reviews": review},
                "$inc": {"rating": review["rating"], "number_of_reviews": 1},
                "$set": {"updated_at": utc_now()},
            },
        )
        return result.modified_count > 0

    def replace_review(
        self, course_id: ObjectId, user_id: ObjectId, rating: int, comment: str
    ) -> Optional[int]:
        """Overwrite an existing review and return the rating it replaced.

        The review and the rating sum change in one conditional update that
        only matches while the stored rating is the one read, so a
        concurrent replace is retried instead of skewing the sum. Returns
        None when the course or the review does not exist.
        """
        while True:
            doc = self.collection.find_one(
                {"_id": course_id, "reviews.user": user_id}, projection={"reviews": 1}
            )
            if not doc:
                return None
            previous = next(
                (r["rating"] for r in doc.get("reviews", []) if r.get("user") == user_id),
                None,
            )
            if previous is None:
                return None
            now = utc_now()
            result = self.collection.update_one(
                {
                    "_id": course_id,
                    "reviews": {"$elemMatch": {"user": user_id, "rating": previous}},
                },
                {
                    "$set": {
                        "reviews.$.rating": rating,
                        "reviews.$.comment": comment,
                        "reviews.$.created_at": now,
                        "updated_at": now,
                    },
                    "$inc": {"rating": rating - previous},
                },
            )
            if result.matched_count:
                return previous
