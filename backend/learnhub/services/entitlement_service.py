"""Entitlement ledger: which user owns which course.

An entitlement is the membership of a course id in the user's
``purchased_courses``. Both the direct purchase and the payment webhook
write through here.
"""

from __future__ import annotations

import logging
from typing import List

from bson import ObjectId
from pymongo.database import Database

from learnhub.entities.course import Course
from learnhub.repositories.account import UserRepository
from learnhub.repositories.course import CourseRepository
from learnhub.services.exceptions import AlreadyOwned, BadRequest, NotFound
from learnhub.utils.prometheus_metrics import ENTITLEMENTS_GRANTED

logger = logging.getLogger(__name__)


def _oid(value: str | ObjectId, what: str) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if ObjectId.is_valid(value):
        return ObjectId(value)
    raise NotFound(f"{what} not found")


class EntitlementLedger:
    def __init__(self, db: Database):
        self.db = db
        self.user_repo = UserRepository(db)
        self.course_repo = CourseRepository(db)

    def has_entitlement(self, user_id: str | ObjectId, course_id: str | ObjectId) -> bool:
        if not ObjectId.is_valid(str(user_id)) or not ObjectId.is_valid(str(course_id)):
            return False
        return self.user_repo.has_purchased(ObjectId(str(user_id)), ObjectId(str(course_id)))

    def grant(self, user_id: str | ObjectId, course_id: str | ObjectId, source: str = "webhook") -> bool:
        """Add the entitlement if missing. Safe to call any number of times.

        Returns:
            True if the entitlement was newly added
        """
        added = self.user_repo.add_purchased_course(
            _oid(user_id, "User"), _oid(course_id, "Course")
        )
        if added:
            ENTITLEMENTS_GRANTED.labels(source=source).inc()
            logger.info("Granted course %s to user %s (%s)", course_id, user_id, source)
        return added

    def list_entitlements(self, user_id: str | ObjectId) -> List[Course]:
        course_ids = self.user_repo.purchased_course_ids(_oid(user_id, "User"))
        return self.course_repo.find_by_ids(course_ids)

    def purchase(self, user_id: str | ObjectId, course_id: str | ObjectId) -> Course:
        """Direct purchase without the payment provider.

        Raises:
            NotFound: course or user does not exist
            BadRequest: course is not published
            AlreadyOwned: the user already holds the course
        """
        course = self.course_repo.find_by_id(_oid(course_id, "Course"))
        if course is None:
            raise NotFound("Course not found")
        if not course.published:
            raise BadRequest("Course is not available for purchase")

        uid = _oid(user_id, "User")
        if self.user_repo.find_by_id(uid) is None:
            raise NotFound("User not found")

        if not self.user_repo.add_purchased_course_if_absent(uid, course.id):
            raise AlreadyOwned()

        ENTITLEMENTS_GRANTED.labels(source="purchase").inc()
        logger.info("User %s purchased course %s", uid, course.id)
        return course
