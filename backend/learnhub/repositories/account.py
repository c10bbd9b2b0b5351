"""Account repositories (credential store) for admins and users"""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from learnhub.entities.account import Account, Admin, User
from learnhub.entities.base import utc_now
from learnhub.services.exceptions import DuplicateAccount

from .base import BaseRepository

A = TypeVar("A", bound=Account)


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively; store and query them lower-cased."""
    return email.strip().lower()


class AccountRepository(BaseRepository[A], Generic[A]):
    """Credential store shared by both account kinds"""

    def __init__(self, db: Database, model_class: Type[A]):
        super().__init__(db, model_class.COLLECTION, model_class)

    def find_by_email(self, email: str) -> Optional[A]:
        """Find an account by email (case-insensitive)"""
        return self.find_one({"email": normalize_email(email)})

    def create_account(self, account: A) -> A:
        """Insert a new account.

        Raises:
            DuplicateAccount: if the email is already registered. The unique
                index makes this hold even for concurrent registrations.
        """
        account.email = normalize_email(account.email)
        if self.find_by_email(account.email):
            raise DuplicateAccount()
        try:
            return self.insert_one(account)
        except DuplicateKeyError as e:
            raise DuplicateAccount() from e

    def update_profile(self, account_id: str | ObjectId, updates: Dict[str, Any]) -> Optional[A]:
        """Update mutable profile fields"""
        return self.update_one(account_id, updates)

    def update_password(self, account_id: str | ObjectId, password_hash: str) -> Optional[A]:
        """Replace the password hash and bump token_version in one update"""
        identifier = self._to_object_id(account_id)
        if identifier is None:
            return None
        return self.find_one_and_update(
            {"_id": identifier},
            {
                "$set": {"password_hash": password_hash, "updated_at": utc_now()},
                "$inc": {"token_version": 1},
            },
        )

    def touch_last_login(self, account_id: str | ObjectId) -> bool:
        identifier = self._to_object_id(account_id)
        if identifier is None:
            return False
        return self.update_one_raw(
            {"_id": identifier}, {"$set": {"last_login_at": utc_now()}}
        )


class AdminRepository(AccountRepository[Admin]):
    """Repository for admin accounts"""

    def __init__(self, db: Database):
        super().__init__(db, Admin)


class UserRepository(AccountRepository[User]):
    """Repository for learner accounts, including their purchased courses"""

    def __init__(self, db: Database):
        super().__init__(db, User)

    def add_purchased_course(self, user_id: ObjectId, course_id: ObjectId) -> bool:
        """Idempotently add a course to the user's set of purchases.

        Returns:
            True if the course was newly added, False if it was already there
        """
        return self.update_one_raw(
            {"_id": user_id},
            {"$addToSet": {"purchased_courses": course_id}},
        )

    def add_purchased_course_if_absent(self, user_id: ObjectId, course_id: ObjectId) -> bool:
        """Add the course only when the user does not hold it yet.

        The membership check and the add are a single conditional update, so
        of two racing calls exactly one returns True.
        """
        result = self.collection.update_one(
            {"_id": user_id, "purchased_courses": {"$ne": course_id}},
            {"$push": {"purchased_courses": course_id}},
        )
        return result.modified_count > 0

    def has_purchased(self, user_id: ObjectId, course_id: ObjectId) -> bool:
        return self.count({"_id": user_id, "purchased_courses": course_id}) > 0

    def purchased_course_ids(self, user_id: ObjectId) -> List[ObjectId]:
        doc = self.collection.find_one({"_id": user_id}, {"purchased_courses": 1})
        if not doc:
            return []
        return list(doc.get("purchased_courses", []))

    def count_enrolled(self, course_id: ObjectId) -> int:
        return self.count({"purchased_courses": course_id})
