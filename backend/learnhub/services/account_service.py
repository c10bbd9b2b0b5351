"""Profile read/update for admins and users."""

from __future__ import annotations

from typing import Any, Dict, Generic, TypeVar

from pymongo.database import Database

from learnhub.dtos.account import (
    AdminProfile,
    AdminProfileUpdate,
    UserProfile,
    UserProfileUpdate,
)
from learnhub.entities.account import DEFAULT_PROFILE_IMAGE, Account, Admin, User
from learnhub.repositories.account import (
    AccountRepository,
    AdminRepository,
    UserRepository,
)
from learnhub.services.exceptions import NotFound

A = TypeVar("A", bound=Account)


def admin_profile(admin: Admin) -> AdminProfile:
    return AdminProfile.model_validate(admin.model_dump())


def user_profile(user: User) -> UserProfile:
    return UserProfile.model_validate(user.model_dump())


class ProfileService(Generic[A]):
    def __init__(self, repo: AccountRepository[A]):
        self.repo = repo

    def get(self, account_id: str) -> A:
        account = self.repo.find_by_id(account_id)
        if account is None:
            raise NotFound("Account not found")
        return account

    def _updates(self, account: A, payload: AdminProfileUpdate) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True, exclude={"preferences"})
        # name is required on the account; a null leaves it unchanged
        name = updates.pop("name", None)
        if name is not None:
            updates["name"] = name.strip()
        # a null image resets to the default
        if "profile_image" in updates and updates["profile_image"] is None:
            updates["profile_image"] = DEFAULT_PROFILE_IMAGE
        return updates

    def update(self, account_id: str, payload: AdminProfileUpdate) -> A:
        account = self.get(account_id)
        updates = self._updates(account, payload)
        if not updates:
            return account
        updated = self.repo.update_profile(account.id, updates)
        if updated is None:
            raise NotFound("Account not found")
        return updated


class UserProfileService(ProfileService[User]):
    def __init__(self, db: Database):
        super().__init__(UserRepository(db))

    def _updates(self, account: User, payload: UserProfileUpdate) -> Dict[str, Any]:
        updates = super()._updates(account, payload)
        if payload.preferences is not None:
            # Merge partial preferences over the stored ones
            merged = account.preferences.model_dump()
            incoming = payload.preferences.model_dump(exclude_none=True)
            notifications = incoming.pop("notifications", None) or {}
            merged["notifications"].update(notifications)
            merged.update(incoming)
            updates["preferences"] = merged
        return updates


class AdminProfileService(ProfileService[Admin]):
    def __init__(self, db: Database):
        super().__init__(AdminRepository(db))
