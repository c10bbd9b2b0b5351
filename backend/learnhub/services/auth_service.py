"""Session issuer: registration, login, token refresh and password change.

One ``AuthService`` per account kind. Admin and user accounts live in
separate collections and their tokens carry the matching role, so a user
refresh token is never accepted by the admin refresh endpoint.
"""

from __future__ import annotations

import logging
from typing import Generic, Optional, Tuple, TypeVar

from pymongo.database import Database
from pymongo.errors import PyMongoError

from learnhub.dtos.auth import RegisterRequest
from learnhub.entities.account import Account, Admin, User
from learnhub.entities.enums import Role
from learnhub.repositories.account import (
    AccountRepository,
    AdminRepository,
    UserRepository,
)
from learnhub.services.auth import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from learnhub.services.exceptions import (
    BadRequest,
    InvalidCredentials,
    InvalidRefreshToken,
    NoRefreshToken,
    NotFound,
)
from learnhub.services.passwords import burn_verification, hash_password, verify_password
from learnhub.utils.prometheus_metrics import AUTH_LOGINS

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Account)


class AuthService(Generic[A]):
    """Issues and refreshes sessions for one account kind."""

    def __init__(self, repo: AccountRepository[A], role: Role):
        self.repo = repo
        self.role = role

    def _issue(self, account: A) -> Tuple[str, str]:
        subject = str(account.id)
        return (
            create_access_token(subject, self.role, account.token_version),
            create_refresh_token(subject, self.role, account.token_version),
        )

    def _build(self, payload: RegisterRequest) -> A:
        return self.repo.model_class(
            name=payload.name.strip(),
            email=payload.email,
            password_hash=hash_password(payload.password),
            bio=payload.bio,
        )

    def register(self, payload: RegisterRequest) -> Tuple[A, str, str]:
        """Create an account and sign it in.

        Raises:
            DuplicateAccount: email already registered for this account kind
        """
        account = self.repo.create_account(self._build(payload))
        logger.info("Registered %s account %s", self.role.value, account.id)
        access, refresh = self._issue(account)
        return account, access, refresh

    def login(self, email: str, password: str) -> Tuple[A, str, str]:
        """Verify credentials and issue a token pair.

        Unknown email and wrong password fail identically.
        """
        account = self.repo.find_by_email(email)
        if account is None:
            burn_verification(password)
            AUTH_LOGINS.labels(role=self.role.value, outcome="failure").inc()
            raise InvalidCredentials()
        if not verify_password(account.password_hash, password):
            AUTH_LOGINS.labels(role=self.role.value, outcome="failure").inc()
            raise InvalidCredentials()

        AUTH_LOGINS.labels(role=self.role.value, outcome="success").inc()
        access, refresh = self._issue(account)
        return account, access, refresh

    def refresh(self, refresh_token: Optional[str]) -> Tuple[str, str]:
        """Exchange a refresh token for a new access/refresh pair.

        Raises:
            NoRefreshToken: no token supplied
            InvalidRefreshToken: bad or expired token, another account kind,
                account gone, or token minted before a password change
        """
        if not refresh_token:
            raise NoRefreshToken()
        try:
            claims = decode_refresh_token(refresh_token)
        except TokenError as e:
            logger.debug("Refresh rejected: %s", e)
            raise InvalidRefreshToken() from e

        if claims.role is not self.role:
            raise InvalidRefreshToken()

        account = self.repo.find_by_id(claims.subject_id)
        if account is None:
            raise InvalidRefreshToken()
        if account.token_version != claims.token_version:
            logger.info("Stale refresh token for %s %s", self.role.value, account.id)
            raise InvalidRefreshToken()

        return self._issue(account)

    def touch_last_login(self, account_id: str) -> None:
        """Record the login time. Runs after the response; failures are only logged."""
        try:
            self.repo.touch_last_login(account_id)
        except PyMongoError as e:
            logger.warning("Could not record last login for %s: %s", account_id, e)

    def change_password(self, account_id: str, current_password: str, new_password: str) -> A:
        """Replace the password and revoke outstanding refresh tokens."""
        account = self.repo.find_by_id(account_id)
        if account is None:
            raise NotFound("Account not found")
        if not verify_password(account.password_hash, current_password):
            raise BadRequest("Current password is incorrect")

        updated = self.repo.update_password(account.id, hash_password(new_password))
        if updated is None:
            raise NotFound("Account not found")
        logger.info("Password changed for %s %s", self.role.value, account.id)
        return updated


def admin_auth_service(db: Database) -> AuthService[Admin]:
    return AuthService(AdminRepository(db), Role.ADMIN)


def user_auth_service(db: Database) -> AuthService[User]:
    return AuthService(UserRepository(db), Role.USER)
