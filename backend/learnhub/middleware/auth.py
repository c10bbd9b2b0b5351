"""Authentication dependencies for FastAPI.

Two modes, chosen per route:
- ``get_identity``: the route requires a valid access token.
- ``get_identity_optional``: the route works anonymously; a valid token only
  adds an identity.

Only the subject id and role are taken from the token. The role is not looked
up in storage per request; it changes only when a new token is issued.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from learnhub.entities.enums import Role
from learnhub.services.auth import ExpiredTokenError, TokenError, decode_access_token
from learnhub.services.exceptions import TokenExpired, Unauthenticated

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    """Resolved caller. Carries no permissions of its own; see middleware.rbac."""

    subject_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate(token: Optional[str]) -> Identity:
    """Decode an access token into an Identity.

    Raises:
        Unauthenticated: token missing or invalid
        TokenExpired: token valid but expired; clients refresh on this
    """
    if not token:
        raise Unauthenticated("No token provided")
    try:
        claims = decode_access_token(token)
    except ExpiredTokenError as e:
        raise TokenExpired() from e
    except TokenError as e:
        logger.debug("Rejected access token: %s", e)
        raise Unauthenticated("Invalid token") from e
    return Identity(subject_id=claims.subject_id, role=claims.role)


async def get_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Identity:
    """Require a valid bearer token and attach the identity to the request."""
    identity = authenticate(extract_bearer_token(authorization))
    request.state.identity = identity
    return identity


async def get_identity_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Resolve the identity if a valid token is present, otherwise None."""
    token = extract_bearer_token(authorization)
    if not token:
        return None
    try:
        identity = authenticate(token)
    except Unauthenticated:
        return None
    request.state.identity = identity
    return identity
