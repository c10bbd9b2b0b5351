"""
Role-based access control for FastAPI routes.

- ``require_role`` / ``require_owner_or_role``: pure checks over an Identity,
  no I/O, fail closed.
- ``RequireRole``: dependency factory for route protection.
"""

from __future__ import annotations

from typing import Iterable, Optional, Set

from bson import ObjectId
from fastapi import Depends

from learnhub.entities.enums import Role
from learnhub.middleware.auth import Identity, get_identity
from learnhub.services.exceptions import Forbidden, Unauthenticated

_ROLE_DENIED_MESSAGES = {
    frozenset({Role.ADMIN}): "Admin access required",
    frozenset({Role.USER}): "User access required",
}


def require_role(identity: Optional[Identity], allowed_roles: Iterable[Role]) -> Identity:
    """Check that the identity holds one of ``allowed_roles``.

    Raises:
        Unauthenticated: no identity attached
        Forbidden: identity has another role
    """
    if identity is None:
        raise Unauthenticated("Authentication required")
    allowed = frozenset(allowed_roles)
    if identity.role not in allowed:
        raise Forbidden(_ROLE_DENIED_MESSAGES.get(allowed, "Access denied"))
    return identity


def require_owner_or_role(
    identity: Optional[Identity],
    resource_owner_id: Optional[str | ObjectId],
    allowed_roles: Iterable[Role],
) -> Identity:
    """Allow the resource owner, or anyone holding one of ``allowed_roles``."""
    if identity is None:
        raise Unauthenticated("Authentication required")
    if resource_owner_id is not None and str(resource_owner_id) == identity.subject_id:
        return identity
    if identity.role in frozenset(allowed_roles):
        return identity
    raise Forbidden("You do not have permission to access this resource")


class RequireRole:
    """
    Dependency class for requiring one of a set of roles.

    Usage:
        @router.post("/courses")
        def create(identity: Identity = Depends(RequireRole(Role.ADMIN))):
            ...
    """

    def __init__(self, *roles: Role):
        self.roles: Set[Role] = set(roles)

    async def __call__(self, identity: Identity = Depends(get_identity)) -> Identity:
        return require_role(identity, self.roles)


# Convenience dependency instances for common role patterns
require_admin = RequireRole(Role.ADMIN)
require_user = RequireRole(Role.USER)
