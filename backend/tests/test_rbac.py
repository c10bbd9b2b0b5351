"""Role checks: pure functions and route-level enforcement."""

import pytest

from learnhub.entities.enums import Role
from learnhub.middleware.auth import Identity
from learnhub.middleware.rbac import require_owner_or_role, require_role
from learnhub.services.exceptions import Forbidden, Unauthenticated

ADMIN = Identity(subject_id="65f0c0ffee0000000000aaaa", role=Role.ADMIN)
USER = Identity(subject_id="65f0c0ffee0000000000bbbb", role=Role.USER)


class TestRequireRole:
    def test_allows_matching_role(self):
        assert require_role(ADMIN, [Role.ADMIN]) is ADMIN

    def test_forbids_other_role(self):
        with pytest.raises(Forbidden) as exc:
            require_role(USER, [Role.ADMIN])
        assert exc.value.message == "Admin access required"

    def test_missing_identity_is_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            require_role(None, [Role.ADMIN, Role.USER])

    def test_empty_role_set_fails_closed(self):
        with pytest.raises(Forbidden):
            require_role(ADMIN, [])


class TestRequireOwnerOrRole:
    def test_owner_passes_without_role(self):
        assert require_owner_or_role(USER, USER.subject_id, [Role.ADMIN]) is USER

    def test_role_passes_without_ownership(self):
        assert require_owner_or_role(ADMIN, USER.subject_id, [Role.ADMIN]) is ADMIN

    def test_neither_owner_nor_role(self):
        with pytest.raises(Forbidden):
            require_owner_or_role(USER, ADMIN.subject_id, [Role.ADMIN])


class TestRouteEnforcement:
    def test_user_token_on_admin_route_is_forbidden(self, client, user):
        response = client.get("/api/courses/admin/all", headers=user["headers"])

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_admin_token_on_user_route_is_forbidden(self, client, admin):
        response = client.get("/api/users/courses", headers=admin["headers"])

        assert response.status_code == 403

    def test_anonymous_on_admin_route_is_unauthenticated(self, client):
        response = client.get("/api/admin/profile")

        assert response.status_code == 401
