"""Registration, login, refresh and password change through the HTTP API."""

from datetime import timedelta
from unittest.mock import patch

from learnhub.entities.enums import Role
from learnhub.services.auth import TokenKind, decode_access_token, encode

from conftest import PASSWORD


class TestRegisterAndLogin:
    def test_login_returns_token_for_registered_subject(self, client, register):
        registered = register("users", "Someone@Example.com", "Some One")

        response = client.post(
            "/api/users/login",
            json={"email": "someone@example.com", "password": PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["user"]["id"] == registered["id"]
        assert body["data"]["user"]["email"] == "someone@example.com"
        assert "passwordHash" not in body["data"]["user"]
        claims = decode_access_token(body["data"]["token"])
        assert claims.subject_id == registered["id"]
        assert claims.role is Role.USER

    def test_duplicate_email_is_rejected_case_insensitively(self, client, register):
        register("admin", "boss@example.com", "Boss")

        response = client.post(
            "/api/admin/register",
            json={"name": "Boss Two", "email": "BOSS@example.com", "password": PASSWORD},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_same_email_may_exist_as_admin_and_user(self, register):
        admin = register("admin", "both@example.com", "Both Admin")
        user = register("users", "both@example.com", "Both User")

        assert admin["id"] != user["id"]

    def test_unknown_email_and_wrong_password_fail_identically(self, client, user):
        with patch("learnhub.services.auth_service.burn_verification") as burn:
            unknown = client.post(
                "/api/users/login",
                json={"email": "nobody@example.com", "password": PASSWORD},
            )
        wrong = client.post(
            "/api/users/login",
            json={"email": "learner@example.com", "password": "not-the-password"},
        )

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json()["error"]["message"] == wrong.json()["error"]["message"]
        assert unknown.json()["error"]["message"] == "Invalid credentials"
        burn.assert_called_once_with(PASSWORD)

    def test_user_credentials_do_not_open_admin_session(self, client, user):
        response = client.post(
            "/api/admin/login",
            json={"email": "learner@example.com", "password": PASSWORD},
        )

        assert response.status_code == 401

    def test_short_password_is_a_validation_error_naming_the_field(self, client):
        response = client.post(
            "/api/users/register",
            json={"name": "Shorty", "email": "short@example.com", "password": "123"},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any(d["field"] == "password" for d in error["details"])

    def test_login_records_last_login(self, client, db, user):
        client.post(
            "/api/users/login",
            json={"email": "learner@example.com", "password": PASSWORD},
        )

        stored = db.users.find_one({"email": "learner@example.com"})
        assert stored["last_login_at"] is not None


class TestRefresh:
    def test_refresh_rotates_both_tokens(self, client, user):
        response = client.post(
            "/api/users/refresh-token", json={"refreshToken": user["refresh_token"]}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert decode_access_token(data["token"]).subject_id == user["id"]
        assert data["refreshToken"]

        again = client.post(
            "/api/users/refresh-token", json={"refreshToken": data["refreshToken"]}
        )
        assert again.status_code == 200

    def test_missing_refresh_token_is_bad_request(self, client):
        response = client.post("/api/users/refresh-token", json={})

        assert response.status_code == 400

    def test_user_refresh_token_rejected_by_admin_endpoint(self, client, user):
        response = client.post(
            "/api/admin/refresh-token", json={"refreshToken": user["refresh_token"]}
        )

        assert response.status_code == 401

    def test_access_token_cannot_be_used_to_refresh(self, client, user):
        response = client.post("/api/users/refresh-token", json={"refreshToken": user["token"]})

        assert response.status_code == 401

    def test_refresh_for_deleted_account_is_rejected(self, client, db, user):
        db.users.delete_many({})

        response = client.post(
            "/api/users/refresh-token", json={"refreshToken": user["refresh_token"]}
        )

        assert response.status_code == 401


class TestAuthenticator:
    def test_missing_token(self, client):
        response = client.get("/api/users/profile")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHENTICATED"
        assert response.json()["error"]["message"] == "No token provided"

    def test_expired_token_is_distinguishable(self, client, user):
        expired = encode(user["id"], Role.USER, TokenKind.ACCESS, expires_delta=timedelta(seconds=-1))

        response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {expired}"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_EXPIRED"
        assert response.json()["error"]["message"] == "Token expired"

    def test_invalid_token(self, client):
        response = client.get("/api/users/profile", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHENTICATED"
        assert response.json()["error"]["message"] == "Invalid token"

    def test_profile_with_valid_token(self, client, user):
        response = client.get("/api/users/profile", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["data"]["id"] == user["id"]
        assert response.json()["data"]["role"] == "user"


class TestChangePassword:
    def test_change_password_revokes_refresh_tokens(self, client, user):
        response = client.post(
            "/api/users/change-password",
            json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"},
            headers=user["headers"],
        )
        assert response.status_code == 200

        stale = client.post(
            "/api/users/refresh-token", json={"refreshToken": user["refresh_token"]}
        )
        assert stale.status_code == 401

        login = client.post(
            "/api/users/login",
            json={"email": "learner@example.com", "password": "brand-new-pass"},
        )
        assert login.status_code == 200

    def test_wrong_current_password(self, client, user):
        response = client.post(
            "/api/users/change-password",
            json={"currentPassword": "wrong-one", "newPassword": "brand-new-pass"},
            headers=user["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Current password is incorrect"

    def test_profile_update_keeps_name_when_null(self, client, user):
        response = client.put(
            "/api/users/profile",
            json={"name": None, "bio": "Learning every day", "preferences": {"theme": "dark"}},
            headers=user["headers"],
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Lee Learner"
        assert data["bio"] == "Learning every day"
        assert data["preferences"]["theme"] == "dark"
        assert data["preferences"]["notifications"]["email"] is True

    def test_null_profile_image_resets_to_default(self, client, user):
        response = client.put(
            "/api/users/profile",
            json={"profileImage": None, "bio": "x"},
            headers=user["headers"],
        )

        assert response.status_code == 200
        assert response.json()["data"]["profileImage"] == "https://via.placeholder.com/150"
        login = client.post(
            "/api/users/login",
            json={"email": "learner@example.com", "password": PASSWORD},
        )
        assert login.status_code == 200
        assert client.get("/api/users/profile", headers=user["headers"]).status_code == 200
