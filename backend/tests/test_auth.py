# Overview: Pytest coverage for registration, login, sessions and password changes.

"""
Authentication Tests

Covers the /api/auth surface end to end: signup creates a tenant with a
session, login accepts username or email, logout revokes the token, and a
password change signs out every other session.
"""

import pytest

from stockledger.errors import ConflictError, ValidationError
from stockledger.models import SessionToken, UserSettings
from stockledger.services import auth_service

from conftest import PASSWORD, auth_headers


class TestPasswordRules:

    @pytest.mark.parametrize("weak", ["Short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, weak):
        with pytest.raises(auth_service.PasswordValidationError) as exc_info:
            auth_service.validate_password_strength(weak)
        assert "password" in exc_info.value.errors

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)
        assert not auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash")


class TestCreateUser:

    def test_creates_settings_row(self, db_session):
        user = auth_service.create_user("shop", "Shop@Example.com", PASSWORD)

        assert user.email == "shop@example.com"
        assert db_session.query(UserSettings).filter_by(user_id=user.id).count() == 1

    def test_duplicate_username_or_email(self, db_session, user_a):
        with pytest.raises(ConflictError):
            auth_service.create_user("user_a", "other@example.com", PASSWORD)
        with pytest.raises(ConflictError):
            auth_service.create_user("someone", "USER_A@acme.com", PASSWORD)

    def test_field_errors_collected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.create_user("ab", "not-an-email", PASSWORD)
        assert set(exc_info.value.errors) == {"username", "email"}


class TestAuthApi:

    def test_register_returns_session(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "username": "newshop", "email": "new@shop.com", "password": PASSWORD,
        })

        assert response.status_code == 201
        data = response.json["data"]
        assert data["user"]["username"] == "newshop"
        assert "password_hash" not in data["user"]

        me = client.get("/api/auth/me", headers=auth_headers(data["token"]))
        assert me.status_code == 200
        assert me.json["data"]["user"]["email"] == "new@shop.com"

    def test_register_weak_password(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "username": "newshop", "email": "new@shop.com", "password": "password",
        })
        assert response.status_code == 400
        assert "password" in response.json["errors"]

    def test_login_by_username_or_email(self, client, db_session, user_a):
        by_name = client.post("/api/auth/login", json={"username": "user_a", "password": PASSWORD})
        by_email = client.post("/api/auth/login", json={"email": "user_a@acme.com", "password": PASSWORD})

        assert by_name.status_code == 200
        assert by_email.status_code == 200
        assert by_name.json["data"]["token"] != by_email.json["data"]["token"]

    def test_login_bad_credentials(self, client, db_session, user_a):
        response = client.post("/api/auth/login", json={"username": "user_a", "password": "Wrong123!"})
        assert response.status_code == 401
        assert response.json["error"] == "Invalid credentials"

    def test_login_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"username": "user_a"})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, db_session, token_a, headers_a):
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 200

        assert client.get("/api/auth/me", headers=headers_a).status_code == 401
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 401

    def test_invalid_token(self, client, db_session):
        response = client.get("/api/auth/me", headers=auth_headers("deadbeef"))
        assert response.status_code == 401
        assert response.json["success"] is False


class TestChangePassword:

    def test_revokes_other_sessions(self, client, db_session, user_a, headers_a):
        other = client.post("/api/auth/login", json={"username": "user_a", "password": PASSWORD}).json["data"]["token"]

        response = client.post("/api/auth/change-password", json={
            "current_password": PASSWORD, "new_password": "NewPassword456!",
        }, headers=headers_a)

        assert response.status_code == 200
        assert response.json["data"]["revoked_sessions"] == 1
        assert client.get("/api/auth/me", headers=headers_a).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(other)).status_code == 401

        relogin = client.post("/api/auth/login", json={"username": "user_a", "password": "NewPassword456!"})
        assert relogin.status_code == 200

    def test_wrong_current_password(self, client, db_session, user_a, headers_a):
        response = client.post("/api/auth/change-password", json={
            "current_password": "Nope1234!", "new_password": "NewPassword456!",
        }, headers=headers_a)

        assert response.status_code == 401
        active = db_session.query(SessionToken).filter_by(user_id=user_a.id, is_revoked=False).count()
        assert active == 1

    def test_same_password_rejected(self, client, db_session, headers_a):
        response = client.post("/api/auth/change-password", json={
            "current_password": PASSWORD, "new_password": PASSWORD,
        }, headers=headers_a)
        assert response.status_code == 400
