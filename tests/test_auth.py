"""
Tests for admin login and bearer-token verification.
"""

import jwt
import pytest

import auth
from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, JWT_SECRET
from errors import AuthenticationError
from models import Admin


class TestLogin:
    def test_login_returns_token_and_admin(self, client):
        response = client.post("/api/auth/login", json={"username": f"  {ADMIN_USERNAME} ", "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        data = response.get_json()
        assert data["admin"]["username"] == ADMIN_USERNAME
        assert "password_hash" not in data["admin"]
        claims = jwt.decode(data["token"], JWT_SECRET, algorithms=["HS256"])
        assert claims["username"] == ADMIN_USERNAME
        assert claims["id"] == data["admin"]["id"]
        assert claims["exp"] - claims["iat"] == 8 * 3600

    def test_wrong_password_and_unknown_user_look_the_same(self, client):
        wrong_password = client.post("/api/auth/login", json={"username": ADMIN_USERNAME, "password": "nope"})
        unknown_user = client.post("/api/auth/login", json={"username": "mallory", "password": ADMIN_PASSWORD})

        assert wrong_password.status_code == unknown_user.status_code == 401
        assert wrong_password.get_json() == unknown_user.get_json() == {"error": "Invalid credentials."}

    @pytest.mark.parametrize("payload", [{}, {"username": ADMIN_USERNAME}, {"password": ADMIN_PASSWORD}, {"username": " ", "password": "x"}])
    def test_missing_fields(self, client, payload):
        response = client.post("/api/auth/login", json=payload)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Username and password are required."

    def test_json_list_body_is_validation_error(self, client):
        response = client.post("/api/auth/login", json=[ADMIN_USERNAME, ADMIN_PASSWORD])

        assert response.status_code == 400
        assert response.get_json()["error"] == "Username and password are required."

    def test_password_is_stored_hashed(self, session):
        admin = session.query(Admin).filter_by(username=ADMIN_USERNAME).one()

        assert admin.password_hash != ADMIN_PASSWORD

    def test_login_without_secret_is_server_error(self, app, client):
        app.config["JWT_SECRET"] = None

        response = client.post("/api/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})

        assert response.status_code == 500
        assert response.get_json()["error"] == "Authentication not configured."


class TestTokenVerification:
    def test_missing_token(self, client):
        response = client.get("/api/stock-updates")

        assert response.status_code == 401
        assert response.get_json()["error"] == "Missing authorization token."

    @pytest.mark.parametrize("header", ["Bearer not-a-jwt", "Token abc", "Bearer "])
    def test_malformed_token(self, client, header):
        response = client.get("/api/stock-updates", headers={"Authorization": header})

        assert response.status_code == 401

    def test_expired_token(self, app, client, session):
        admin = session.query(Admin).filter_by(username=ADMIN_USERNAME).one()
        token = auth.issue_token(admin, ttl_hours=-1)

        response = client.get("/api/stock-updates", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid or expired token."

    def test_token_signed_with_other_secret(self, client, session):
        admin = session.query(Admin).filter_by(username=ADMIN_USERNAME).one()
        token = auth.issue_token(admin, secret="another-secret-that-is-also-long-enough")

        response = client.get("/api/stock-updates", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid or expired token."

    def test_verify_token_round_trip(self, session):
        admin = session.query(Admin).filter_by(username=ADMIN_USERNAME).one()

        claims = auth.verify_token(auth.issue_token(admin))

        assert claims["id"] == admin.id
        assert claims["username"] == ADMIN_USERNAME

    def test_verify_rejects_empty(self, session):
        with pytest.raises(AuthenticationError):
            auth.verify_token(None)


class TestAdminManagement:
    def test_set_password_creates_then_updates(self, client, session):
        _, created = auth.set_password(session, "clerk", "first-password")
        _, created_again = auth.set_password(session, "clerk", "second-password")

        assert created is True
        assert created_again is False
        assert client.post("/api/auth/login", json={"username": "clerk", "password": "first-password"}).status_code == 401
        assert client.post("/api/auth/login", json={"username": "clerk", "password": "second-password"}).status_code == 200

    def test_default_admin_not_recreated(self, session):
        assert auth.ensure_default_admin(session, ADMIN_USERNAME, "whatever") is None
        assert session.query(Admin).count() == 1
