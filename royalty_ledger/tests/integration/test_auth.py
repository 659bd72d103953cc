"""
tests/integration/test_auth.py — Authentication endpoints.

  POST /auth/register  → 201     POST /auth/refresh → 200
  POST /auth/login     → 200     POST /auth/logout  → 200
  GET  /auth/me        → 200

401 cases come from the middleware; 409 duplicates from auth_service.
"""

from __future__ import annotations

from conftest import auth_headers, register, register_admin


class TestRegister:

    def test_register_returns_tokens_and_default_role(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "username": "alice",
            "email": "alice@test.com",
            "password": "Password1",
        })
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "creator"
        assert "password_hash" not in data["user"]

    def test_register_as_licensee(self, client):
        data = register(client, "lena", role="licensee")
        assert data["user"]["role"] == "licensee"

    def test_admin_role_cannot_be_self_assigned(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "username": "mallory",
            "email": "mallory@test.com",
            "password": "Password1",
            "role": "admin",
        })
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_FIELD"
        assert error["field"] == "role"

    def test_duplicate_email_returns_409(self, client):
        register(client, "alice", email="shared@test.com")
        resp = client.post("/api/v1/auth/register", json={
            "username": "alice2", "email": "shared@test.com", "password": "Password1",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_EMAIL"

    def test_duplicate_username_returns_409(self, client):
        register(client, "alice")
        resp = client.post("/api/v1/auth/register", json={
            "username": "alice", "email": "other@test.com", "password": "Password1",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_USERNAME"

    def test_missing_password_returns_missing_field(self, client):
        resp = client.post("/api/v1/auth/register", json={
            "username": "alice", "email": "alice@test.com",
        })
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "MISSING_FIELD"
        assert error["field"] == "password"


class TestLoginAndTokens:

    def test_login_with_wrong_password_is_401(self, client):
        register(client, "alice")
        resp = client.post("/api/v1/auth/login", json={
            "username": "alice", "password": "WrongPass1",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_refresh_issues_new_access_token(self, client):
        alice = register(client, "alice")
        resp = client.post("/api/v1/auth/refresh", json={
            "refresh_token": alice["refresh_token"],
        })
        assert resp.status_code == 200
        token = resp.get_json()["data"]["access_token"]
        me = client.get("/api/v1/auth/me", headers=auth_headers(token))
        assert me.status_code == 200

    def test_logout_revokes_refresh_token(self, client):
        alice = register(client, "alice")
        headers = auth_headers(alice["access_token"])
        body = {"refresh_token": alice["refresh_token"]}

        assert client.post("/api/v1/auth/logout", json=body, headers=headers).status_code == 200

        resp = client.post("/api/v1/auth/refresh", json=body)
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "REFRESH_TOKEN_INVALID"

    def test_me_requires_token(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"

    def test_me_rejects_garbage_token(self, client):
        resp = client.get("/api/v1/auth/me", headers=auth_headers("not-a-jwt"))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"

    def test_me_returns_profile(self, client):
        admin = register_admin(client)
        resp = client.get("/api/v1/auth/me", headers=auth_headers(admin["access_token"]))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["warnings"] == []
        assert body["data"]["email"] == "ops@royalty.test"
        assert body["data"]["is_admin"] is True

    def test_me_regular_user_is_not_admin(self, client):
        bob = register(client, "bob", role="licensee")
        data = client.get("/api/v1/auth/me", headers=auth_headers(bob["access_token"])).get_json()["data"]
        assert data["role"] == "licensee"
        assert data["is_admin"] is False


class TestEnvelope:

    def test_unknown_route_uses_error_envelope(self, client):
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "NOT_FOUND"
