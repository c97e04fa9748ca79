"""Integration tests for the authentication endpoints (api/routes/v1/auth.py).

Uses the module-scoped api_client (CSRF off, rate limiter off). Each test
registers its own email so tests stay independent on the shared database.

Covers:
- register: 201 with camelCase profile + token, default role, 400 on duplicate,
  403 for a self-assigned admin role, 400 for an unknown role
- Passwords that cannot be UTF-8 encoded are a 422, not a 500
- login: success, identical 401 for unknown email and wrong password
- Bearer handling on /users/me: missing, malformed, garbage, expired
- refresh and password change
- Error envelope shape and no-store caching on token responses
"""

import pytest
from fastapi.testclient import TestClient

from auth.models import TokenClaims
from auth.tokens import TokenConfig, TokenService
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_SECRET, bearer


def _register(client: TestClient, email: str, password: str = "register-pass", **extra):
    body = {"lastName": "Curie", "firstName": "Marie", "email": email, "password": password}
    body.update(extra)
    return client.post("/api/v1/users/register", json=body)


class TestRegister:
    def test_register_returns_profile_and_token(self, api_client) -> None:
        client, _, _ = api_client
        resp = _register(client, "marie@hometracker.test", phone="0611223344")
        assert resp.status_code == 201
        data = resp.json()
        assert data["email"] == "marie@hometracker.test"
        assert data["lastName"] == "Curie"
        assert data["roleId"] == 1
        assert data["phone"] == "0611223344"
        assert data["tokenType"] == "bearer"
        assert data["expiresIn"] == 86400
        assert "password" not in data
        assert resp.headers["Cache-Control"] == "no-store"

    def test_registered_token_works(self, api_client) -> None:
        client, _, _ = api_client
        token = _register(client, "pierre@hometracker.test").json()["token"]
        me = client.get("/api/v1/users/me", headers=bearer(token))
        assert me.status_code == 200
        assert me.json()["email"] == "pierre@hometracker.test"

    def test_duplicate_email(self, api_client) -> None:
        client, _, _ = api_client
        assert _register(client, "dup@hometracker.test").status_code == 201
        resp = _register(client, "dup@hometracker.test", password="other-password")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "email_in_use"
        # The original credential is untouched.
        login = client.post("/api/v1/users/login", json={"email": "dup@hometracker.test", "password": "register-pass"})
        assert login.status_code == 200

    def test_short_password_rejected(self, api_client) -> None:
        client, _, _ = api_client
        resp = _register(client, "short@hometracker.test", password="short")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert "password" in resp.json()["error"]["detail"]

    def test_invalid_email_rejected(self, api_client) -> None:
        client, _, _ = api_client
        assert _register(client, "not-an-email").status_code == 422

    def test_html_is_stripped_from_profile_fields(self, api_client) -> None:
        client, _, _ = api_client
        resp = _register(client, "html@hometracker.test", description="<script>alert(1)</script>Gardener")
        assert resp.status_code == 201
        assert resp.json()["description"] == "alert(1)Gardener"

    @pytest.mark.parametrize("role_id", [2, 3])
    def test_admin_role_cannot_be_self_assigned(self, api_client, role_id: int) -> None:
        client, admin_token, _ = api_client
        email = f"climber{role_id}@hometracker.test"
        resp = _register(client, email, roleId=role_id)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"
        listed = client.get("/api/v1/users", headers=bearer(admin_token)).json()
        assert email not in [u["email"] for u in listed]

    def test_unknown_role_rejected(self, api_client) -> None:
        client, _, _ = api_client
        resp = _register(client, "norole@hometracker.test", roleId=999)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_role"

    def test_lone_surrogate_password_is_422(self, api_client) -> None:
        client, _, _ = api_client
        raw = b'{"lastName":"Curie","firstName":"Marie","email":"surrogate@hometracker.test","password":"abcdefgh\\ud800"}'
        resp = client.post("/api/v1/users/register", content=raw, headers={"Content-Type": "application/json"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_snake_case_body_accepted(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/users/register",
            json={"last_name": "Noether", "first_name": "Emmy", "email": "emmy@hometracker.test", "password": "ring-theory"},
        )
        assert resp.status_code == 201


class TestLogin:
    def test_login_success(self, api_client) -> None:
        client, _, admin_id = api_client
        resp = client.post("/api/v1/users/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == admin_id
        assert data["roleId"] == 3
        assert data["token"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_unknown_and_wrong_password_identical(self, api_client) -> None:
        client, _, _ = api_client
        unknown = client.post("/api/v1/users/login", json={"email": "ghost@hometracker.test", "password": "whatever"})
        wrong = client.post("/api/v1/users/login", json={"email": ADMIN_EMAIL, "password": "not-it"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["error"]["code"] == "invalid_credentials"

    def test_password_is_not_sanitized(self, api_client) -> None:
        """A password containing markup is used verbatim, not stripped."""
        client, _, _ = api_client
        assert _register(client, "markup@hometracker.test", password="<b>bold</b>pass").status_code == 201
        ok = client.post("/api/v1/users/login", json={"email": "markup@hometracker.test", "password": "<b>bold</b>pass"})
        stripped = client.post("/api/v1/users/login", json={"email": "markup@hometracker.test", "password": "boldpass"})
        assert ok.status_code == 200
        assert stripped.status_code == 401


class TestBearer:
    def test_missing_header(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/users/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "authentication_required"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_malformed_header(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/users/me", headers={"Authorization": "not-bearer-format"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "authentication_required"

    def test_garbage_token(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/users/me", headers=bearer("x"))
        assert resp.status_code == 401
        assert resp.json()["error"] == {"code": "invalid_token", "message": "Invalid or expired token.", "detail": None}

    def test_expired_token(self, api_client) -> None:
        client, _, admin_id = api_client
        expired = TokenService(TokenConfig(secret=TEST_SECRET)).issue(
            TokenClaims(user_id=admin_id, role_id=3, email=ADMIN_EMAIL), expires_in=-10
        )
        resp = client.get("/api/v1/users/me", headers=bearer(expired))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_me(self, api_client) -> None:
        client, token, admin_id = api_client
        resp = client.get("/api/v1/users/me", headers=bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["userId"] == admin_id
        assert data["roleId"] == 3
        assert data["profile"]["firstName"] == "Ada"
        assert "password" not in data["profile"]


class TestRefresh:
    def test_refresh(self, api_client) -> None:
        client, token, admin_id = api_client
        resp = client.post("/api/v1/users/refresh", headers=bearer(token))
        assert resp.status_code == 200
        new_token = resp.json()["token"]
        assert resp.json()["expiresIn"] == 86400
        me = client.get("/api/v1/users/me", headers=bearer(new_token))
        assert me.json()["userId"] == admin_id

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer x"}])
    def test_refresh_rejects(self, api_client, headers) -> None:
        client, _, _ = api_client
        assert client.post("/api/v1/users/refresh", headers=headers).status_code == 401


class TestChangePassword:
    def test_change_password(self, api_client) -> None:
        client, _, _ = api_client
        token = _register(client, "rotate@hometracker.test", password="first-password").json()["token"]
        resp = client.put(
            "/api/v1/users/me/password",
            json={"currentPassword": "first-password", "newPassword": "second-password"},
            headers=bearer(token),
        )
        assert resp.status_code == 204
        old = client.post("/api/v1/users/login", json={"email": "rotate@hometracker.test", "password": "first-password"})
        new = client.post("/api/v1/users/login", json={"email": "rotate@hometracker.test", "password": "second-password"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_wrong_current_password(self, api_client) -> None:
        client, _, _ = api_client
        token = _register(client, "keep@hometracker.test", password="first-password").json()["token"]
        resp = client.put(
            "/api/v1/users/me/password",
            json={"currentPassword": "guess-guess", "newPassword": "second-password"},
            headers=bearer(token),
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_credentials"

    def test_unencodable_new_password_is_422(self, api_client) -> None:
        client, _, _ = api_client
        token = _register(client, "surrogate-change@hometracker.test", password="first-password").json()["token"]
        raw = b'{"currentPassword":"first-password","newPassword":"second-pass\\udfff"}'
        resp = client.put(
            "/api/v1/users/me/password",
            content=raw,
            headers={**bearer(token), "Content-Type": "application/json"},
        )
        assert resp.status_code == 422

    def test_requires_auth(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.put(
            "/api/v1/users/me/password", json={"currentPassword": "a", "newPassword": "second-password"}
        )
        assert resp.status_code == 401


class TestErrors:
    def test_unknown_route_uses_envelope(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/does-not-exist")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "http_404"

    def test_csrf_token_empty_when_disabled(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/csrf-token")
        assert resp.status_code == 200
        assert resp.json() == {"token": ""}
