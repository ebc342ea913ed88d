"""
Tests for authentication endpoints (signup and login).

These tests verify:
  - Successful signup creates a buyer or seller and returns a JWT
  - Admin accounts cannot be self-registered
  - Duplicate email signup is rejected (409 Conflict)
  - Wrong password and unknown email get the same 401 (anti-enumeration)
  - Invalid input is rejected (422)
  - Protected endpoints reject missing or forged tokens
"""

import pytest


def _signup_body(**overrides) -> dict:
    body = {
        "email": "newuser@example.com",
        "password": "StrongPass99!",
        "full_name": "Jane Doe",
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Signup Tests
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_defaults_to_buyer(self, client):
        response = await client.post("/auth/signup", json=_signup_body())
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "buyer"
        assert data["token_type"] == "bearer"
        assert "token" in data
        assert "user_id" in data

    async def test_signup_as_seller(self, client):
        response = await client.post("/auth/signup", json=_signup_body(role="seller"))
        assert response.status_code == 201
        assert response.json()["role"] == "seller"

    async def test_cannot_self_register_admin(self, client):
        response = await client.post("/auth/signup", json=_signup_body(role="admin"))
        assert response.status_code == 422

    async def test_signup_duplicate_email(self, client):
        """Signing up with an already-registered email should return 409."""
        response1 = await client.post("/auth/signup", json=_signup_body())
        assert response1.status_code == 201

        response2 = await client.post("/auth/signup", json=_signup_body())
        assert response2.status_code == 409
        assert "already registered" in response2.json()["detail"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"password": "short"},
            {"email": "not-an-email"},
            {"full_name": ""},
        ],
    )
    async def test_signup_invalid_input(self, client, overrides):
        response = await client.post("/auth/signup", json=_signup_body(**overrides))
        assert response.status_code == 422

    async def test_signup_missing_fields(self, client):
        response = await client.post("/auth/signup", json={"email": "missing@example.com"})
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Login Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client):
        await client.post("/auth/signup", json=_signup_body(email="login@example.com"))

        response = await client.post(
            "/auth/login",
            json={"email": "login@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 200
        data = response.json()
        assert "token" in data
        assert data["token_type"] == "bearer"

    async def test_login_wrong_password(self, client):
        await client.post("/auth/signup", json=_signup_body(email="wrongpw@example.com"))

        response = await client.post(
            "/auth/login",
            json={"email": "wrongpw@example.com", "password": "WrongPassword!"},
        )
        assert response.status_code == 401
        assert "Invalid email or password" in response.json()["detail"]

    async def test_login_nonexistent_email(self, client):
        """The error must match the wrong-password case exactly."""
        response = await client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "SomePassword123!"},
        )
        assert response.status_code == 401
        assert "Invalid email or password" in response.json()["detail"]

    async def test_login_token_works_for_protected_endpoint(self, client):
        await client.post("/auth/signup", json=_signup_body(email="protected@example.com"))
        login_response = await client.post(
            "/auth/login",
            json={"email": "protected@example.com", "password": "StrongPass99!"},
        )
        token = login_response.json()["token"]

        response = await client.get(
            "/transactions",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200
        assert response.json() == []


# ---------------------------------------------------------------------------
# Token Validation Tests
# ---------------------------------------------------------------------------

class TestTokenValidation:
    """Tests for JWT token validation on protected endpoints."""

    async def test_no_token_returns_401(self, client):
        response = await client.get("/transactions")
        assert response.status_code == 401

    async def test_invalid_token_returns_401(self, client):
        response = await client.get(
            "/transactions",
            headers={"Authorization": "Bearer totally.fake.token"},
        )
        assert response.status_code == 401

    async def test_malformed_auth_header_returns_401(self, client):
        response = await client.get(
            "/transactions",
            headers={"Authorization": "NotBearer sometoken"},
        )
        assert response.status_code == 401


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_request_id_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
