"""
Tests for authentication endpoints (signup and login).

These tests verify:
  - Successful signup creates a user and returns a JWT
  - Duplicate email signup is rejected (409 Conflict)
  - Successful login returns a valid JWT
  - Wrong password is rejected (401 Unauthorized)
  - Non-existent email is rejected with the same error (anti-enumeration)
  - Short passwords and invalid emails are rejected (422 Validation Error)
  - Card endpoints reject missing, forged and malformed tokens
"""


# ---------------------------------------------------------------------------
# Signup Tests
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_success(self, client):
        """A valid signup should return 201 with user_id, email, and token."""
        response = await client.post(
            "/auth/signup",
            json={"email": "newuser@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["token_type"] == "bearer"
        assert "token" in data
        assert "user_id" in data

    async def test_signup_duplicate_email(self, client):
        """Signing up with an already-registered email should return 409."""
        signup_data = {"email": "duplicate@example.com", "password": "StrongPass99!"}

        response1 = await client.post("/auth/signup", json=signup_data)
        assert response1.status_code == 201

        response2 = await client.post("/auth/signup", json=signup_data)
        assert response2.status_code == 409
        assert "already registered" in response2.json()["detail"]
        assert response2.json()["error_type"] == "duplicate_email"

    async def test_signup_short_password(self, client):
        """Passwords shorter than 8 characters should be rejected."""
        response = await client.post(
            "/auth/signup",
            json={"email": "short@example.com", "password": "short"},
        )
        assert response.status_code == 422

    async def test_signup_invalid_email(self, client):
        """Invalid email format should be rejected."""
        response = await client.post(
            "/auth/signup",
            json={"email": "not-an-email", "password": "StrongPass99!"},
        )
        assert response.status_code == 422

    async def test_signup_missing_fields(self, client):
        """Missing required fields should return 422."""
        response = await client.post(
            "/auth/signup",
            json={"email": "missing@example.com"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Login Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client):
        """Login with correct credentials should return a token."""
        await client.post(
            "/auth/signup",
            json={"email": "login@example.com", "password": "CorrectPass123!"},
        )

        response = await client.post(
            "/auth/login",
            json={"email": "login@example.com", "password": "CorrectPass123!"},
        )
        assert response.status_code == 200
        data = response.json()
        assert "token" in data
        assert data["token_type"] == "bearer"

    async def test_login_wrong_password(self, client):
        """Login with wrong password should return 401."""
        await client.post(
            "/auth/signup",
            json={"email": "wrongpw@example.com", "password": "CorrectPass123!"},
        )

        response = await client.post(
            "/auth/login",
            json={"email": "wrongpw@example.com", "password": "WrongPassword!"},
        )
        assert response.status_code == 401
        assert "Invalid email or password" in response.json()["detail"]

    async def test_login_nonexistent_email(self, client):
        """Login with an email that doesn't exist should return 401.

        Important: the error message must be identical to the wrong-password
        case to prevent user enumeration attacks.
        """
        response = await client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "SomePassword123!"},
        )
        assert response.status_code == 401
        assert "Invalid email or password" in response.json()["detail"]

    async def test_login_token_works_for_card_endpoints(self, client):
        """The token from login should grant access to the card vault."""
        await client.post(
            "/auth/signup",
            json={"email": "protected@example.com", "password": "ValidPass123!"},
        )
        login_response = await client.post(
            "/auth/login",
            json={"email": "protected@example.com", "password": "ValidPass123!"},
        )
        token = login_response.json()["token"]

        response = await client.get(
            "/cards",
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
        """Listing cards without a token should return 401."""
        response = await client.get("/cards")
        assert response.status_code == 401

    async def test_no_token_on_payment_returns_401(self, client):
        """Charging a card without a token should return 401."""
        response = await client.post(
            "/payments/card",
            json={"card_id": "00000000-0000-0000-0000-000000000000", "amount_cents": 100},
        )
        assert response.status_code == 401

    async def test_invalid_token_returns_401(self, client):
        """An invalid/forged token should return 401."""
        response = await client.get(
            "/cards",
            headers={"Authorization": "Bearer totally.fake.token"},
        )
        assert response.status_code == 401

    async def test_malformed_auth_header_returns_401(self, client):
        """A malformed Authorization header should return 401."""
        response = await client.get(
            "/cards",
            headers={"Authorization": "NotBearer sometoken"},
        )
        assert response.status_code == 401
