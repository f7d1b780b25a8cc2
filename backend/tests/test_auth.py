"""
Tests for authentication

Tests cover:
- Sign up creates a profile; duplicate e-mail addresses are rejected
- Sign in with e-mail and password returns a bearer token
- Wrong credentials and inactive accounts are refused
- Current user can be read and updated
- Sign out
- Rate limiting of sign up and sign in; idle addresses are cleaned up
- Password hashing and token decoding
"""
import pytest
from datetime import timedelta
from types import SimpleNamespace

from sqlalchemy import select

from app.core import rate_limit
from app.core.rate_limit import SlidingWindowLimiter
from app.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.models import Profile


# Password of the test_user fixture
TEST_PASSWORD = "TestPassword123"


class TestPasswordHashing:
    """Tests for bcrypt hashing."""

    def test_hash_and_verify(self):
        hashed = get_password_hash("Geheim123!")

        assert hashed != "Geheim123!"
        assert verify_password("Geheim123!", hashed)
        assert not verify_password("geheim123!", hashed)

    def test_malformed_hash(self):
        assert not verify_password("Geheim123!", "geen-bcrypt-hash")


class TestTokens:
    """Tests for access tokens."""

    def test_roundtrip_claims(self):
        token = create_access_token({"sub": "abc", "email": "a@example.com"})

        payload = decode_token(token)

        assert payload["sub"] == "abc"
        assert "exp" in payload

    def test_expired_token(self):
        token = create_access_token({"sub": "abc"}, expires_delta=timedelta(minutes=-1))

        assert decode_token(token) is None

    def test_garbage_token(self):
        assert decode_token("niet.een.token") is None


class TestRegister:
    """Tests for sign up."""

    @pytest.mark.asyncio
    async def test_register(self, async_client, db_session):
        response = await async_client.post("/api/v1/auth/register", json={
            "email": "Nieuw@Example.com",
            "password": "Wachtwoord123",
            "full_name": " Nieuwe Boekhouder ",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Account aangemaakt. U kunt nu inloggen."

        result = await db_session.execute(select(Profile).where(Profile.email == "nieuw@example.com"))
        profile = result.scalar_one()
        assert str(profile.id) == data["user_id"]
        assert profile.full_name == "Nieuwe Boekhouder"
        assert profile.hashed_password != "Wachtwoord123"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, async_client, test_user):
        response = await async_client.post("/api/v1/auth/register", json={
            "email": test_user.email,
            "password": "Wachtwoord123",
        })

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "EMAIL_EXISTS"

    @pytest.mark.asyncio
    async def test_short_password(self, async_client):
        response = await async_client.post("/api/v1/auth/register", json={
            "email": "kort@example.com",
            "password": "kort",
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_password_longer_than_72_bytes(self, async_client, db_session):
        response = await async_client.post("/api/v1/auth/register", json={
            "email": "lang@example.com",
            "password": "a" * 100,
        })

        assert response.status_code == 422
        assert "72 bytes" in response.text
        profile = await db_session.execute(select(Profile).where(Profile.email == "lang@example.com"))
        assert profile.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_multibyte_password_counts_bytes(self, async_client):
        """37 characters of two bytes each exceed the bcrypt limit."""
        response = await async_client.post("/api/v1/auth/register", json={
            "email": "accent@example.com",
            "password": "é" * 37,
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_password_of_72_bytes(self, async_client):
        response = await async_client.post("/api/v1/auth/register", json={
            "email": "precies@example.com",
            "password": "a" * 72,
        })

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_rate_limited(self, async_client):
        """The sixth sign up within a minute is refused."""
        for i in range(5):
            response = await async_client.post("/api/v1/auth/register", json={
                "email": f"gebruiker{i}@example.com",
                "password": "Wachtwoord123",
            })
            assert response.status_code == 201

        response = await async_client.post("/api/v1/auth/register", json={
            "email": "gebruiker5@example.com",
            "password": "Wachtwoord123",
        })

        assert response.status_code == 429
        assert response.json()["detail"]["code"] == "RATE_LIMITED"
        assert response.headers["Retry-After"] == "60"


class TestLogin:
    """Tests for sign in."""

    @pytest.mark.asyncio
    async def test_login(self, async_client, test_user):
        response = await async_client.post("/api/v1/auth/token", data={
            "username": "Boekhouder@Example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert decode_token(data["access_token"])["sub"] == str(test_user.id)

    @pytest.mark.asyncio
    async def test_wrong_password(self, async_client, test_user):
        response = await async_client.post("/api/v1/auth/token", data={
            "username": test_user.email,
            "password": "VerkeerdWachtwoord",
        })

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_overlong_password(self, async_client, test_user):
        response = await async_client.post("/api/v1/auth/token", data={
            "username": test_user.email,
            "password": "a" * 100,
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_email(self, async_client):
        response = await async_client.post("/api/v1/auth/token", data={
            "username": "niemand@example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_inactive_account(self, async_client, db_session, test_user):
        test_user.is_active = False
        await db_session.commit()

        response = await async_client.post("/api/v1/auth/token", data={
            "username": test_user.email,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INACTIVE_USER"

    @pytest.mark.asyncio
    async def test_rate_limited(self, async_client, test_user):
        for _ in range(10):
            response = await async_client.post("/api/v1/auth/token", data={
                "username": test_user.email,
                "password": "VerkeerdWachtwoord",
            })
            assert response.status_code == 401

        response = await async_client.post("/api/v1/auth/token", data={
            "username": test_user.email,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 429


class TestCurrentUser:
    """Tests for /auth/me and sign out."""

    @pytest.mark.asyncio
    async def test_me(self, async_client, auth_headers, test_user):
        response = await async_client.get("/api/v1/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "boekhouder@example.com"
        assert data["full_name"] == "Test Boekhouder"
        assert data["is_active"] is True
        assert "hashed_password" not in data

    @pytest.mark.asyncio
    async def test_me_requires_token(self, async_client):
        response = await async_client.get("/api/v1/auth/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, async_client):
        response = await async_client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer niet-geldig"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    @pytest.mark.asyncio
    async def test_update_me(self, async_client, auth_headers):
        response = await async_client.patch("/api/v1/auth/me", headers=auth_headers, json={
            "full_name": "Jan de Boekhouder",
            "phone": " 0612345678 ",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Jan de Boekhouder"
        assert data["phone"] == "0612345678"
        assert data["company_name"] == "Boekhoudkantoor Test"

    @pytest.mark.asyncio
    async def test_logout(self, async_client, auth_headers):
        response = await async_client.post("/api/v1/auth/logout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "U bent uitgelogd."


class TestRateLimiter:
    """Tests for the in-memory sliding window."""

    @pytest.fixture
    def clock(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(rate_limit, "time", SimpleNamespace(monotonic=lambda: now[0]))
        return now

    def test_window_expires(self, clock):
        limiter = SlidingWindowLimiter()
        assert limiter.hit("login", "10.0.0.1", max_requests=2, window_seconds=60) == (False, 1)
        assert limiter.hit("login", "10.0.0.1", max_requests=2, window_seconds=60) == (False, 0)

        assert limiter.hit("login", "10.0.0.1", max_requests=2, window_seconds=60) == (True, 0)

        clock[0] += 61
        assert limiter.hit("login", "10.0.0.1", max_requests=2, window_seconds=60) == (False, 1)

    def test_idle_ips_are_removed(self, clock):
        """Addresses that stopped sending requests do not stay in memory."""
        limiter = SlidingWindowLimiter()
        for i in range(100):
            limiter.hit("register", f"10.0.0.{i}", max_requests=5, window_seconds=60)
        assert len(limiter._hits) == 100

        clock[0] += 61
        limiter.hit("register", "10.0.1.1", max_requests=5, window_seconds=60)

        assert list(limiter._hits) == [("register", "10.0.1.1")]

    def test_active_ips_are_kept(self, clock):
        limiter = SlidingWindowLimiter()
        limiter.hit("login", "10.0.0.1", max_requests=10, window_seconds=60)
        clock[0] += 30
        limiter.hit("login", "10.0.0.2", max_requests=10, window_seconds=60)

        clock[0] += 40
        limiter.hit("login", "10.0.0.3", max_requests=10, window_seconds=60)

        assert set(limiter._hits) == {("login", "10.0.0.2"), ("login", "10.0.0.3")}
