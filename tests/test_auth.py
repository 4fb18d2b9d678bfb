"""Authentication endpoint tests.

Covers password login, token refresh, /me through the real Bearer
dependency, emailed-link redemption, the password strength check, and the
per-email login rate limit.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt

from src.app.api.v1 import auth as auth_api
from src.app.config import get_settings
from src.app.core.redis import RateLimiter
from src.app.core.security import (
    _encode,
    create_action_token,
    create_refresh_token,
    hash_password,
    verify_password,
)

PASSWORD = "Str0ng!Passw0rd"


class FakeRedis:
    def __init__(self):
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -2)

    async def delete(self, key):
        self.values.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def seller(profile_repo):
    profile = profile_repo.add("owner@acmehvac.com", role="viewer", first_name="Dana")
    profile_repo.passwords[profile.id] = hash_password(PASSWORD)
    return profile


def _make_app(profile_repo, limiter=None) -> FastAPI:
    app = FastAPI()
    app.include_router(auth_api.router, prefix="/api/v1")
    app.state.profile_repository = profile_repo
    app.state.login_rate_limiter = limiter
    return app


@pytest_asyncio.fixture
async def client(profile_repo):
    app = _make_app(profile_repo)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ── Login ─────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_login_valid_credentials(client, seller):
    """Login returns a token pair carrying the profile's id and role."""
    response = await client.post(
        "/api/v1/auth/login", json={"email": "Owner@AcmeHVAC.com", "password": PASSWORD}
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["token_type"] == "bearer"

    settings = get_settings()
    payload = jwt.decode(
        data["access_token"], settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
    )
    assert payload["sub"] == seller.id
    assert payload["role"] == "viewer"
    assert payload["type"] == "access"


@pytest.mark.asyncio
async def test_login_wrong_password(client, seller):
    response = await client.post(
        "/api/v1/auth/login", json={"email": seller.email, "password": "nope"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "ghost@acmehvac.com", "password": PASSWORD}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_without_password_set(client, profile_repo):
    """A profile that never set a password cannot log in with one."""
    profile_repo.add("invited@acmehvac.com", role="investor")
    response = await client.post(
        "/api/v1/auth/login", json={"email": "invited@acmehvac.com", "password": PASSWORD}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_rate_limited(profile_repo, seller):
    """The fourth attempt inside the window is refused with Retry-After."""
    limiter = RateLimiter(FakeRedis(), "login", max_attempts=3, window_seconds=900)
    app = _make_app(profile_repo, limiter)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        for _ in range(3):
            response = await ac.post(
                "/api/v1/auth/login", json={"email": seller.email, "password": "wrong"}
            )
            assert response.status_code == 401
        blocked = await ac.post(
            "/api/v1/auth/login", json={"email": seller.email, "password": PASSWORD}
        )
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == "900"


@pytest.mark.asyncio
async def test_successful_login_resets_counter(profile_repo, seller):
    redis = FakeRedis()
    limiter = RateLimiter(redis, "login", max_attempts=3, window_seconds=900)
    app = _make_app(profile_repo, limiter)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post("/api/v1/auth/login", json={"email": seller.email, "password": "wrong"})
        ok = await ac.post("/api/v1/auth/login", json={"email": seller.email, "password": PASSWORD})
    assert ok.status_code == 200
    assert redis.values == {}


# ── Tokens ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_refresh_and_me(client, seller):
    """A refresh token yields a new pair whose access token opens /me."""
    refresh = create_refresh_token({"sub": seller.id})
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 200
    access = response.json()["access_token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
    assert me.status_code == 200
    assert me.json()["email"] == seller.email


@pytest.mark.asyncio
async def test_access_token_is_not_a_refresh_token(client, seller):
    login = await client.post(
        "/api/v1/auth/login", json={"email": seller.email, "password": PASSWORD}
    )
    response = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": login.json()["access_token"]}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_bearer(client):
    missing = await client.get("/api/v1/auth/me")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Missing authorization header"

    wrong_scheme = await client.get("/api/v1/auth/me", headers={"Authorization": "Basic abc"})
    assert wrong_scheme.status_code == 401


@pytest.mark.asyncio
async def test_inactive_profile_is_refused(client, profile_repo, seller):
    profile_repo.profiles[seller.id] = seller.model_copy(update={"is_active": False})
    refresh = create_refresh_token({"sub": seller.id})
    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 401


# ── Emailed Links ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_invite_link_sets_password(client, profile_repo):
    """POST /api/v1/auth/verify type=invite stores the password, then login works."""
    invited = profile_repo.add("buyer@harborpartners.com", role="investor")
    token = create_action_token(invited.id, invited.email, "invite")

    response = await client.post(
        "/api/v1/auth/verify", json={"token": token, "type": "invite", "password": PASSWORD}
    )
    assert response.status_code == 200, response.text
    assert invited.id in profile_repo.passwords

    login = await client.post(
        "/api/v1/auth/login", json={"email": invited.email, "password": PASSWORD}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_invite_link_enforces_policy(client, profile_repo):
    invited = profile_repo.add("buyer@harborpartners.com", role="investor")
    token = create_action_token(invited.id, invited.email, "invite")

    no_password = await client.post("/api/v1/auth/verify", json={"token": token, "type": "invite"})
    assert no_password.status_code == 400

    weak = await client.post(
        "/api/v1/auth/verify", json={"token": token, "type": "invite", "password": "short"}
    )
    assert weak.status_code == 400
    assert "at least 8 characters" in weak.json()["detail"]


@pytest.mark.asyncio
async def test_magic_link_signs_in_without_password(client, profile_repo):
    profile = profile_repo.add("advisor@firstregional.com", role="partner")
    token = create_action_token(profile.id, profile.email, "magiclink")
    response = await client.post("/api/v1/auth/verify", json={"token": token, "type": "magiclink"})
    assert response.status_code == 200
    assert profile.id not in profile_repo.passwords


@pytest.mark.asyncio
async def test_link_type_must_match_token(client, profile_repo):
    profile = profile_repo.add("advisor@firstregional.com", role="partner")
    token = create_action_token(profile.id, profile.email, "magiclink")
    response = await client.post(
        "/api/v1/auth/verify", json={"token": token, "type": "recovery", "password": PASSWORD}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_link_cannot_be_replayed(client, profile_repo):
    """A redeemed magic link or invite is refused the second time."""
    profile = profile_repo.add("advisor@firstregional.com", role="partner")
    token = create_action_token(profile.id, profile.email, "magiclink")
    first = await client.post("/api/v1/auth/verify", json={"token": token, "type": "magiclink"})
    assert first.status_code == 200
    replay = await client.post("/api/v1/auth/verify", json={"token": token, "type": "magiclink"})
    assert replay.status_code == 401
    assert replay.json()["detail"] == "Link has already been used"

    invited = profile_repo.add("buyer@harborpartners.com", role="investor")
    invite = create_action_token(invited.id, invited.email, "invite")
    body = {"token": invite, "type": "invite", "password": PASSWORD}
    assert (await client.post("/api/v1/auth/verify", json=body)).status_code == 200
    body["password"] = "An0ther!Passw0rd"
    assert (await client.post("/api/v1/auth/verify", json=body)).status_code == 401
    assert verify_password(PASSWORD, profile_repo.passwords[invited.id])


@pytest.mark.asyncio
async def test_rejected_password_does_not_spend_link(client, profile_repo):
    invited = profile_repo.add("buyer@harborpartners.com", role="investor")
    token = create_action_token(invited.id, invited.email, "invite")
    weak = await client.post(
        "/api/v1/auth/verify", json={"token": token, "type": "invite", "password": "short"}
    )
    assert weak.status_code == 400
    assert not profile_repo.redeemed_links

    retry = await client.post(
        "/api/v1/auth/verify", json={"token": token, "type": "invite", "password": PASSWORD}
    )
    assert retry.status_code == 200


@pytest.mark.asyncio
async def test_link_without_jti_is_refused(client, profile_repo):
    profile = profile_repo.add("advisor@firstregional.com", role="partner")
    expire = datetime.now(timezone.utc) + timedelta(hours=1)
    token = _encode({"sub": profile.id, "email": profile.email}, "magiclink", expire)
    response = await client.post("/api/v1/auth/verify", json={"token": token, "type": "magiclink"})
    assert response.status_code == 401

# ── Password Strength ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_password_strength(client):
    strong = await client.post("/api/v1/auth/password-strength", json={"password": PASSWORD})
    assert strong.json() == {"strength": "strong", "errors": [], "is_valid": True}

    weak = await client.post("/api/v1/auth/password-strength", json={"password": "abc"})
    body = weak.json()
    assert body["strength"] == "weak"
    assert body["is_valid"] is False
    assert len(body["errors"]) == 4
