"""
Tests for authentication endpoints: allow-list login and caller identity.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import delete

from theatre.core.security import create_access_token
from theatre.models.user import AllowedUser

from conftest import ADMIN_SECRET, USER_SECRET


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, test_user):
    """Allow-listed user with the right secret receives a bearer token."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "secret": USER_SECRET,
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_normalizes_email(client: AsyncClient, test_user):
    response = await client.post("/api/v1/auth/login", json={
        "email": "  Test@Example.COM ",
        "secret": USER_SECRET,
    })
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_secret(client: AsyncClient, test_user):
    """Wrong secret returns 401 with the error body."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "secret": "wrong-secret",
    })
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or secret", "code": "unauthenticated"}


@pytest.mark.asyncio
async def test_login_not_allow_listed(client: AsyncClient, db_session, test_user):
    """An identity without an allow-list entry cannot log in."""
    await db_session.execute(delete(AllowedUser).where(AllowedUser.email == "test@example.com"))
    await db_session.commit()

    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "secret": USER_SECRET,
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_missing_fields(client: AsyncClient):
    """Schema errors are reported as 400, not 422."""
    response = await client.post("/api/v1/auth/login", json={"email": "test@example.com"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


@pytest.mark.asyncio
async def test_me_regular_user(client: AsyncClient, auth_headers, test_user):
    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == test_user.id
    assert data["email"] == "test@example.com"
    assert data["is_admin"] is False
    assert data["roles"] == ["user"]


@pytest.mark.asyncio
async def test_me_admin(client: AsyncClient, admin_headers):
    response = await client.get("/api/v1/auth/me", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["is_admin"] is True
    assert response.json()["roles"] == ["admin"]


@pytest.mark.asyncio
async def test_admin_login_then_me(client: AsyncClient, admin_user):
    login = await client.post("/api/v1/auth/login", json={
        "email": "admin@example.com",
        "secret": ADMIN_SECRET,
    })
    token = login.json()["access_token"]

    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["is_admin"] is True


@pytest.mark.asyncio
async def test_me_without_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_for_deleted_identity(client: AsyncClient):
    """A valid signature is not enough; the identity must still exist."""
    token = create_access_token(data={"sub": "4242"})
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_claim_in_token_is_ignored(client: AsyncClient, test_user):
    """Admin rights come from the role table, never from the token."""
    token = create_access_token(data={"sub": str(test_user.id), "is_admin": True, "role": "admin"})
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["is_admin"] is False


@pytest.mark.asyncio
async def test_login_secret_over_bcrypt_limit(client: AsyncClient, test_user):
    """An over-long secret is a 400, not a hashing failure."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test@example.com",
        "secret": "x" * 100,
    })
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"
