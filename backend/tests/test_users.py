"""
Tests for admin user management: listing, role changes and removal.
"""

import pytest
from httpx import AsyncClient

from conftest import USER_SECRET, seat_state


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, admin_headers, auth_headers, test_user, seat_ids):
    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)

    response = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert response.status_code == 200
    users = {u["email"]: u for u in response.json()}
    assert users["admin@example.com"]["roles"] == ["admin"]
    assert users["admin@example.com"]["seat_id"] is None
    assert users["test@example.com"]["roles"] == ["user"]
    assert users["test@example.com"]["seat_id"] == seat_ids[0]


@pytest.mark.asyncio
async def test_list_users_requires_admin(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/admin/users", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_promote_user(client: AsyncClient, admin_headers, auth_headers, test_user):
    response = await client.put(
        f"/api/v1/admin/users/{test_user.id}/role", json={"role": "admin"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json() == ["admin"]

    # The next request picks the new role up from the database
    me = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert me.json()["is_admin"] is True
    assert me.json()["roles"] == ["admin"]


@pytest.mark.asyncio
async def test_change_role_unknown_user(client: AsyncClient, admin_headers):
    response = await client.put("/api/v1/admin/users/999999/role", json={"role": "user"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_user_cannot_change_roles(client: AsyncClient, auth_headers, test_user):
    response = await client.put(
        f"/api/v1/admin/users/{test_user.id}/role", json={"role": "admin"}, headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_user_frees_seat(client: AsyncClient, session_factory, admin_headers, auth_headers, test_user, seat_ids):
    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[3]}, headers=auth_headers)

    response = await client.delete(f"/api/v1/admin/users/{test_user.id}", headers=admin_headers)
    assert response.status_code == 204

    assert await seat_state(session_factory) == (set(), set())

    login = await client.post("/api/v1/auth/login", json={"email": "test@example.com", "secret": USER_SECRET})
    assert login.status_code == 401

    # The old token no longer resolves to a caller
    me = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(client: AsyncClient, admin_headers, admin_user):
    response = await client.delete(f"/api/v1/admin/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_user_cannot_delete(client: AsyncClient, auth_headers, other_user):
    response = await client.delete(f"/api/v1/admin/users/{other_user.id}", headers=auth_headers)
    assert response.status_code == 403
