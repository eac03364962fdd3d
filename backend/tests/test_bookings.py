"""
Tests for booking endpoints: self-service reservation, admin release and
reassignment, and the seat flag staying in step with the booking rows.
"""

import pytest
from httpx import AsyncClient

from theatre.models.seat import Seat

from conftest import seat_state


async def _seat_flags(client: AsyncClient, headers: dict) -> dict:
    response = await client.get("/api/v1/seats", headers=headers)
    assert response.status_code == 200
    return {seat["id"]: seat["is_booked"] for seat in response.json()["seats"]}


@pytest.mark.asyncio
async def test_book_seat(client: AsyncClient, auth_headers, test_user, seat_ids):
    """Successful booking returns the seat position and flips the flag."""
    response = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == test_user.id
    assert data["user_email"] == "test@example.com"
    assert data["seat_id"] == seat_ids[0]
    assert (data["row_num"], data["col_num"]) == (1, 1)
    assert data["seat_label"] == "A1"

    flags = await _seat_flags(client, auth_headers)
    assert flags[seat_ids[0]] is True
    assert sum(flags.values()) == 1


@pytest.mark.asyncio
async def test_book_seat_unauthenticated(client: AsyncClient, seat_ids):
    response = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_second_booking_same_user(client: AsyncClient, auth_headers, seat_ids):
    """One seat per person: a second booking is rejected as already_booked."""
    first = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[1]}, headers=auth_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "already_booked"

    flags = await _seat_flags(client, auth_headers)
    assert flags[seat_ids[1]] is False


@pytest.mark.asyncio
async def test_seat_taken_by_someone_else(client: AsyncClient, auth_headers, other_headers, seat_ids):
    first = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[2]}, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[2]}, headers=other_headers)
    assert second.status_code == 409
    assert second.json() == {"error": "Seat is already taken", "code": "seat_taken"}


@pytest.mark.asyncio
async def test_book_unknown_seat(client: AsyncClient, auth_headers, seat_ids):
    response = await client.post("/api/v1/bookings", json={"seat_id": 999999}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_book_invalid_seat_id(client: AsyncClient, auth_headers, seat_ids):
    response = await client.post("/api/v1/bookings", json={"seat_id": 0}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


@pytest.mark.asyncio
async def test_book_frozen_seat(client: AsyncClient, db_session, auth_headers, seat_ids):
    """A seat an admin froze is unavailable even without a booking."""
    seat = await db_session.get(Seat, seat_ids[5])
    seat.is_booked = True
    await db_session.commit()

    response = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[5]}, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "seat_taken"


@pytest.mark.asyncio
async def test_my_booking(client: AsyncClient, auth_headers, seat_ids):
    empty = await client.get("/api/v1/bookings/me", headers=auth_headers)
    assert empty.status_code == 200
    assert empty.json() is None

    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[3]}, headers=auth_headers)

    response = await client.get("/api/v1/bookings/me", headers=auth_headers)
    assert response.json()["seat_id"] == seat_ids[3]


@pytest.mark.asyncio
async def test_list_bookings_visibility(client: AsyncClient, auth_headers, other_headers, admin_headers, seat_ids):
    """Users see only their own booking; admins see all of them."""
    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)
    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[1]}, headers=other_headers)

    own = await client.get("/api/v1/bookings", headers=auth_headers)
    assert [b["user_email"] for b in own.json()] == ["test@example.com"]

    everything = await client.get("/api/v1/bookings", headers=admin_headers)
    assert {b["user_email"] for b in everything.json()} == {"test@example.com", "other@example.com"}


@pytest.mark.asyncio
async def test_admin_releases_booking(client: AsyncClient, session_factory, auth_headers, admin_headers, seat_ids):
    booked = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[4]}, headers=auth_headers)
    booking_id = booked.json()["id"]

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["booking_id"] == booking_id

    flags = await _seat_flags(client, auth_headers)
    assert flags[seat_ids[4]] is False
    assert await seat_state(session_factory) == (set(), set())

    # The seat and the person are both free again
    again = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[4]}, headers=auth_headers)
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_user_cannot_release(client: AsyncClient, auth_headers, seat_ids):
    booked = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)

    response = await client.delete(f"/api/v1/bookings/{booked.json()['id']}", headers=auth_headers)
    assert response.status_code == 403

    flags = await _seat_flags(client, auth_headers)
    assert flags[seat_ids[0]] is True


@pytest.mark.asyncio
async def test_release_unknown_booking(client: AsyncClient, admin_headers, seat_ids):
    response = await client.delete("/api/v1/bookings/999999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_reassigns_booking(client: AsyncClient, session_factory, auth_headers, admin_headers, seat_ids):
    booked = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)
    booking_id = booked.json()["id"]

    response = await client.patch(
        f"/api/v1/bookings/{booking_id}", json={"seat_id": seat_ids[7]}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["seat_id"] == seat_ids[7]
    assert response.json()["seat_label"] == "D2"

    assert await seat_state(session_factory) == ({seat_ids[7]}, {seat_ids[7]})


@pytest.mark.asyncio
async def test_reassign_to_taken_seat(
    client: AsyncClient, session_factory, auth_headers, other_headers, admin_headers, seat_ids
):
    """A failed reassignment leaves both bookings and both flags unchanged."""
    mine = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)
    await client.post("/api/v1/bookings", json={"seat_id": seat_ids[1]}, headers=other_headers)

    response = await client.patch(
        f"/api/v1/bookings/{mine.json()['id']}", json={"seat_id": seat_ids[1]}, headers=admin_headers
    )
    assert response.status_code == 409
    assert response.json()["code"] == "seat_taken"

    assert await seat_state(session_factory) == ({seat_ids[0], seat_ids[1]}, {seat_ids[0], seat_ids[1]})


@pytest.mark.asyncio
async def test_reassign_to_same_seat_is_noop(client: AsyncClient, session_factory, auth_headers, admin_headers, seat_ids):
    booked = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[2]}, headers=auth_headers)

    response = await client.patch(
        f"/api/v1/bookings/{booked.json()['id']}", json={"seat_id": seat_ids[2]}, headers=admin_headers
    )
    assert response.status_code == 200
    assert await seat_state(session_factory) == ({seat_ids[2]}, {seat_ids[2]})


@pytest.mark.asyncio
async def test_user_cannot_reassign(client: AsyncClient, auth_headers, seat_ids):
    booked = await client.post("/api/v1/bookings", json={"seat_id": seat_ids[0]}, headers=auth_headers)

    response = await client.patch(
        f"/api/v1/bookings/{booked.json()['id']}", json={"seat_id": seat_ids[1]}, headers=auth_headers
    )
    assert response.status_code == 403
