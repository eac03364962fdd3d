"""
Booking endpoints: one seat per person, taken first come first served.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.api.deps import commit_seat_change, get_current_caller
from theatre.core.policies import Caller
from theatre.db.session import get_db
from theatre.schemas.booking import (
    BookingCreate,
    BookingReassign,
    BookingReleaseResponse,
    BookingResponse,
)
from theatre.services.booking_service import (
    get_booking_details,
    get_my_booking,
    list_bookings,
    reassign_seat,
    release_seat,
    reserve_seat,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve a seat for the caller.

    The seat flag is flipped with a conditional update, so of two people
    racing for the same seat exactly one wins; the other gets a 409 with
    code ``seat_taken``. A caller who already holds a seat gets
    ``already_booked``.
    """
    booking = await reserve_seat(db, caller, booking_data.seat_id)
    details = await get_booking_details(db, caller, booking.id)
    await commit_seat_change(db)
    return details


@router.get("", response_model=list[BookingResponse])
async def list_all_bookings(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Admins see every booking, everyone else only their own."""
    return await list_bookings(db, caller)


@router.get("/me", response_model=Optional[BookingResponse])
async def my_booking(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await get_my_booking(db, caller)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def reassign_booking(
    booking_id: int,
    reassign_data: BookingReassign,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Move a booking to another free seat (admin only)."""
    booking = await reassign_seat(db, caller, booking_id, reassign_data.seat_id)
    details = await get_booking_details(db, caller, booking.id)
    await commit_seat_change(db)
    return details


@router.delete("/{booking_id}", response_model=BookingReleaseResponse)
async def release_booking(
    booking_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete a booking and free its seat (admin only)."""
    await release_seat(db, caller, booking_id)
    await commit_seat_change(db)
    return BookingReleaseResponse(message="Booking released", booking_id=booking_id)
