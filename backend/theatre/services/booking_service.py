"""
Booking service: the only write path for bookings.

CONSISTENCY MODEL
=================

Invariant:
  seat.is_booked is true  <=>  a booking row references the seat

Every booking change is one unit of work that touches both tables inside a
savepoint of the request transaction:

  reserve_seat   occupy seat (conditional update) + insert booking
  release_seat   delete booking + free seat
  reassign_seat  occupy new seat + repoint booking + free old seat

If any step fails the savepoint rolls back, so a booking row is never
committed with a stale seat flag.

RACE RESOLUTION
===============

Two callers booking the same seat:
  Both may pass the policy pre-check. The conditional update
      UPDATE seats SET is_booked = true WHERE id = :seat AND is_booked = false
  takes the row lock; the second transaction waits, re-evaluates the WHERE
  clause after the first commits and updates zero rows -> ConflictError
  (seat_taken).

One caller booking two seats at once:
  Both seat updates succeed, but UNIQUE(bookings.user_id) lets only one insert
  commit -> IntegrityError -> ConflictError (already_booked).

There is no retry: replaying a conflict without caller action reproduces it.
"""

import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import (
    ALREADY_BOOKED,
    SEAT_TAKEN,
    ConflictError,
    DomainError,
    NotFoundError,
)
from theatre.core.logging import get_logger
from theatre.core.metrics import booking_latency, record_admin_booking_change, record_booking_attempt
from theatre.core.policies import BOOKINGS, DELETE, INSERT, UPDATE, Caller, authorize, filter_visible
from theatre.models.booking import Booking, UQ_BOOKING_USER
from theatre.models.seat import Seat
from theatre.models.user import User
from theatre.services.seat_sync import free_seat, occupy_seat

logger = get_logger(__name__)


def _conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    """
    Map a unique violation on bookings to the conflict the caller caused.

    PostgreSQL names the constraint, SQLite names the column; both mention
    ``user_id`` only for the one-booking-per-user constraint.
    """
    message = str(exc.orig)
    if UQ_BOOKING_USER in message or "bookings.user_id" in message:
        return ConflictError("You already have a booking", code=ALREADY_BOOKED)
    return ConflictError("Seat is already taken", code=SEAT_TAKEN)


async def _get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def _ensure_seat_exists(db: AsyncSession, seat_id: int) -> None:
    result = await db.execute(select(Seat.id).where(Seat.id == seat_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError(f"Seat {seat_id} not found")


async def reserve_seat(db: AsyncSession, caller: Caller, seat_id: int) -> Booking:
    """
    Self-service booking of a single seat for the caller.

    Raises ConflictError with code ``seat_taken`` or ``already_booked`` when
    the seat or the caller is already spoken for.
    """
    started = time.perf_counter()
    draft = Booking(user_id=caller.user_id, seat_id=seat_id)

    try:
        await authorize(db, caller, BOOKINGS, INSERT, draft)

        try:
            async with db.begin_nested():
                if not await occupy_seat(db, seat_id):
                    raise ConflictError("Seat is already taken", code=SEAT_TAKEN)
                db.add(draft)
                await db.flush()
        except IntegrityError as e:
            raise _conflict_from_integrity_error(e) from e

    except ConflictError as e:
        record_booking_attempt(e.code)
        logger.info("booking_conflict", user_id=caller.user_id, seat_id=seat_id, reason=e.code)
        raise
    except DomainError:
        record_booking_attempt("denied")
        raise
    except Exception:
        record_booking_attempt("error")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - started)

    await db.refresh(draft)
    record_booking_attempt("success")
    logger.info("booking_created", booking_id=draft.id, user_id=caller.user_id, seat_id=seat_id)
    return draft


async def release_seat(db: AsyncSession, caller: Caller, booking_id: int) -> None:
    """Delete a booking and free its seat. Admin only."""
    await authorize(db, caller, BOOKINGS, DELETE)
    booking = await _get_booking(db, booking_id)
    seat_id, user_id = booking.seat_id, booking.user_id

    async with db.begin_nested():
        await db.delete(booking)
        await db.flush()
        await free_seat(db, seat_id)

    record_admin_booking_change("release")
    logger.info(
        "booking_released",
        booking_id=booking_id,
        user_id=user_id,
        seat_id=seat_id,
        admin_id=caller.user_id,
    )


async def reassign_seat(
    db: AsyncSession,
    caller: Caller,
    booking_id: int,
    new_seat_id: int,
) -> Booking:
    """
    Move a booking to another seat. Admin only.

    Old and new seat flags flip in the same savepoint as the booking update,
    so no other transaction can observe both seats booked or both free.
    """
    await authorize(db, caller, BOOKINGS, UPDATE)
    booking = await _get_booking(db, booking_id)

    if booking.seat_id == new_seat_id:
        return booking

    await _ensure_seat_exists(db, new_seat_id)
    old_seat_id = booking.seat_id

    try:
        async with db.begin_nested():
            if not await occupy_seat(db, new_seat_id):
                raise ConflictError("Seat is already taken", code=SEAT_TAKEN)
            booking.seat_id = new_seat_id
            await db.flush()
            await free_seat(db, old_seat_id)
    except IntegrityError as e:
        raise _conflict_from_integrity_error(e) from e

    await db.refresh(booking)
    record_admin_booking_change("reassign")
    logger.info(
        "booking_reassigned",
        booking_id=booking.id,
        from_seat_id=old_seat_id,
        to_seat_id=new_seat_id,
        admin_id=caller.user_id,
    )
    return booking


async def release_user_booking(db: AsyncSession, caller: Caller, user_id: int) -> Optional[int]:
    """Release whatever booking ``user_id`` holds. Returns the freed seat id."""
    result = await db.execute(select(Booking.id, Booking.seat_id).where(Booking.user_id == user_id))
    row = result.one_or_none()
    if row is None:
        return None
    await release_seat(db, caller, row.id)
    return row.seat_id


def _details_query():
    return (
        select(Booking, Seat, User.email)
        .join(Seat, Seat.id == Booking.seat_id)
        .join(User, User.id == Booking.user_id)
    )


def _to_details(booking: Booking, seat: Seat, email: str) -> dict:
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "user_email": email,
        "seat_id": seat.id,
        "row_num": seat.row_num,
        "col_num": seat.col_num,
        "seat_label": seat.label,
        "created_at": booking.created_at,
    }


async def get_booking_details(db: AsyncSession, caller: Caller, booking_id: int) -> dict:
    result = await db.execute(_details_query().where(Booking.id == booking_id))
    row = result.one_or_none()
    if row is None or not filter_visible(caller, BOOKINGS, [row[0]]):
        raise NotFoundError(f"Booking {booking_id} not found")
    return _to_details(*row)


async def get_my_booking(db: AsyncSession, caller: Caller) -> Optional[dict]:
    result = await db.execute(_details_query().where(Booking.user_id == caller.user_id))
    row = result.one_or_none()
    if row is None:
        return None
    return _to_details(*row)


async def list_bookings(db: AsyncSession, caller: Caller) -> list[dict]:
    """Admins see every booking; everyone else sees only their own."""
    query = _details_query().order_by(Seat.row_num, Seat.col_num)
    if not caller.is_admin:
        query = query.where(Booking.user_id == caller.user_id)

    result = await db.execute(query)
    rows = [row for row in result.all() if filter_visible(caller, BOOKINGS, [row[0]])]
    return [_to_details(*row) for row in rows]
