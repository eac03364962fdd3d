"""
Seat availability flag maintenance.

`seats.is_booked` mirrors the existence of a booking row. These helpers are
the only code that flips it as part of a booking change, and they always run
inside the caller's transaction so the booking row and the flag commit or
roll back together.

The updates skip ORM session synchronisation; reads that need the flag go
back to the database (see the seat map query).
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.models.seat import Seat


async def occupy_seat(db: AsyncSession, seat_id: int) -> bool:
    """
    Mark a seat booked if, and only if, it is currently free.

    The WHERE clause is the atomic availability check: under concurrent
    attempts only one transaction sees a row updated, the others get False.
    """
    result = await db.execute(
        update(Seat)
        .where(Seat.id == seat_id, Seat.is_booked.is_(False))
        .values(is_booked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def free_seat(db: AsyncSession, seat_id: int) -> None:
    await db.execute(
        update(Seat)
        .where(Seat.id == seat_id)
        .values(is_booked=False)
        .execution_options(synchronize_session=False)
    )
