"""
Seat layout management: the active layout, seat grid regeneration, the seat
map read model and the admin freeze override.

REGENERATION
============

When the venue geometry changes the seat grid is rebuilt in place:

  1. delete seats of the layout that lie outside the new grid, are not
     booked and are not referenced by any booking
  2. insert every (row, col) cell of the new grid that does not exist yet

Booked seats are never touched, so a regeneration running next to a booking
attempt cannot pull a seat out from under it: the delete is scoped to
`is_booked = false`, and the booking's conditional update holds the row lock
until it commits. Free seats inside the grid keep their identity.
"""

from typing import Optional

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import SEAT_HAS_BOOKING, ConflictError, NotFoundError, ValidationError
from theatre.core.logging import get_logger
from theatre.core.metrics import seat_regenerations
from theatre.core.policies import READ, SEAT_LAYOUT, SEATS, UPDATE, Caller, authorize
from theatre.models.booking import Booking
from theatre.models.seat import Seat, SeatLayout

logger = get_logger(__name__)


async def get_active_layout(db: AsyncSession) -> SeatLayout:
    result = await db.execute(select(SeatLayout).where(SeatLayout.is_active.is_(True)))
    layout = result.scalar_one_or_none()
    if not layout:
        raise NotFoundError("No active seat layout")
    return layout


async def get_layout(db: AsyncSession, layout_id: int) -> SeatLayout:
    result = await db.execute(select(SeatLayout).where(SeatLayout.id == layout_id))
    layout = result.scalar_one_or_none()
    if not layout:
        raise NotFoundError(f"Seat layout {layout_id} not found")
    return layout


async def create_layout(
    db: AsyncSession,
    name: str,
    total_rows: int,
    total_columns: int,
    activate: bool = True,
) -> SeatLayout:
    """Create a layout, optionally make it the active one, and generate its seats."""
    _validate_geometry(total_rows, total_columns)

    if activate:
        await db.execute(
            update(SeatLayout).where(SeatLayout.is_active.is_(True)).values(is_active=False)
        )

    layout = SeatLayout(
        name=name,
        total_rows=total_rows,
        total_columns=total_columns,
        is_active=activate,
    )
    db.add(layout)
    await db.flush()
    await regenerate(db, layout.id)
    await db.refresh(layout)

    logger.info("layout_created", layout_id=layout.id, rows=total_rows, columns=total_columns)
    return layout


def _validate_geometry(total_rows: int, total_columns: int) -> None:
    if total_rows < 1 or total_columns < 1:
        raise ValidationError("Layout needs at least one row and one column")


async def regenerate(db: AsyncSession, layout_id: int) -> dict:
    """
    Rebuild the seat grid of a layout from its current geometry.

    Idempotent: running it twice on the same geometry changes nothing.
    Returns counts of removed, added and out-of-grid booked seats.
    """
    layout = await get_layout(db, layout_id)
    rows, columns = layout.total_rows, layout.total_columns

    removed = await db.execute(
        delete(Seat)
        .where(
            Seat.seat_layout_id == layout_id,
            Seat.is_booked.is_(False),
            or_(Seat.row_num > rows, Seat.col_num > columns),
            ~exists().where(Booking.seat_id == Seat.id),
        )
        .execution_options(synchronize_session=False)
    )

    result = await db.execute(
        select(Seat.row_num, Seat.col_num).where(Seat.seat_layout_id == layout_id)
    )
    existing = {(r, c) for r, c in result.all()}

    new_seats = [
        Seat(seat_layout_id=layout_id, row_num=r, col_num=c, is_booked=False)
        for r in range(1, rows + 1)
        for c in range(1, columns + 1)
        if (r, c) not in existing
    ]
    db.add_all(new_seats)
    await db.flush()

    # Booked seats survive a shrink and stay outside the grid
    outside = await db.execute(
        select(func.count()).select_from(Seat).where(
            Seat.seat_layout_id == layout_id,
            or_(Seat.row_num > rows, Seat.col_num > columns),
        )
    )
    kept_outside = outside.scalar()

    seat_regenerations.inc()
    logger.info(
        "seats_regenerated",
        layout_id=layout_id,
        rows=rows,
        columns=columns,
        removed=removed.rowcount,
        added=len(new_seats),
        kept_outside=kept_outside,
    )
    return {
        "removed": removed.rowcount,
        "added": len(new_seats),
        "kept_outside_grid": kept_outside,
    }


async def update_layout(
    db: AsyncSession,
    caller: Caller,
    layout_id: int,
    total_rows: int,
    total_columns: int,
    name: Optional[str] = None,
) -> SeatLayout:
    """Change the venue geometry (admin only) and regenerate the grid."""
    await authorize(db, caller, SEAT_LAYOUT, UPDATE)
    _validate_geometry(total_rows, total_columns)
    layout = await get_layout(db, layout_id)

    layout.total_rows = total_rows
    layout.total_columns = total_columns
    if name:
        layout.name = name
    await db.flush()

    await regenerate(db, layout_id)
    await db.refresh(layout)
    logger.info("layout_updated", layout_id=layout_id, rows=total_rows, columns=total_columns)
    return layout


async def regenerate_layout(db: AsyncSession, caller: Caller, layout_id: int) -> dict:
    await authorize(db, caller, SEATS, UPDATE)
    return await regenerate(db, layout_id)


async def get_seat_map(db: AsyncSession, caller: Caller) -> dict:
    """The active layout and its seats ordered by row, then column."""
    await authorize(db, caller, SEAT_LAYOUT, READ)
    layout = await get_active_layout(db)

    result = await db.execute(
        select(Seat)
        .where(Seat.seat_layout_id == layout.id)
        .order_by(Seat.row_num, Seat.col_num)
        .execution_options(populate_existing=True)
    )
    seats = result.scalars().all()

    return {
        "layout": {
            "id": layout.id,
            "name": layout.name,
            "total_rows": layout.total_rows,
            "total_columns": layout.total_columns,
        },
        "seats": [
            {
                "id": seat.id,
                "row_num": seat.row_num,
                "col_num": seat.col_num,
                "label": seat.label,
                "is_booked": seat.is_booked,
            }
            for seat in seats
        ],
        "available": sum(1 for seat in seats if not seat.is_booked),
    }


async def set_seat_frozen(db: AsyncSession, caller: Caller, seat_id: int, frozen: bool) -> Seat:
    """
    Admin override: mark a seat booked (frozen) or free without a booking.

    This deliberately departs from the booking-derived flag, but only in the
    safe direction: a seat that a booking references cannot be unfrozen.
    Release the booking instead.
    """
    await authorize(db, caller, SEATS, UPDATE)
    result = await db.execute(
        select(Seat).where(Seat.id == seat_id).execution_options(populate_existing=True)
    )
    seat = result.scalar_one_or_none()
    if not seat:
        raise NotFoundError(f"Seat {seat_id} not found")

    if not frozen:
        held = await db.execute(select(exists().where(Booking.seat_id == seat_id)))
        if held.scalar():
            raise ConflictError(
                "Seat is held by a booking; release the booking instead",
                code=SEAT_HAS_BOOKING,
            )

    seat.is_booked = frozen
    await db.flush()
    logger.info("seat_freeze_toggled", seat_id=seat_id, frozen=frozen, admin_id=caller.user_id)
    return seat

