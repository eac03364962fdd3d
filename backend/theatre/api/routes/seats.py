"""
Seat map and layout administration endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.api.deps import commit_seat_change, get_current_caller
from theatre.core.policies import Caller
from theatre.db.session import get_db
from theatre.schemas.seat import (
    LayoutResponse,
    LayoutUpdate,
    RegenerateResponse,
    SeatFreezeRequest,
    SeatMapResponse,
    SeatResponse,
)
from theatre.services.cache_service import get_cached_seat_map, set_cached_seat_map
from theatre.services.layout_service import (
    get_active_layout,
    get_seat_map,
    regenerate_layout,
    set_seat_frozen,
    update_layout,
)

router = APIRouter(tags=["Seats"])


@router.get("/seats", response_model=SeatMapResponse)
async def seat_map(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    The active layout with every seat and its booked flag.

    Served from Redis when possible; the cache is advisory and never
    consulted when a seat is actually booked.
    """
    layout = await get_active_layout(db)
    cached = await get_cached_seat_map(layout.id)
    if cached:
        return SeatMapResponse(**cached, cached=True)

    data = await get_seat_map(db, caller)
    await set_cached_seat_map(layout.id, data)
    return SeatMapResponse(**data)


@router.get("/layout", response_model=LayoutResponse)
async def active_layout(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await get_active_layout(db)


@router.put("/layout/{layout_id}", response_model=LayoutResponse)
async def change_layout(
    layout_id: int,
    layout_data: LayoutUpdate,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Change rows and columns of a layout and rebuild its seats (admin only)."""
    layout = await update_layout(
        db,
        caller,
        layout_id,
        layout_data.total_rows,
        layout_data.total_columns,
        name=layout_data.name,
    )
    await commit_seat_change(db)
    return layout


@router.post("/layout/{layout_id}/regenerate", response_model=RegenerateResponse)
async def regenerate_seats(
    layout_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    counts = await regenerate_layout(db, caller, layout_id)
    await commit_seat_change(db)
    return RegenerateResponse(layout_id=layout_id, **counts)


@router.patch("/seats/{seat_id}/freeze", response_model=SeatResponse)
async def freeze_seat(
    seat_id: int,
    freeze_data: SeatFreezeRequest,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Mark a free seat unavailable, or make a frozen seat bookable again (admin only)."""
    seat = await set_seat_frozen(db, caller, seat_id, freeze_data.frozen)
    await commit_seat_change(db)
    return seat
