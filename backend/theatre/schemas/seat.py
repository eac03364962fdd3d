"""
Pydantic schemas for the seat map and layout administration.
"""

from typing import Optional
from pydantic import BaseModel, Field


class LayoutResponse(BaseModel):
    id: int
    name: str
    total_rows: int
    total_columns: int

    model_config = {"from_attributes": True}


class LayoutUpdate(BaseModel):
    total_rows: int = Field(..., gt=0, le=200)
    total_columns: int = Field(..., gt=0, le=200)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class SeatResponse(BaseModel):
    id: int
    row_num: int
    col_num: int
    label: str
    is_booked: bool

    model_config = {"from_attributes": True}


class SeatMapResponse(BaseModel):
    layout: LayoutResponse
    seats: list[SeatResponse]
    available: int
    cached: bool = False


class RegenerateResponse(BaseModel):
    layout_id: int
    removed: int
    added: int
    kept_outside_grid: int


class SeatFreezeRequest(BaseModel):
    frozen: bool
