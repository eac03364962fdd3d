"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    seat_id: int = Field(..., gt=0)


class BookingReassign(BaseModel):
    seat_id: int = Field(..., gt=0)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    user_email: str
    seat_id: int
    row_num: int
    col_num: int
    seat_label: str
    created_at: datetime


class BookingReleaseResponse(BaseModel):
    message: str
    booking_id: int
