"""
Booking model: one person, one seat.

Key design decisions:
- UNIQUE(user_id) means a person holds at most one booking
- UNIQUE(seat_id) means a seat has at most one occupant
- Both constraints are the last line of defence when two transactions race;
  the loser gets an IntegrityError that the booking service turns into a
  ConflictError
- No ORM relationships: reads that need the seat position or the owner's
  email join explicitly, so nothing lazy-loads on an async session
"""

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint

from theatre.db.base import Base, TimestampMixin

UQ_BOOKING_USER = "uq_bookings_user_id"
UQ_BOOKING_SEAT = "uq_bookings_seat_id"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seat_id = Column(Integer, ForeignKey("seats.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", name=UQ_BOOKING_USER),
        UniqueConstraint("seat_id", name=UQ_BOOKING_SEAT),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, seat={self.seat_id})>"
