"""
Venue geometry and the seat grid derived from it.

Key design decisions:
- Exactly one layout may be active, enforced by a partial unique index
  rather than by "take the first row" reads
- (seat_layout_id, row_num, col_num) is unique so regeneration can never
  produce duplicate cells
- `is_booked` is a cached flag owned by the booking service; it mirrors the
  existence of a booking row and is never written directly by clients
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint, CheckConstraint,
    func, text,
)

from theatre.db.base import Base, TimestampMixin


class SeatLayout(Base, TimestampMixin):
    __tablename__ = "seat_layout"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, default="Main Theatre")
    total_rows = Column(Integer, nullable=False, default=20)
    total_columns = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("total_rows > 0", name="check_layout_rows_positive"),
        CheckConstraint("total_columns > 0", name="check_layout_columns_positive"),
        Index(
            "uq_seat_layout_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    def __repr__(self) -> str:
        return f"<SeatLayout(id={self.id}, name={self.name}, {self.total_rows}x{self.total_columns})>"


class Seat(Base):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    seat_layout_id = Column(
        Integer, ForeignKey("seat_layout.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_num = Column(Integer, nullable=False)
    col_num = Column(Integer, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("seat_layout_id", "row_num", "col_num", name="uq_seats_layout_row_col"),
        CheckConstraint("row_num > 0", name="check_seat_row_positive"),
        CheckConstraint("col_num > 0", name="check_seat_col_positive"),
        # Seat map reads are ordered by position
        Index("ix_seats_layout_position", "seat_layout_id", "row_num", "col_num"),
    )

    @property
    def label(self) -> str:
        """Column letter followed by row number, e.g. ``C12``."""
        return f"{_column_letter(self.col_num)}{self.row_num}"

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, row={self.row_num}, col={self.col_num}, booked={self.is_booked})>"


def _column_letter(col_num: int) -> str:
    letters = ""
    while col_num > 0:
        col_num, remainder = divmod(col_num - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters
