from theatre.models.user import User, AllowedUser, UserRole
from theatre.models.seat import SeatLayout, Seat
from theatre.models.booking import Booking

__all__ = ["User", "AllowedUser", "UserRole", "SeatLayout", "Seat", "Booking"]
