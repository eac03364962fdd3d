from theatre.schemas.user import (
    LoginRequest, Token, CallerResponse, ProvisionRequest, ProvisionResponse,
    RoleUpdate, UserWithRolesResponse,
)
from theatre.schemas.booking import BookingCreate, BookingReassign, BookingResponse, BookingReleaseResponse
from theatre.schemas.seat import (
    LayoutResponse, LayoutUpdate, SeatResponse, SeatMapResponse, RegenerateResponse, SeatFreezeRequest,
)

__all__ = [
    "LoginRequest", "Token", "CallerResponse", "ProvisionRequest", "ProvisionResponse",
    "RoleUpdate", "UserWithRolesResponse",
    "BookingCreate", "BookingReassign", "BookingResponse", "BookingReleaseResponse",
    "LayoutResponse", "LayoutUpdate", "SeatResponse", "SeatMapResponse", "RegenerateResponse",
    "SeatFreezeRequest",
]
