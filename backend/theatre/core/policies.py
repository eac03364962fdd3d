"""
Row-level access policies.

Every read and write is checked here by caller identity and role before it
reaches the store, independently of whatever the client already checked.
Policies are plain predicates keyed by (table, action):

    table          read                 write
    -------------  -------------------  --------------------------------------
    allowed_users  admin                admin
    user_roles     own row or admin     admin
    seat_layout    authenticated        admin
    seats          authenticated        admin
    bookings       owner or admin       insert: own row, caller holds no
                                        booking, seat unbooked
                                        update/delete: admin
    users          own row or admin     admin

The booking-insert preconditions are re-enforced by the booking service's
conditional seat update and the unique constraints, so a race between the
check and the write still ends in a ConflictError, never in a double booking.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import (
    ALREADY_BOOKED,
    SEAT_TAKEN,
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from theatre.core.logging import get_logger
from theatre.models.booking import Booking
from theatre.models.seat import Seat
from theatre.models.user import ROLE_ADMIN, UserRole

logger = get_logger(__name__)

ALLOWED_USERS = "allowed_users"
USER_ROLES = "user_roles"
SEAT_LAYOUT = "seat_layout"
SEATS = "seats"
BOOKINGS = "bookings"
USERS = "users"

READ = "read"
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
WRITE_ACTIONS = (INSERT, UPDATE, DELETE)


@dataclass(frozen=True)
class Caller:
    user_id: int
    email: str
    is_admin: bool = False


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------

async def has_role(db: AsyncSession, user_id: int, role: str) -> bool:
    result = await db.execute(
        select(exists().where(UserRole.user_id == user_id, UserRole.role == role))
    )
    return bool(result.scalar())


async def is_admin(db: AsyncSession, user_id: int) -> bool:
    """
    Admin lookup for read paths.

    A failed lookup counts as "not admin": a broken permission check must
    never grant access.
    """
    try:
        return await has_role(db, user_id, ROLE_ADMIN)
    except SQLAlchemyError as e:
        logger.error("role_lookup_failed", user_id=user_id, error=str(e))
        return False


async def user_has_booking(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(select(exists().where(Booking.user_id == user_id)))
    return bool(result.scalar())


async def seat_is_available(db: AsyncSession, seat_id: int) -> Optional[bool]:
    """True/False for an existing seat, None when the seat does not exist."""
    result = await db.execute(select(Seat.is_booked).where(Seat.id == seat_id))
    is_booked = result.scalar_one_or_none()
    if is_booked is None:
        return None
    return not is_booked


# ---------------------------------------------------------------------------
# Read predicates
# ---------------------------------------------------------------------------

def _admin_only(caller: Caller, row: Any) -> bool:
    return caller.is_admin


def _authenticated(caller: Caller, row: Any) -> bool:
    return caller is not None


def _own_row_or_admin(caller: Caller, row: Any) -> bool:
    return caller.is_admin or getattr(row, "user_id", None) == caller.user_id


def _own_identity_or_admin(caller: Caller, row: Any) -> bool:
    return caller.is_admin or getattr(row, "id", None) == caller.user_id


READ_POLICIES: dict[str, Callable[[Caller, Any], bool]] = {
    ALLOWED_USERS: _admin_only,
    USER_ROLES: _own_row_or_admin,
    SEAT_LAYOUT: _authenticated,
    SEATS: _authenticated,
    BOOKINGS: _own_row_or_admin,
    USERS: _own_identity_or_admin,
}


# ---------------------------------------------------------------------------
# Write checks
# ---------------------------------------------------------------------------

WriteCheck = Callable[[AsyncSession, Caller, Any], Awaitable[None]]


async def _require_admin(db: AsyncSession, caller: Caller, row: Any) -> None:
    if not caller.is_admin:
        raise AuthorizationError("Admin role required")


async def _booking_insert(db: AsyncSession, caller: Caller, row: Any) -> None:
    if row.user_id != caller.user_id:
        raise AuthorizationError("You can only book a seat for yourself")

    if await user_has_booking(db, caller.user_id):
        raise ConflictError("You already have a booking", code=ALREADY_BOOKED)

    available = await seat_is_available(db, row.seat_id)
    if available is None:
        raise NotFoundError(f"Seat {row.seat_id} not found")
    if not available:
        raise ConflictError("Seat is already taken", code=SEAT_TAKEN)


WRITE_POLICIES: dict[tuple[str, str], WriteCheck] = {
    **{(table, action): _require_admin
       for table in (ALLOWED_USERS, USER_ROLES, SEAT_LAYOUT, SEATS, USERS)
       for action in WRITE_ACTIONS},
    (BOOKINGS, INSERT): _booking_insert,
    (BOOKINGS, UPDATE): _require_admin,
    (BOOKINGS, DELETE): _require_admin,
}


def can_read(caller: Optional[Caller], table: str, row: Any = None) -> bool:
    if caller is None:
        return False
    return READ_POLICIES[table](caller, row)


def filter_visible(caller: Optional[Caller], table: str, rows: Iterable[Any]) -> list:
    """Drop the rows the caller is not allowed to see."""
    return [row for row in rows if can_read(caller, table, row)]


async def authorize(
    db: AsyncSession,
    caller: Optional[Caller],
    table: str,
    action: str,
    row: Any = None,
) -> None:
    """
    Raise unless ``caller`` may perform ``action`` on ``table``.

    ``row`` is the target row (or the values about to be written) where the
    policy depends on it.
    """
    if caller is None:
        raise AuthorizationError("Authentication required")

    if action == READ:
        if not can_read(caller, table, row):
            logger.warning("policy_denied", table=table, action=action, user_id=caller.user_id)
            raise AuthorizationError(f"Not allowed to read {table}")
        return

    check = WRITE_POLICIES.get((table, action))
    if check is None:
        raise AuthorizationError(f"No policy permits {action} on {table}")
    try:
        await check(db, caller, row)
    except AuthorizationError:
        logger.warning("policy_denied", table=table, action=action, user_id=caller.user_id)
        raise
