"""
Admin user management: listing, role changes and removal.
"""

from collections import defaultdict

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import NotFoundError, ValidationError
from theatre.core.logging import get_logger
from theatre.core.policies import ALLOWED_USERS, DELETE, READ, UPDATE, USER_ROLES, USERS, Caller, authorize
from theatre.models.booking import Booking
from theatre.models.user import ROLES, AllowedUser, User, UserRole
from theatre.services.booking_service import release_user_booking

logger = get_logger(__name__)


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def list_users_with_roles(db: AsyncSession, caller: Caller) -> list[dict]:
    """Every identity with its roles and booked seat id, ordered by email."""
    await authorize(db, caller, ALLOWED_USERS, READ)

    users = (await db.execute(select(User).order_by(User.email))).scalars().all()

    roles = defaultdict(list)
    for user_id, role in (await db.execute(select(UserRole.user_id, UserRole.role))).all():
        roles[user_id].append(role)

    seats = dict((await db.execute(select(Booking.user_id, Booking.seat_id))).all())

    return [
        {
            "id": user.id,
            "email": user.email,
            "roles": sorted(roles.get(user.id, [])),
            "is_active": user.is_active,
            "seat_id": seats.get(user.id),
            "created_at": user.created_at,
        }
        for user in users
    ]


async def get_roles(db: AsyncSession, caller: Caller, user_id: int) -> list[str]:
    """Roles of a user; callers may read their own, admins anyone's."""
    await authorize(db, caller, USER_ROLES, READ, UserRole(user_id=user_id))
    result = await db.execute(select(UserRole.role).where(UserRole.user_id == user_id))
    return sorted(result.scalars().all())


async def set_user_role(db: AsyncSession, caller: Caller, user_id: int, role: str) -> list[str]:
    """Replace a user's role set with a single role."""
    await authorize(db, caller, USER_ROLES, UPDATE)
    if role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'")
    await _get_user(db, user_id)

    async with db.begin_nested():
        await db.execute(
            delete(UserRole)
            .where(UserRole.user_id == user_id, UserRole.role != role)
            .execution_options(synchronize_session=False)
        )
        existing = await db.execute(
            select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
        )
        if existing.scalar_one_or_none() is None:
            db.add(UserRole(user_id=user_id, role=role))
            await db.flush()

    logger.info("role_updated", user_id=user_id, role=role, admin_id=caller.user_id)
    return [role]


async def delete_user(db: AsyncSession, caller: Caller, user_id: int) -> None:
    """
    Remove a person completely: booking (freeing the seat), allow-list
    entry, roles and identity.
    """
    await authorize(db, caller, USERS, DELETE)
    if user_id == caller.user_id:
        raise ValidationError("Admins cannot delete their own account")
    user = await _get_user(db, user_id)
    email = user.email

    freed_seat_id = await release_user_booking(db, caller, user_id)

    async with db.begin_nested():
        await db.execute(
            delete(AllowedUser)
            .where(AllowedUser.email == email)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(UserRole)
            .where(UserRole.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await db.delete(user)
        await db.flush()

    logger.info(
        "user_deleted",
        user_id=user_id,
        email=email,
        freed_seat_id=freed_seat_id,
        admin_id=caller.user_id,
    )
