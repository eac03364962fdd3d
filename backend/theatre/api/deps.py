"""
Request-scoped dependencies shared by the routers.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from theatre.core.policies import Caller
from theatre.core.security import get_current_user_id
from theatre.db.session import get_db
from theatre.services.auth_service import resolve_caller
from theatre.services.cache_service import invalidate_seat_map


async def get_current_caller(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Authenticated caller with the admin flag looked up server-side."""
    caller = await resolve_caller(db, user_id)
    structlog.contextvars.bind_contextvars(user_id=caller.user_id)
    return caller


async def commit_seat_change(db: AsyncSession) -> None:
    """
    Commit the request's seat or booking write, then drop the cached seat map.

    Invalidating first would let a concurrent seat map read cache the
    pre-commit rows for a whole TTL. get_db's own commit is then a no-op.
    """
    await db.commit()
    await invalidate_seat_map()
