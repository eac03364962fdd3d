"""
Seed the database with the default seat layout and a bootstrap administrator.

Safe to run repeatedly: an existing active layout or admin identity is left
as is.

Usage (from backend/):
    python -m scripts.seed
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.config import get_settings
from theatre.core.logging import get_logger, setup_logging
from theatre.core.security import hash_password
from theatre.db.session import AsyncSessionLocal
from theatre.models.seat import SeatLayout
from theatre.models.user import ROLE_ADMIN, AllowedUser, User, UserRole
from theatre.services.auth_service import normalize_email
from theatre.services.layout_service import create_layout

logger = get_logger(__name__)


async def seed_layout(db: AsyncSession) -> None:
    settings = get_settings()
    result = await db.execute(select(SeatLayout).where(SeatLayout.is_active.is_(True)))
    layout = result.scalar_one_or_none()
    if layout:
        logger.info("seed_layout_exists", layout_id=layout.id, name=layout.name)
        return

    layout = await create_layout(
        db,
        settings.DEFAULT_LAYOUT_NAME,
        settings.DEFAULT_LAYOUT_ROWS,
        settings.DEFAULT_LAYOUT_COLUMNS,
    )
    logger.info("seed_layout_created", layout_id=layout.id)


async def seed_admin(db: AsyncSession) -> None:
    settings = get_settings()
    email = normalize_email(settings.BOOTSTRAP_ADMIN_EMAIL)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        logger.info("seed_admin_exists", email=email)
        return

    user = User(
        email=email,
        hashed_password=hash_password(settings.BOOTSTRAP_ADMIN_SECRET),
        email_confirmed=True,
    )
    db.add(user)
    await db.flush()
    db.add(AllowedUser(email=email, credential_secret=hash_password(settings.BOOTSTRAP_ADMIN_SECRET)))
    db.add(UserRole(user_id=user.id, role=ROLE_ADMIN))
    await db.flush()
    logger.info("seed_admin_created", user_id=user.id, email=email)


async def main() -> None:
    setup_logging()
    async with AsyncSessionLocal() as db:
        async with db.begin():
            await seed_layout(db)
            await seed_admin(db)


if __name__ == "__main__":
    asyncio.run(main())
