"""
Pytest fixtures for test database, client, and authentication.

Tests run against a throwaway SQLite file so several sessions can hold real,
separate transactions at once (the concurrency tests need that). Tables are
created and dropped around every test for isolation.
"""

import os
import tempfile
from typing import AsyncGenerator

# Settings are read once and cached, so the environment must be in place
# before anything from theatre is imported.
_DB_DIR = tempfile.mkdtemp(prefix="theatre-tests-")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from theatre.main import app
from theatre.db.base import Base
from theatre.db.session import build_engine, build_sessionmaker, get_db
from theatre.core.policies import Caller
from theatre.core.security import create_access_token, hash_password
from theatre.models.booking import Booking
from theatre.models.seat import Seat, SeatLayout
from theatre.models.user import ROLE_ADMIN, ROLE_USER, AllowedUser, User, UserRole
from theatre.services.layout_service import create_layout

ADMIN_SECRET = "admin-secret"
USER_SECRET = "user-secret"


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test; yields a factory for independent sessions."""
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_sessionmaker(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for setting up data. Commit after writing: an open transaction
    holds the SQLite write lock and would stall every request.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session, like get_db."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_person(session: AsyncSession, email: str, secret: str, role: str = ROLE_USER) -> User:
    """Identity, allow-list entry and role, as provisioning would leave them."""
    user = User(email=email, hashed_password=hash_password(secret), email_confirmed=True)
    session.add(user)
    await session.flush()
    session.add(AllowedUser(email=email, credential_secret=hash_password(secret)))
    session.add(UserRole(user_id=user.id, role=role))
    await session.flush()
    await session.refresh(user)
    await session.commit()
    return user


def caller_for(user: User, is_admin: bool = False) -> Caller:
    return Caller(user_id=user.id, email=user.email, is_admin=is_admin)


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


async def seat_state(session_factory) -> tuple[set, set]:
    """(ids of seats flagged booked, ids of seats referenced by a booking)."""
    async with session_factory() as session:
        flagged = set((await session.execute(select(Seat.id).where(Seat.is_booked.is_(True)))).scalars())
        referenced = set((await session.execute(select(Booking.seat_id))).scalars())
    return flagged, referenced


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_person(db_session, "admin@example.com", ADMIN_SECRET, ROLE_ADMIN)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_person(db_session, "test@example.com", USER_SECRET)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_person(db_session, "other@example.com", USER_SECRET)


@pytest_asyncio.fixture
async def admin_caller(admin_user: User) -> Caller:
    return caller_for(admin_user, is_admin=True)


@pytest_asyncio.fixture
async def user_caller(test_user: User) -> Caller:
    return caller_for(test_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def layout(db_session: AsyncSession) -> SeatLayout:
    """Active 3 x 4 layout with its twelve seats."""
    layout = await create_layout(db_session, "Test Hall", 3, 4)
    await db_session.commit()
    return layout


@pytest_asyncio.fixture
async def seat_ids(db_session: AsyncSession, layout: SeatLayout) -> list[int]:
    """Seat ids of the test layout ordered by row, then column."""
    result = await db_session.execute(
        select(Seat.id).where(Seat.seat_layout_id == layout.id).order_by(Seat.row_num, Seat.col_num)
    )
    ids = list(result.scalars())
    await db_session.commit()
    return ids
