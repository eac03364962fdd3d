"""
Authentication endpoints: allow-list login and caller identity.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.api.deps import get_current_caller
from theatre.core.policies import Caller
from theatre.db.session import get_db
from theatre.schemas.user import CallerResponse, LoginRequest, Token
from theatre.services.auth_service import authenticate_user
from theatre.services.user_service import get_roles

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(login_data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange an allow-listed email and its secret for a JWT access token."""
    token = await authenticate_user(db, login_data.email, login_data.secret)
    return Token(access_token=token)


@router.get("/me", response_model=CallerResponse)
async def me(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    roles = await get_roles(db, caller, caller.user_id)
    return CallerResponse(
        user_id=caller.user_id,
        email=caller.email,
        is_admin=caller.is_admin,
        roles=roles,
    )
