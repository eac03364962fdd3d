"""
Authentication: allow-list login and caller resolution.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import AuthenticationError, AuthorizationError
from theatre.core.logging import get_logger
from theatre.core.policies import Caller, is_admin
from theatre.core.security import create_access_token, verify_password
from theatre.models.user import AllowedUser, User

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def authenticate_user(db: AsyncSession, email: str, secret: str) -> str:
    """
    Authenticate an allow-listed user and return a JWT access token.
    Raises 401 if the email is not allowed or the secret does not match.
    """
    email = normalize_email(email)

    allowed = await db.execute(select(AllowedUser).where(AllowedUser.email == email))
    if allowed.scalar_one_or_none() is None:
        logger.warning("login_failed", reason="not_allowed", email=email)
        raise AuthenticationError("Invalid email or secret")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(secret, user.hashed_password):
        logger.warning("login_failed", reason="bad_credentials", email=email)
        raise AuthenticationError("Invalid email or secret")

    if not user.is_active:
        raise AuthorizationError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    logger.info("user_logged_in", user_id=user.id)
    return token


async def resolve_caller(db: AsyncSession, user_id: int) -> Caller:
    """
    Build the caller for a token subject.

    The identity must still exist and be active; the admin flag always comes
    from the role table, never from the token.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("Unauthorized")

    return Caller(user_id=user.id, email=user.email, is_admin=await is_admin(db, user.id))
