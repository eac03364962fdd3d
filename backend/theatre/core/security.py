"""
Credential hashing and bearer-token handling.

Tokens carry only the identity (``sub``) and email. Admin rights are never
read from a token; they are looked up server-side on every request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from theatre.core.config import get_settings
from theatre.core.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input
MAX_SECRET_BYTES = 72


def secret_fits(secret: str) -> bool:
    return len(secret.encode("utf-8")) <= MAX_SECRET_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash or an over-long secret
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    """Resolve the bearer token to a user id, or reject with 401."""
    if credentials is None:
        raise AuthenticationError("Unauthorized")

    payload = decode_access_token(credentials.credentials)
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")
