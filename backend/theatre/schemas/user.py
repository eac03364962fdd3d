"""
Pydantic schemas for login, caller identity and admin user management.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from theatre.core.security import MAX_SECRET_BYTES, secret_fits


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    secret: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("secret")
    @classmethod
    def secret_within_bcrypt_limit(cls, value: str) -> str:
        if not secret_fits(value):
            raise ValueError(f"secret must be at most {MAX_SECRET_BYTES} bytes")
        return value


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CallerResponse(BaseModel):
    user_id: int
    email: str
    is_admin: bool
    roles: list[str]


class ProvisionRequest(BaseModel):
    """
    Body of the provisioning endpoint.

    Every field is an unconstrained optional string: presence, length and
    role are checked by the provisioning service after the admin check, so a
    non-admin never learns anything about the input from a 400.
    """

    email: Optional[str] = None
    secret: Optional[str] = None
    role: Optional[str] = None


class ProvisionResponse(BaseModel):
    success: bool = True


class RoleUpdate(BaseModel):
    role: Literal["admin", "user"]


class UserWithRolesResponse(BaseModel):
    id: int
    email: str
    roles: list[str]
    is_active: bool
    seat_id: Optional[int] = None
    created_at: datetime
