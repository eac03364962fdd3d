"""
Admin endpoints: account provisioning and user management.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.api.deps import commit_seat_change, get_current_caller
from theatre.core.policies import Caller
from theatre.db.session import get_db
from theatre.schemas.user import (
    ProvisionRequest,
    ProvisionResponse,
    RoleUpdate,
    UserWithRolesResponse,
)
from theatre.services.provisioning_service import provision_account
from theatre.services.user_service import delete_user, list_users_with_roles, set_user_role

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/users", response_model=ProvisionResponse)
async def provision_user(
    request_data: ProvisionRequest,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a confirmed identity, its allow-list entry and its role in one
    step. 401 without a valid token, 403 for non-admins, 400 for bad input,
    409 when the email is already provisioned.
    """
    await provision_account(
        db,
        caller,
        request_data.email,
        request_data.secret,
        request_data.role,
    )
    return ProvisionResponse(success=True)


@router.get("/users", response_model=list[UserWithRolesResponse])
async def list_users(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await list_users_with_roles(db, caller)


@router.put("/users/{user_id}/role", response_model=list[str])
async def change_role(
    user_id: int,
    role_data: RoleUpdate,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await set_user_role(db, caller, user_id, role_data.role)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(
    user_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete a person and everything tied to them, freeing their seat."""
    await delete_user(db, caller, user_id)
    await commit_seat_change(db)
