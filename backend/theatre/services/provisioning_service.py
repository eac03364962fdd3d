"""
Privileged account provisioning.

An admin onboards a person in one logical step:

  1. create the identity credential (email + secret), already confirmed
  2. put the email on the allow-list with its secret
  3. assign a role

Request lifecycle:

  Pending -> AuthChecked -> Validated -> Provisioned -> Committed
                 |              |             |
             Rejected       Rejected        Failed
          (unauthorized)  (bad input)

All three writes share one savepoint. A failure at any step rolls back every
earlier step, so there is never an identity without its allow-list entry and
role.
"""

import enum
from typing import Optional

from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from theatre.core.exceptions import (
    EMAIL_EXISTS,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DownstreamError,
    ValidationError,
)
from theatre.core.logging import get_logger
from theatre.core.metrics import record_provisioning
from theatre.core.policies import ALLOWED_USERS, INSERT, Caller, authorize, has_role
from theatre.core.security import MAX_SECRET_BYTES, hash_password, secret_fits
from theatre.models.user import ROLE_ADMIN, ROLE_USER, ROLES, AllowedUser, User, UserRole
from theatre.services.auth_service import normalize_email

logger = get_logger(__name__)

MAX_EMAIL_LENGTH = 255


class ProvisioningState(str, enum.Enum):
    PENDING = "pending"
    AUTH_CHECKED = "auth_checked"
    VALIDATED = "validated"
    PROVISIONED = "provisioned"
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


def _transition(state: ProvisioningState, **fields) -> None:
    logger.info("provisioning_state", state=state.value, **fields)


async def _check_admin(db: AsyncSession, caller: Optional[Caller]) -> None:
    if caller is None:
        raise AuthenticationError("Unauthorized")

    # Re-verify against the role table; a flag set elsewhere is not trusted.
    try:
        admin = await has_role(db, caller.user_id, ROLE_ADMIN)
    except SQLAlchemyError as e:
        logger.error("role_lookup_failed", user_id=caller.user_id, error=str(e))
        admin = False
    if not admin:
        raise AuthorizationError("Only admins can add users")

    await authorize(db, caller, ALLOWED_USERS, INSERT)


def _validate(email: Optional[str], secret: Optional[str], role: Optional[str]) -> tuple[str, str, str]:
    email = normalize_email(email or "")
    if not email or not secret:
        raise ValidationError("Missing email or secret")
    if "@" not in email or len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Invalid email address")
    if not secret_fits(secret):
        raise ValidationError(f"Secret must be at most {MAX_SECRET_BYTES} bytes")

    role = role or ROLE_USER
    if role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'")
    return email, secret, role


async def provision_account(
    db: AsyncSession,
    caller: Optional[Caller],
    email: Optional[str],
    secret: Optional[str],
    role: Optional[str] = None,
) -> User:
    """
    Create identity, allow-list entry and role for a new person.

    Raises AuthenticationError / AuthorizationError before any check of the
    input, ValidationError before any write, ConflictError (``email_exists``)
    when the email is already provisioned and DownstreamError when the store
    fails. The Committed transition is logged when the caller's transaction
    actually commits.
    """
    _transition(ProvisioningState.PENDING, admin_id=getattr(caller, "user_id", None))

    try:
        await _check_admin(db, caller)
        _transition(ProvisioningState.AUTH_CHECKED, admin_id=caller.user_id)

        email, secret, role = _validate(email, secret, role)
        _transition(ProvisioningState.VALIDATED, email=email, role=role)
    except AuthenticationError:
        record_provisioning("unauthorized")
        _transition(ProvisioningState.REJECTED, reason="unauthorized")
        raise
    except AuthorizationError:
        record_provisioning("forbidden")
        _transition(ProvisioningState.REJECTED, reason="forbidden")
        raise
    except ValidationError as e:
        record_provisioning("invalid")
        _transition(ProvisioningState.REJECTED, reason="invalid_input", detail=e.message)
        raise

    try:
        async with db.begin_nested():
            existing = await db.execute(select(User.id).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(f"User {email} already exists", code=EMAIL_EXISTS)

            user = User(
                email=email,
                hashed_password=hash_password(secret),
                email_confirmed=True,
            )
            db.add(user)
            await db.flush()

            db.add(AllowedUser(email=email, credential_secret=hash_password(secret)))
            await db.flush()

            db.add(UserRole(user_id=user.id, role=role))
            await db.flush()
        _transition(ProvisioningState.PROVISIONED, user_id=user.id)

    except ConflictError:
        record_provisioning("duplicate")
        _transition(ProvisioningState.FAILED, reason="duplicate", email=email)
        raise
    except IntegrityError as e:
        # A concurrent provisioning of the same email loses on the unique index
        if "email" not in str(e.orig):
            record_provisioning("failed")
            _transition(ProvisioningState.FAILED, reason="constraint", email=email, error=str(e.orig))
            raise DownstreamError("Failed to provision account") from e
        record_provisioning("duplicate")
        _transition(ProvisioningState.FAILED, reason="duplicate", email=email, error=str(e.orig))
        raise ConflictError(f"User {email} already exists", code=EMAIL_EXISTS) from e
    except SQLAlchemyError as e:
        record_provisioning("failed")
        _transition(ProvisioningState.FAILED, reason="downstream", email=email, error=str(e))
        raise DownstreamError("Failed to provision account") from e

    await db.refresh(user)
    user_id = user.id

    def _on_commit(session) -> None:
        record_provisioning("committed")
        _transition(ProvisioningState.COMMITTED, user_id=user_id, email=email, role=role)

    # The request transaction commits later; count the account only once it does.
    event.listen(db.sync_session, "after_commit", _on_commit, once=True)
    return user
