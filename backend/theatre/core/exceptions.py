"""
Domain error taxonomy.

Every error is raised at the boundary of a single request/transaction and
rendered synchronously by the handlers in ``theatre.api.errors``. Nothing here
is retried: a conflict reproduces itself until the caller changes the input.
"""

from typing import Optional


class DomainError(Exception):
    status_code = 400
    default_code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class AuthenticationError(DomainError):
    """No caller identity, or the credential is invalid."""

    status_code = 401
    default_code = "unauthenticated"


class AuthorizationError(DomainError):
    """The caller is known but lacks the role or ownership required."""

    status_code = 403
    default_code = "forbidden"


class ValidationError(DomainError):
    status_code = 400
    default_code = "invalid_input"


class NotFoundError(DomainError):
    status_code = 404
    default_code = "not_found"


class ConflictError(DomainError):
    """Uniqueness or precondition violation.

    ``code`` tells the caller which conflict happened: ``seat_taken``,
    ``already_booked``, ``email_exists`` or ``seat_has_booking``.
    """

    status_code = 409
    default_code = "conflict"


class DownstreamError(DomainError):
    """Unexpected failure from the persistence or identity layer."""

    status_code = 500
    default_code = "downstream_failure"


SEAT_TAKEN = "seat_taken"
ALREADY_BOOKED = "already_booked"
EMAIL_EXISTS = "email_exists"
SEAT_HAS_BOOKING = "seat_has_booking"
