"""Error taxonomy shared by the service layer, the HTTP surface and the client SDK."""
from __future__ import annotations


class BountyError(Exception):
    """Base class for every error raised by skatebounty."""
    status_code = 500

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(BountyError):
    """Malformed input caught before anything is written."""
    status_code = 422


class ConstraintViolation(BountyError):
    """The store refused a write: duplicate row or a failed check."""
    status_code = 409


class AuthRequired(BountyError):
    status_code = 401

    def __init__(self, message: str = "Sign in to continue", field: str | None = None):
        super().__init__(message, field)


class Forbidden(BountyError):
    status_code = 403


class NotFound(BountyError):
    status_code = 404


class TransientError(BountyError):
    """Network or backend failure unrelated to the input. Safe to retry by hand."""
    status_code = 503


ERRORS_BY_STATUS: dict[int, type[BountyError]] = {
    cls.status_code: cls
    for cls in (ValidationError, ConstraintViolation, AuthRequired, Forbidden, NotFound, TransientError)
}
