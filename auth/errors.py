"""
auth/errors.py -- Failure taxonomy for the auth subsystem.

Every failure is raised at the point of detection and surfaced to the caller;
nothing in auth/ retries. The API layer maps each class to an HTTP status via
status_code/code so route handlers never translate errors by hand.

  UnauthorizedError -- authentication failed (401). Never retried.
  BadRequestError   -- the request itself is invalid (400).
  InternalError     -- signing or storage failure (500). Message is logged,
                       not shown to the client.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth failures."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"


class BadRequestError(AuthError):
    status_code = 400
    code = "bad_request"


class InternalError(AuthError):
    status_code = 500
    code = "internal_error"


class TokenSigningError(InternalError):
    """JWT signing failed -- misconfigured secret or algorithm."""

    code = "token_signing_failed"


class StoreUnavailableError(InternalError):
    """The refresh-token store could not be reached."""

    code = "store_unavailable"
