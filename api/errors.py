"""
api/errors.py -- The boundary between AuthError kinds and HTTP responses.

Every failure the service layer reports passes through error_response().
This is the only module that knows which status code each ErrorKind maps to.

Session failures (no token, invalid token, account gone, password changed)
are collapsed into one identical 401 body. Telling a caller which check
failed would help anyone probing stolen or forged tokens; the specific kind
is logged by auth/dependencies.py instead.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from api.models import ErrorResponse
from auth.errors import SESSION_KINDS, AuthError, ErrorKind

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: 400,
    ErrorKind.BAD_CREDENTIALS: 401,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.ACCOUNT_GONE: 401,
    ErrorKind.PASSWORD_CHANGED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DELIVERY_ERROR: 500,
}

SESSION_REJECTED_MESSAGE = "You are not logged in or your session is no longer valid. Please log in again."


def error_envelope(status_code: int, message: str) -> JSONResponse:
    """Build the {status, message} failure body for any status code."""
    status = "error" if status_code >= 500 else "fail"
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status, message=message).model_dump(),
    )


def error_response(error: AuthError) -> JSONResponse:
    """Translate a service-layer AuthError into its HTTP response."""
    status_code = STATUS_BY_KIND.get(error.kind, 500)
    message = SESSION_REJECTED_MESSAGE if error.kind in SESSION_KINDS else error.message
    return error_envelope(status_code, message)
