"""
auth/errors.py -- Error taxonomy and the Outcome result type.

Service operations return Outcome values instead of raising for expected
failures (bad password, unknown email, expired reset token). The HTTP layer
(api/errors.py) is the single place that turns an ErrorKind into a status
code and response body.

AuthFailure is the one exception in this module. FastAPI dependencies can only
abort a request by raising, so get_current_account() wraps the failed Outcome
in AuthFailure and the boundary handler unwraps it again.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    BAD_CREDENTIALS = "bad_credentials"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    ACCOUNT_GONE = "account_gone"
    PASSWORD_CHANGED = "password_changed"
    NOT_FOUND = "not_found"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    DELIVERY_ERROR = "delivery_error"


# Kinds produced by session validation. Externally indistinguishable.
SESSION_KINDS = frozenset(
    {
        ErrorKind.UNAUTHENTICATED,
        ErrorKind.INVALID_TOKEN,
        ErrorKind.ACCOUNT_GONE,
        ErrorKind.PASSWORD_CHANGED,
    }
)


@dataclass(frozen=True)
class AuthError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or an AuthError. Check .ok before reading .value."""

    value: Optional[T] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome[T]":
        return cls(error=AuthError(kind=kind, message=message))


class AuthFailure(Exception):
    """Raised by FastAPI dependencies to abort a request with an AuthError."""

    def __init__(self, error: AuthError) -> None:
        super().__init__(error.message)
        self.error = error
