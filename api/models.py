"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request bodies use the camelCase names browser clients already send
(passwordConfirm, currentPassword); snake_case is accepted as well.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account

# Matches auth.store.PASSWORD_MAX_LENGTH. The 72-byte bcrypt bound is checked
# by the store so it surfaces as a VALIDATION error, not a schema error.
_MAX = 255


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/users/signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(max_length=_MAX)
    password: str = Field(max_length=_MAX)
    password_confirm: str = Field(alias="passwordConfirm", max_length=_MAX)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login.

    Both fields are optional at the schema level: a missing field must
    produce the same bad_credentials response as a wrong password, not a
    validation error that reveals which part was absent.
    """

    email: Optional[str] = Field(default=None, max_length=_MAX)
    password: Optional[str] = Field(default=None, max_length=_MAX)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/users/forgot-password."""

    email: str = Field(max_length=_MAX)


class ResetPasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/users/reset-password/{token}."""

    model_config = ConfigDict(populate_by_name=True)

    password: str = Field(max_length=_MAX)
    password_confirm: str = Field(alias="passwordConfirm", max_length=_MAX)


class UpdatePasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/users/update-password."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", max_length=_MAX)
    password: str = Field(max_length=_MAX)
    password_confirm: str = Field(alias="passwordConfirm", max_length=_MAX)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountPublic(BaseModel):
    """Client-visible account fields. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountPublic":
        return cls(**account.to_public())


class UserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: AccountPublic


class AuthResponse(BaseModel):
    """Success envelope for operations that issue a session token."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    token: Optional[str] = None
    data: Optional[UserData] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Failure envelope: status is "fail" for 4xx and "error" for 5xx."""

    model_config = ConfigDict(frozen=True)

    status: str
    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
