"""
api/routes/v1/users.py -- Account and session REST endpoints.

Routes:
  POST   /api/v1/users/signup                 -- create account; sets JWT cookie (201)
  POST   /api/v1/users/login                  -- password login; sets JWT cookie
  POST   /api/v1/users/logout                 -- overwrite cookie with an expired empty value
  POST   /api/v1/users/forgot-password        -- email a password reset link
  PATCH  /api/v1/users/reset-password/{token} -- set new password from reset link; sets JWT cookie
  PATCH  /api/v1/users/update-password        -- change password (requires auth); sets JWT cookie
  GET    /api/v1/users/me                     -- current account (requires auth)
  DELETE /api/v1/users/me                     -- delete current account (requires auth)

Security:
  [H2] login and forgot-password are rate-limited per IP.
  [C1] AccountService.login() equalizes timing for unknown emails -- never
       inline a lookup + verify here.
  [M5] Cache-Control: no-store on every response that carries a token.

Handlers are plain `def`: the store and SMTP calls block, so Starlette runs
them in its threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.errors import error_response
from api.limiter import limiter
from api.models import (
    AccountPublic,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
    UserData,
)
from auth.dependencies import get_current_account
from auth.models import Account, SessionGrant
from auth.service import AccountService
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST   /users/signup, /users/login, /users/logout:  public
# - POST   /users/forgot-password:                      public
# - PATCH  /users/reset-password/{token}:               public -- the token is the credential
# - PATCH  /users/update-password:                      requires auth (get_current_account)
# - GET    /users/me, DELETE /users/me:                 requires auth (get_current_account)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/signup", response_model=AuthResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create an account and log it in."""
    outcome = _service(request).signup(body.email, body.password, body.password_confirm)
    if not outcome.ok:
        return error_response(outcome.error)
    return _send_token(request, outcome.value, 201)


@limiter.limit(_settings.login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set JWT cookie.

    Missing email, missing password, unknown email and wrong password all
    return the same 401 body.
    """
    outcome = _service(request).login(body.email, body.password)
    if not outcome.ok:
        resp = error_response(outcome.error)
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    return _send_token(request, outcome.value, 200)


@router.post("/users/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Overwrite the session cookie with an empty, already-expired one. Idempotent."""
    resp = JSONResponse(content={"status": "success"})
    _service(request).issuer.clear_cookie(resp)
    return resp


@limiter.limit(_settings.reset_rate_limit)  # [H2]
@router.post("/users/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Email a single-use reset link to the account's address."""

    service = _service(request)

    def build_reset_url(raw_token: str) -> str:
        if service.config.reset_url_base:
            return f"{service.config.reset_url_base}/{raw_token}"
        return str(request.url_for("reset_password", token=raw_token))

    outcome = service.request_password_reset(body.email, build_reset_url)
    if not outcome.ok:
        return error_response(outcome.error)
    return JSONResponse(content=MessageResponse(message="Token sent to email").model_dump())


@router.patch("/users/reset-password/{token}", response_model=AuthResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    """Exchange the reset link's token for a new password, then log the user in."""
    outcome = _service(request).reset_password(token, body.password, body.password_confirm)
    if not outcome.ok:
        return error_response(outcome.error)
    return _send_token(request, outcome.value, 200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.patch("/users/update-password", response_model=AuthResponse)
def update_password(
    request: Request,
    body: UpdatePasswordRequest,
    current_account: Account = Depends(get_current_account),
) -> JSONResponse:
    """Change the password. All previously issued tokens stop working."""
    outcome = _service(request).update_password(
        current_account, body.current_password, body.password, body.password_confirm
    )
    if not outcome.ok:
        return error_response(outcome.error)
    return _send_token(request, outcome.value, 200)


@router.get("/users/me", response_model=AuthResponse)
def me(current_account: Account = Depends(get_current_account)) -> AuthResponse:
    """Return the currently authenticated account."""
    return AuthResponse(data=UserData(user=AccountPublic.from_account(current_account)))


@router.delete("/users/me", status_code=204)
def delete_me(request: Request, current_account: Account = Depends(get_current_account)) -> Response:
    """Delete the current account and clear its session cookie."""
    outcome = _service(request).delete_account(current_account)
    if not outcome.ok:
        return error_response(outcome.error)
    resp = Response(status_code=204)
    _service(request).issuer.clear_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(request: Request) -> AccountService:
    return request.app.state.account_service


def _send_token(request: Request, grant: SessionGrant, status_code: int) -> JSONResponse:
    """Serialize the account (never its password), return the token and set the cookie."""
    token = grant.token.token
    body = AuthResponse(token=token, data=UserData(user=AccountPublic.from_account(grant.account)))
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    _service(request).issuer.set_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
