"""
auth/dependencies.py -- FastAPI Depends() helpers for session validation.

Token sources, checked in priority order:
  1. "jwt" cookie -- set by signup/login/reset/update-password.
  2. Authorization: Bearer <token> header -- non-browser clients reusing the
     token returned in the response body.

resolve_session() is the soft variant (returns an Outcome, never raises).
get_current_account() wraps it and raises AuthFailure, which api/main.py
renders as a generic 401. The specific reason (no token, bad token, account
gone, password changed) is logged here and nowhere else.

Layer rule: no imports from api/. fastapi is allowed because this module is
part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.errors import AuthFailure, Outcome
from auth.models import Account
from auth.service import AccountService
from auth.tokens import COOKIE_NAME

logger = logging.getLogger("authgate.auth.session")


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def resolve_session(request: Request) -> Outcome[Account]:
    """Validate the request's session token; attach the account on success."""
    service: AccountService = request.app.state.account_service
    outcome = service.resolve_token(_extract_token(request))
    if outcome.ok:
        request.state.account = outcome.value
    else:
        logger.info("Session rejected (%s) on %s", outcome.error.kind.value, request.url.path)
    return outcome


def get_current_account(request: Request) -> Account:
    """Require a valid session. Raises AuthFailure if there is none.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    outcome = resolve_session(request)
    if not outcome.ok:
        raise AuthFailure(outcome.error)
    return outcome.value
