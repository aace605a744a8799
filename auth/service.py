"""
auth/service.py -- Account operations and the password reset flow.

Every public method returns an Outcome: a SessionGrant (account + freshly
issued token) or an AuthError. Expected failures never raise; store
validation errors and mail failures are caught here and converted. The
HTTP layer decides how each ErrorKind looks on the wire.

Password reset is two steps:
  1. request_password_reset -- store sha256(secret) + expiry, email the
     plaintext secret. If delivery fails the token is rolled back, since
     the write and the send are not one transaction.
  2. reset_password -- look the hash up (unexpired only), validate the new
     password, then consume the token with the store's match-and-clear
     UPDATE. Losing a race to a concurrent confirmation reads as an
     invalid token.

Layer rule: no imports from api/ or fastapi.
"""

from __future__ import annotations

import hmac
import logging
import time
from typing import Callable, Optional

from auth.errors import ErrorKind, Outcome
from auth.mail import MailDeliveryError, MailTransport
from auth.models import Account, SessionGrant
from auth.store import AccountStore, AccountValidationError
from auth.tokens import (
    TokenIssuer,
    authenticate,
    generate_reset_token,
    hash_reset_token,
    verify_password,
)
from core.config import AuthConfig

logger = logging.getLogger("authgate.auth")

BAD_LOGIN_MESSAGE = "Incorrect email or password."
WRONG_CURRENT_PASSWORD_MESSAGE = "Your current password is wrong."
NO_SUCH_EMAIL_MESSAGE = "There is no user with that email address."
DELIVERY_FAILED_MESSAGE = "There was an error sending the email. Try again later."
INVALID_RESET_MESSAGE = "Token is invalid or has expired."
ACCOUNT_GONE_MESSAGE = "The user belonging to this token no longer exists."


def reset_email_subject(config: AuthConfig) -> str:
    minutes = config.reset_token_expire_seconds // 60
    return f"Your password reset token (valid for {minutes} min)"


class AccountService:
    """Signup, login, password change, password reset, and session resolution.

    Usage:
        service = AccountService(store, issuer, mailer, settings.auth_config())
        outcome = service.login("a@x.com", "Secret123")
        if outcome.ok:
            token = outcome.value.token.token
    """

    def __init__(
        self,
        store: AccountStore,
        issuer: TokenIssuer,
        mailer: MailTransport,
        config: AuthConfig,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.mailer = mailer
        self.config = config

    # ------------------------------------------------------------------
    # Account mutation
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str, password_confirm: str) -> Outcome[SessionGrant]:
        try:
            account_id = self.store.create_account(email, password, password_confirm)
        except AccountValidationError as exc:
            return Outcome.failure(ErrorKind.VALIDATION, str(exc))
        logger.info("Account %s created", account_id)
        return self._grant_current(account_id)

    def login(self, email: Optional[str], password: Optional[str]) -> Outcome[SessionGrant]:
        """Authenticate by email and password.

        Missing fields, unknown email and wrong password all produce the same
        BAD_CREDENTIALS error so responses cannot be used to enumerate accounts.
        """
        if not email or not password:
            return Outcome.failure(ErrorKind.BAD_CREDENTIALS, BAD_LOGIN_MESSAGE)
        account = authenticate(self.store, email, password)
        if account is None:
            return Outcome.failure(ErrorKind.BAD_CREDENTIALS, BAD_LOGIN_MESSAGE)
        return Outcome.success(self._grant(account))

    def update_password(
        self,
        account: Account,
        current_password: str,
        password: str,
        password_confirm: str,
    ) -> Outcome[SessionGrant]:
        """Change the password of an authenticated account and re-issue its token.

        Stamping password_changed_at invalidates every token issued before now.
        """
        fresh = self.store.get_by_id(account.id)
        if fresh is None:
            return Outcome.failure(ErrorKind.ACCOUNT_GONE, ACCOUNT_GONE_MESSAGE)
        if not current_password or not verify_password(current_password, fresh.hashed_password):
            return Outcome.failure(ErrorKind.BAD_CREDENTIALS, WRONG_CURRENT_PASSWORD_MESSAGE)
        try:
            self.store.change_password(fresh.id, password, password_confirm)
        except AccountValidationError as exc:
            return Outcome.failure(ErrorKind.VALIDATION, str(exc))
        logger.info("Password changed for account %s", fresh.id)
        return self._grant_current(fresh.id)

    def delete_account(self, account: Account) -> Outcome[None]:
        if not self.store.delete_account(account.id):
            return Outcome.failure(ErrorKind.ACCOUNT_GONE, ACCOUNT_GONE_MESSAGE)
        logger.info("Account %s deleted", account.id)
        return Outcome.success()

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: Optional[str], build_reset_url: Callable[[str], str]) -> Outcome[None]:
        """Store a reset token for the account and email the plaintext link.

        build_reset_url maps the plaintext secret to the link placed in the
        email; the HTTP layer knows the host and route, this layer does not.
        """
        account = self.store.get_by_email(email) if email else None
        if account is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, NO_SUCH_EMAIL_MESSAGE)

        raw_token = generate_reset_token()
        self.store.update_account(
            account.id,
            password_reset_token=hash_reset_token(raw_token),
            password_reset_expires=time.time() + self.config.reset_token_expire_seconds,
        )

        reset_url = build_reset_url(raw_token)
        message = (
            "Forgot your password? Submit a PATCH request with your new password and "
            f"passwordConfirm to: {reset_url}\n"
            "If you didn't forget your password, please ignore this email!"
        )
        try:
            self.mailer.send_reset(account, reset_url, message)
        except MailDeliveryError:
            logger.exception("Reset email delivery failed for account %s; rolling back token", account.id)
            self.store.update_account(account.id, password_reset_token=None, password_reset_expires=None)
            return Outcome.failure(ErrorKind.DELIVERY_ERROR, DELIVERY_FAILED_MESSAGE)
        return Outcome.success()

    def reset_password(self, raw_token: str, password: str, password_confirm: str) -> Outcome[SessionGrant]:
        """Exchange a plaintext reset secret for a new password and a new session."""
        token_hash = hash_reset_token(raw_token)
        now = time.time()
        account = self.store.get_by_reset_token(token_hash, now=now)
        if account is None or not hmac.compare_digest(account.password_reset_token or "", token_hash):
            return Outcome.failure(ErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_MESSAGE)
        try:
            consumed = self.store.change_password(
                account.id, password, password_confirm, reset_token_hash=token_hash, now=time.time()
            )
        except AccountValidationError as exc:
            return Outcome.failure(ErrorKind.VALIDATION, str(exc))
        if not consumed:
            return Outcome.failure(ErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_MESSAGE)
        logger.info("Password reset completed for account %s", account.id)
        return self._grant_current(account.id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def resolve_token(self, token: Optional[str]) -> Outcome[Account]:
        """Validate a session token and return the live account it belongs to."""
        if not token:
            return Outcome.failure(ErrorKind.UNAUTHENTICATED, "You are not logged in! Please log in to get access.")
        payload = self.issuer.decode(token)
        if payload is None:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, "Invalid token. Please log in again.")
        account = self.store.get_by_id(payload["id"])
        if account is None:
            return Outcome.failure(ErrorKind.ACCOUNT_GONE, ACCOUNT_GONE_MESSAGE)
        if account.changed_password_after(payload["iat"]):
            return Outcome.failure(ErrorKind.PASSWORD_CHANGED, "User recently changed password. Please log in again.")
        return Outcome.success(account)

    def _grant(self, account: Account) -> SessionGrant:
        return SessionGrant(account=account, token=self.issuer.issue(account.id))

    def _grant_current(self, account_id: int) -> Outcome[SessionGrant]:
        # Re-read after a write; a concurrent delete can remove the row in between.
        account = self.store.get_by_id(account_id)
        if account is None:
            return Outcome.failure(ErrorKind.ACCOUNT_GONE, ACCOUNT_GONE_MESSAGE)
        return Outcome.success(self._grant(account))
