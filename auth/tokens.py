"""
auth/tokens.py -- Session tokens, password hashing, and reset secrets.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the account id, an issued-at
       time and an expiry. iat is written with sub-second precision so a
       token minted right after a password change is never mistaken for one
       minted before it. Verification returns None on any failure -- the
       session dependency turns that into a 401.

  Passwords: bcrypt directly. Its cost factor makes brute-force expensive.
       The _DUMMY_HASH constant enables timing equalization in
       authenticate() so response time does not reveal whether an email
       is registered [C1].

  Reset secrets: secrets.token_hex(32) gives 256 bits of entropy. Only the
       SHA-256 digest is stored; the plaintext travels once, in the email.
       A fast hash is enough for a high-entropy secret -- bcrypt's slowness
       protects low-entropy passwords, not random tokens.

  Cookie: "jwt", httpOnly. Secure and SameSite=None only when
       AuthConfig.secure_cookies is set (production), SameSite=Lax otherwise.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import IssuedToken
from core.config import AuthConfig

if TYPE_CHECKING:
    from auth.models import Account
    from auth.store import AccountStore

logger = logging.getLogger("authgate.auth")

COOKIE_NAME = "jwt"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt raises ValueError for input longer than 72 bytes. The store rejects
    such passwords in validate_new_password() before they get here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("authgate_timing_dummy")


def authenticate(store: AccountStore, email: str, password: str) -> Account | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the Account on success, None on any failure.
    """
    account = store.get_by_email(email)
    if account is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return account


# ---------------------------------------------------------------------------
# Reset secrets
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a new plaintext reset secret (64 hex chars)."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a reset secret."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Token issuer
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Signs and verifies session tokens and writes the session cookie.

    Usage:
        issuer = TokenIssuer(settings.auth_config())
        issued = issuer.issue(account.id)
        issuer.set_cookie(response, issued.token)
        payload = issuer.decode(issued.token)   # dict or None
    """

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    @property
    def secure_cookies(self) -> bool:
        return self._config.secure_cookies

    def issue(self, account_id: int) -> IssuedToken:
        issued_at = time.time()
        expires_at = issued_at + self._config.token_expire_seconds
        payload = {
            "id": account_id,
            "iat": issued_at,
            "exp": int(expires_at),
        }
        token = jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)
        return IssuedToken(token=token, issued_at=issued_at, expires_at=expires_at)

    def decode(self, token: str) -> dict | None:
        """Decode and verify a token. Returns the payload dict or None on any failure.

        Covers bad signatures, malformed input, and expiry (jose checks exp).
        A payload without id or iat is treated as malformed.
        """
        try:
            payload = jwt.decode(token, self._config.secret_key, algorithms=[self._config.algorithm])
        except JWTError:
            return None
        if not isinstance(payload.get("id"), int) or not isinstance(payload.get("iat"), (int, float)):
            return None
        return payload

    def set_cookie(self, response, token: str) -> None:
        """Write the session token as an httpOnly cookie on the response.

        max_age and expires both come from cookie_expire_seconds so every
        browser honours the same lifetime.
        """
        max_age = self._config.cookie_expire_seconds
        response.set_cookie(
            COOKIE_NAME,
            value=token,
            max_age=max_age,
            expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
            httponly=True,
            secure=self._config.secure_cookies,
            samesite=self._samesite(),
        )

    def clear_cookie(self, response) -> None:
        """Overwrite the session cookie with an empty, already-expired value."""
        response.set_cookie(
            COOKIE_NAME,
            value="",
            max_age=0,
            expires=datetime.now(timezone.utc) - timedelta(seconds=10),
            httponly=True,
            secure=self._config.secure_cookies,
            samesite=self._samesite(),
        )

    def _samesite(self) -> str:
        # Browsers reject SameSite=None without Secure.
        return "none" if self._config.secure_cookies else "lax"
