"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
service do the work; the only behaviour here is the two questions every
caller asks of an account: "did the password change after this token?" and
"what may be shown to the client?".

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A user account as persisted by AccountStore.

    email is stored normalized (stripped, lowercased). Timestamps that take
    part in comparisons (password_changed_at, password_reset_expires) are epoch
    seconds as floats; created_at is an ISO 8601 string for display.

    password_reset_token holds the SHA-256 hex digest of the reset secret,
    never the secret itself. Both reset fields are None when no reset is pending.
    """

    email: str
    hashed_password: str
    id: int | None = None
    password_changed_at: float | None = None
    password_reset_token: str | None = None
    password_reset_expires: float | None = None
    created_at: str | None = None

    def changed_password_after(self, issued_at: float) -> bool:
        """Return True if the password was changed after a token issued at issued_at."""
        if self.password_changed_at is None:
            return False
        return self.password_changed_at > issued_at

    def to_public(self) -> dict:
        """Fields safe to send to a client. The password hash is never included."""
        return {
            "id": self.id,
            "email": self.email,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed session token and its lifetime (epoch seconds)."""

    token: str
    issued_at: float
    expires_at: float


@dataclass(frozen=True)
class SessionGrant:
    """Result of a successful signup, login, password change, or reset."""

    account: Account
    token: IssuedToken
