"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Service and route code never touches SQL.

Validation lives here, next to the schema: email shape, password length,
password/confirmation match, and email uniqueness are checked before any
write that carries user input (create_account, change_password). Writes
the system makes on its own behalf (reset-token bookkeeping) go through
update_account(), which skips validation.

Security:
  All queries use bound parameters. No f-strings in SQL.

  change_password(..., reset_token_hash=...) is a single conditional UPDATE:
  it only matches while the stored hash is unchanged and unexpired, and it
  clears the hash in the same statement. Two concurrent confirmations of the
  same reset link cannot both succeed.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Account
from auth.tokens import hash_password

PASSWORD_MAX_LENGTH = 255
# bcrypt only accepts this many bytes of input and raises on anything longer.
PASSWORD_MAX_BYTES = 72

# Deliberately loose: one "@", something on each side, a dot in the domain.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("password_changed_at", Float),  # epoch seconds
    Column("password_reset_token", String(64), index=True),  # SHA-256 hex
    Column("password_reset_expires", Float),  # epoch seconds
    Column("created_at", String(32), nullable=False),
)

# Columns update_account() may touch. Keeps user input out of column names.
_UPDATABLE = {"password_reset_token", "password_reset_expires"}


class AccountValidationError(ValueError):
    """Raised when user-supplied account data fails validation."""


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str) -> None:
    if not _EMAIL_RE.match(email):
        raise AccountValidationError("Please provide a valid email.")


def validate_new_password(password: str, password_confirm: str, min_length: int) -> None:
    """Raise AccountValidationError unless the password may be stored."""
    if len(password) < min_length:
        raise AccountValidationError(f"Password must be at least {min_length} characters.")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise AccountValidationError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters.")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise AccountValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes.")
    if password != password_confirm:
        raise AccountValidationError("Passwords are not the same.")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        account_id = store.create_account("a@x.com", "Secret123", "Secret123")
        account = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str, password_min_length: int = 8) -> None:
        self.password_min_length = password_min_length
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email (normalized). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_reset_token(self, token_hash: str, now: float | None = None) -> Account | None:
        """Return the account holding token_hash if its reset window is still open."""
        now = time.time() if now is None else now
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(
                    (_accounts.c.password_reset_token == token_hash) & (_accounts.c.password_reset_expires > now)
                )
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, email: str, password: str, password_confirm: str) -> int:
        """Validate, hash, and insert a new account. Returns its database ID.

        Raises AccountValidationError for a malformed email, a rejected
        password, or an email that is already registered.
        """
        email = normalize_email(email)
        validate_email(email)
        validate_new_password(password, password_confirm, self.password_min_length)
        hashed = hash_password(password)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        email=email,
                        hashed_password=hashed,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise AccountValidationError("An account with that email already exists.") from exc
        return result.inserted_primary_key[0]

    def update_account(self, account_id: int, **fields) -> bool:
        """Partial update of reset-token bookkeeping fields, without validation.

        Only keys in _UPDATABLE are accepted; anything else raises ValueError.
        Returns True if a row was updated, False if account_id was not found.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def change_password(
        self,
        account_id: int,
        password: str,
        password_confirm: str,
        reset_token_hash: str | None = None,
        now: float | None = None,
    ) -> bool:
        """Validate and store a new password; stamp password_changed_at.

        With reset_token_hash, the update only applies while that hash is still
        stored on the account and unexpired, and it clears both reset fields in
        the same statement (match-and-clear). Without it, any pending reset
        token is left untouched.

        Raises AccountValidationError if the password is rejected (nothing is
        written). Returns True if the row was updated.
        """
        validate_new_password(password, password_confirm, self.password_min_length)
        hashed = hash_password(password)
        now = time.time() if now is None else now
        condition = _accounts.c.id == account_id
        values: dict = {"hashed_password": hashed, "password_changed_at": now}
        if reset_token_hash is not None:
            condition = (
                condition
                & (_accounts.c.password_reset_token == reset_token_hash)
                & (_accounts.c.password_reset_expires > now)
            )
            values["password_reset_token"] = None
            values["password_reset_expires"] = None
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(condition).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        password_changed_at=row.password_changed_at,
        password_reset_token=row.password_reset_token,
        password_reset_expires=row.password_reset_expires,
        created_at=row.created_at,
    )
