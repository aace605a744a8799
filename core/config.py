"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Two layers:
  Settings (BaseSettings): raw values from environment variables and an
      optional .env file. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Validated once, at first use.

  AuthConfig (frozen dataclass): the resolved, immutable subset the auth
      components need. Built once at startup by Settings.auth_config() and
      passed into TokenIssuer and AccountService at construction. Derived
      values (secure_cookies from ENVIRONMENT) are resolved here so nothing
      downstream branches on the deployment mode per request.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every session token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY or
       SMTP_HOST is a hard startup failure. Rotating SECRET_KEY invalidates
       all outstanding sessions; that is accepted, not handled specially.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authgate.db'}"


@dataclass(frozen=True)
class AuthConfig:
    """Immutable auth configuration injected into the token and account components."""

    secret_key: str
    token_expire_seconds: int
    cookie_expire_seconds: int
    secure_cookies: bool
    reset_token_expire_seconds: int
    password_min_length: int
    # Reset links point here when set; otherwise at the API route.
    reset_url_base: str = ""
    algorithm: str = "HS256"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: str = "development"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = 86400
    cookie_expire_days: int = 1
    # None means "derive from ENVIRONMENT" -- resolved in auth_config().
    secure_cookies: Optional[bool] = None

    # ------------------------------------------------------------------
    # Passwords and reset
    # ------------------------------------------------------------------

    password_min_length: int = 8
    reset_token_expire_minutes: int = 10
    # When set, reset links point here (e.g. a frontend page) instead of the API route.
    password_reset_url_base: str = ""

    # ------------------------------------------------------------------
    # Mail (SMTP)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True
    smtp_timeout_seconds: float = 10.0
    mail_from: str = "AuthGate <no-reply@localhost>"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:3000"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    reset_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        """Enforce SECRET_KEY and SMTP policy [M6][M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.
            Without SMTP_HOST, reset links are logged instead of mailed.

        Production mode: refuse to start without SECRET_KEY or SMTP_HOST.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not self.smtp_host and not self.debug:
            raise ValueError("SMTP_HOST is required in production mode so password reset emails can be delivered.")
        return self

    def auth_config(self) -> AuthConfig:
        """Resolve the immutable AuthConfig for this process."""
        secure = self.secure_cookies
        if secure is None:
            secure = self.environment == "production"
        return AuthConfig(
            secret_key=self.secret_key,
            token_expire_seconds=self.token_expire_seconds,
            cookie_expire_seconds=self.cookie_expire_days * 24 * 60 * 60,
            secure_cookies=secure,
            reset_token_expire_seconds=self.reset_token_expire_minutes * 60,
            password_min_length=self.password_min_length,
            reset_url_base=self.password_reset_url_base.rstrip("/"),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
