"""Unit tests for core/config.py -- startup validation and AuthConfig resolution."""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "k" * 40


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="", smtp_host="smtp.example.com")


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=True, secret_key="short")


def test_production_requires_smtp():
    with pytest.raises(ValidationError, match="SMTP_HOST"):
        Settings(debug=False, secret_key=GOOD_KEY, smtp_host="")


def test_debug_generates_secret_key():
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_secure_cookies_follow_environment_when_unset():
    prod = Settings(debug=False, secret_key=GOOD_KEY, smtp_host="smtp.example.com", environment="production")
    dev = Settings(debug=True, secret_key=GOOD_KEY, environment="development")
    assert prod.auth_config().secure_cookies is True
    assert dev.auth_config().secure_cookies is False


def test_explicit_secure_cookies_wins():
    settings = Settings(debug=True, secret_key=GOOD_KEY, environment="production", secure_cookies=False)
    assert settings.auth_config().secure_cookies is False


def test_auth_config_units_and_immutability():
    config = Settings(
        debug=True, secret_key=GOOD_KEY, cookie_expire_days=2, reset_token_expire_minutes=10
    ).auth_config()
    assert config.cookie_expire_seconds == 2 * 24 * 60 * 60
    assert config.reset_token_expire_seconds == 600
    with pytest.raises(AttributeError):
        config.secret_key = "other"


def test_reset_url_base_resolved_into_auth_config():
    config = Settings(debug=True, secret_key=GOOD_KEY, password_reset_url_base="https://app.example.com/reset/").auth_config()
    assert config.reset_url_base == "https://app.example.com/reset"
    assert Settings(debug=True, secret_key=GOOD_KEY).auth_config().reset_url_base == ""
