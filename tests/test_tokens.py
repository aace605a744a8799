"""Unit tests for auth/tokens.py -- TokenIssuer, password hashing, reset secrets.

Covers:
- issued tokens decode to the account id with a sub-second iat
- tampered, foreign-key, expired and claim-less tokens decode to None
- session cookie attributes in development and production configurations
- logout cookie is empty and already expired
- reset secrets are random and stored only as a SHA-256 digest
"""

import time

from jose import jwt
from starlette.responses import Response

from auth.tokens import (
    COOKIE_NAME,
    TokenIssuer,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from conftest import TEST_SECRET, make_config


def _set_cookie_header(response: Response) -> str:
    headers = [v.decode() for k, v in response.raw_headers if k == b"set-cookie"]
    assert len(headers) == 1
    return headers[0]


class TestIssueAndDecode:
    def test_issued_token_carries_account_id(self) -> None:
        issuer = TokenIssuer(make_config())
        before = time.time()
        issued = issuer.issue(42)
        payload = issuer.decode(issued.token)
        assert payload is not None
        assert payload["id"] == 42
        assert before <= payload["iat"] <= time.time()
        assert issued.expires_at - issued.issued_at == 3600

    def test_tampered_token_rejected(self) -> None:
        issuer = TokenIssuer(make_config())
        head, _body, sig = issuer.issue(1).token.split(".")
        _head, forged_body, _sig = issuer.issue(2).token.split(".")
        assert issuer.decode(".".join([head, forged_body, sig])) is None

    def test_token_signed_with_other_key_rejected(self) -> None:
        other = TokenIssuer(make_config(secret_key="another-secret-key-of-sufficient-length-xyz"))
        assert TokenIssuer(make_config()).decode(other.issue(1).token) is None

    def test_expired_token_rejected(self) -> None:
        issuer = TokenIssuer(make_config(token_expire_seconds=-10))
        assert issuer.decode(issuer.issue(1).token) is None

    def test_garbage_rejected(self) -> None:
        assert TokenIssuer(make_config()).decode("not-a-jwt") is None

    def test_token_without_iat_rejected(self) -> None:
        token = jwt.encode({"id": 1, "exp": int(time.time()) + 60}, TEST_SECRET, algorithm="HS256")
        assert TokenIssuer(make_config()).decode(token) is None


class TestCookies:
    def test_development_cookie_is_httponly_lax_not_secure(self) -> None:
        issuer = TokenIssuer(make_config(secure_cookies=False))
        resp = Response()
        issuer.set_cookie(resp, "tok")
        header = _set_cookie_header(resp)
        assert header.startswith(f"{COOKIE_NAME}=tok")
        assert "HttpOnly" in header
        assert "samesite=lax" in header.lower()
        assert "Secure" not in header
        assert "max-age=3600" in header.lower()

    def test_production_cookie_is_secure_samesite_none(self) -> None:
        issuer = TokenIssuer(make_config(secure_cookies=True))
        resp = Response()
        issuer.set_cookie(resp, "tok")
        header = _set_cookie_header(resp)
        assert "Secure" in header
        assert "samesite=none" in header.lower()

    def test_clear_cookie_overwrites_with_expired_empty_value(self) -> None:
        issuer = TokenIssuer(make_config())
        resp = Response()
        issuer.clear_cookie(resp)
        header = _set_cookie_header(resp)
        assert header.startswith(f'{COOKIE_NAME}=""')
        assert "max-age=0" in header.lower()
        assert "HttpOnly" in header


class TestSecrets:
    def test_reset_tokens_are_random_hex(self) -> None:
        a, b = generate_reset_token(), generate_reset_token()
        assert a != b
        assert len(a) == 64
        int(a, 16)

    def test_reset_token_hash_is_stable_and_not_plaintext(self) -> None:
        raw = generate_reset_token()
        assert hash_reset_token(raw) == hash_reset_token(raw)
        assert hash_reset_token(raw) != raw
        assert len(hash_reset_token(raw)) == 64

    def test_password_hash_verifies(self) -> None:
        hashed = hash_password("Secret123")
        assert hashed != "Secret123"
        assert verify_password("Secret123", hashed)
        assert not verify_password("secret123", hashed)

    def test_verify_against_malformed_hash_is_false(self) -> None:
        assert not verify_password("Secret123", "not-a-bcrypt-hash")
