"""Unit tests for auth/mail.py -- SMTP transport failure mapping and transport selection."""

import smtplib
import socket
from unittest.mock import MagicMock, patch

import pytest

from auth.mail import LogMailer, MailDeliveryError, SmtpMailer, build_mailer
from auth.models import Account
from core.config import Settings

ACCOUNT = Account(id=1, email="a@x.com", hashed_password="x")


def _mailer() -> SmtpMailer:
    return SmtpMailer(host="smtp.example.com", port=587, sender="no-reply@example.com", username="u", password="p")


def test_send_reset_uses_starttls_login_and_timeout():
    with patch("auth.mail.smtplib.SMTP") as smtp_cls:
        server = smtp_cls.return_value.__enter__.return_value
        _mailer().send_reset(ACCOUNT, "http://h/reset/abc", "reset at http://h/reset/abc")

    smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("u", "p")
    msg = server.send_message.call_args.args[0]
    assert msg["To"] == "a@x.com"
    assert "http://h/reset/abc" in msg.get_content()


@pytest.mark.parametrize(
    "error",
    [smtplib.SMTPRecipientsRefused({}), socket.timeout("timed out"), ConnectionRefusedError()],
)
def test_transport_failures_become_delivery_errors(error):
    with patch("auth.mail.smtplib.SMTP") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value.send_message = MagicMock(side_effect=error)
        with pytest.raises(MailDeliveryError):
            _mailer().send_reset(ACCOUNT, "http://h/reset/abc", "msg")


def test_build_mailer_without_smtp_host_logs():
    assert isinstance(build_mailer(Settings(debug=True, smtp_host=""), subject="s"), LogMailer)


def test_build_mailer_with_smtp_host():
    mailer = build_mailer(Settings(debug=True, smtp_host="smtp.example.com", smtp_port=2525), subject="Reset")
    assert isinstance(mailer, SmtpMailer)
    assert mailer.port == 2525
    assert mailer.subject == "Reset"
