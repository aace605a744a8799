"""
auth/mail.py -- Mail transports for password reset links.

Two implementations share one method, send_reset(account, reset_url, message):

  SmtpMailer -- stdlib smtplib with STARTTLS and a bounded timeout. Any SMTP
      or socket failure is re-raised as MailDeliveryError so the reset flow
      can roll the token back and report the failure synchronously.

  LogMailer -- development only (DEBUG=true and no SMTP_HOST). Writes the
      reset link to the log instead of sending it. Settings refuses to start
      in production without SMTP_HOST, so this never runs there.

No retries: a failed send is reported to the caller, not re-attempted.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from auth.models import Account
    from core.config import Settings

logger = logging.getLogger("authgate.auth.mail")


class MailDeliveryError(Exception):
    """The transport could not hand the message to the mail server."""


class MailTransport(Protocol):
    def send_reset(self, account: Account, reset_url: str, message: str) -> None: ...


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 10.0,
        subject: str = "Your password reset token",
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout
        self.subject = subject

    def send_reset(self, account: Account, reset_url: str, message: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = account.email
        msg["Subject"] = self.subject
        msg.set_content(message)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.starttls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"Could not deliver reset email: {exc}") from exc
        logger.info("Reset email sent to account %s", account.id)


class LogMailer:
    def send_reset(self, account: Account, reset_url: str, message: str) -> None:
        logger.warning("SMTP not configured -- reset link for %s: %s", account.email, reset_url)


def build_mailer(settings: Settings, subject: str) -> MailTransport:
    """Pick the transport for this process from settings."""
    if not settings.smtp_host:
        logger.warning("SMTP_HOST not set -- password reset links will be logged, not emailed")
        return LogMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
        timeout=settings.smtp_timeout_seconds,
        subject=subject,
    )
