"""Mail Senders — Sender protocol adapters for SMTP and log-only delivery.

Invariants:
    - send() raises on any failure; classification into retry/terminal is
      the dispatcher's job, not the sender's
    - SMTP IO runs on a worker thread: smtplib is blocking

Design Decisions:
    - smtplib + EmailMessage over an async SMTP client: the standard library
      covers plain-text mail, and to_thread keeps the event loop free
    - LoggingSender used when no SMTP host is configured (local dev, tests)
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from leaveflow.core.errors import TransientDeliveryError

logger = logging.getLogger(__name__)


class SMTPSender:
    """Delivers plain-text mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        from_address: str = "no-reply@leaveflow.local",
        from_name: str = "HR Management System",
        use_starttls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_starttls = use_starttls
        self.timeout = timeout

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_starttls:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> None:
        msg = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise TransientDeliveryError(f"SMTP delivery to {to} failed: {e}") from e
        logger.info(f"Email sent to {to}: {subject}")


class LoggingSender:
    """Writes notifications to the log instead of mailing them."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info(
            f"Email (not sent, no SMTP host) to {to}: {subject}",
            extra={"event_type": "email_logged"},
        )


def build_sender(settings) -> SMTPSender | LoggingSender:
    """Pick the sender for the configured transport."""
    if not settings.smtp_host:
        return LoggingSender()
    return SMTPSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        from_address=settings.smtp_from_address,
        from_name=settings.smtp_from_name,
        use_starttls=settings.smtp_use_starttls,
        timeout=settings.delivery_send_timeout_seconds,
    )
