import logging
import os
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Protocol

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class EmailNotifier(Protocol):
    def send(self, to_address: str, subject: str, body: str) -> None:
        ...


class SmtpEmailNotifier:
    """Sends plain-text mail through the SMTP server named by SMTP_* settings."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str = "no-reply@busbooking.local",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_address: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

        logger.info("Email sent to=%s subject=%s", to_address, subject)


class LoggingEmailNotifier:
    """Logs mail instead of sending it. Keeps what it 'sent' for inspection."""

    def __init__(self):
        self.sent: list[dict] = []

    def send(self, to_address: str, subject: str, body: str) -> None:
        self.sent.append(
            {
                "to": to_address,
                "subject": subject,
                "body": body,
                "sent_at": datetime.now(timezone.utc),
            }
        )
        logger.info("Email (not delivered) to=%s subject=%s", to_address, subject)


def build_notifier() -> EmailNotifier:
    host = os.getenv("SMTP_HOST")
    if not host:
        return LoggingEmailNotifier()

    return SmtpEmailNotifier(
        host=host,
        port=int(os.getenv("SMTP_PORT", "587")),
        username=os.getenv("SMTP_USERNAME"),
        password=os.getenv("SMTP_PASSWORD"),
        sender=os.getenv("SMTP_FROM", "no-reply@busbooking.local"),
        use_tls=os.getenv("SMTP_USE_TLS", "true").lower() in {"1", "true", "yes"},
    )
