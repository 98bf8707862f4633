"""
Account notification delivery.

Confirmation emails are best-effort: the dispatcher runs each send as a
background task, so a slow or failing mail server never delays or fails
the flow that triggered it.
"""

import asyncio
import html
import smtplib
import ssl
from email.message import EmailMessage
from typing import Set

from pydantic import BaseModel, ConfigDict

from identity_api.kernel.identity.ports import NotificationSender
from identity_api.logging_config import get_logger

logger = get_logger(__name__)

CONFIRMATION_SUBJECT = "Confirm your email"


class SmtpConfig(BaseModel):
    """SMTP connection settings."""

    model_config = ConfigDict(frozen=True)

    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    from_email: str = "noreply@templateapi.com"
    from_name: str = "Template API"
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.host)


def render_confirmation_email(confirmation_link: str) -> tuple[str, str]:
    """Return (text, html) bodies for a confirmation email."""
    text = (
        "Welcome!\n\n"
        "Please confirm your email by opening the link below:\n"
        f"{confirmation_link}\n\n"
        "If you did not sign up, ignore this email.\n"
    )
    link = html.escape(confirmation_link, quote=True)
    body = f"""<html>
  <body>
    <h2>Welcome!</h2>
    <p>Please confirm your email by clicking the link below:</p>
    <a href="{link}">Confirm Email</a>
    <p>If you did not sign up, ignore this email.</p>
  </body>
</html>"""
    return text, body


class SmtpNotificationSender:
    """Sends notifications through an SMTP relay."""

    def __init__(self, config: SmtpConfig):
        self.config = config

    def _from_header(self) -> str:
        if self.config.from_name:
            return f"{self.config.from_name} <{self.config.from_email}>"
        return self.config.from_email

    def _build_message(self, to: str, confirmation_link: str) -> EmailMessage:
        text, body = render_confirmation_email(confirmation_link)
        message = EmailMessage()
        message["Subject"] = CONFIRMATION_SUBJECT
        message["From"] = self._from_header()
        message["To"] = to
        message.set_content(text)
        message.add_alternative(body, subtype="html")
        return message

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(
            self.config.host,
            self.config.port,
            timeout=self.config.timeout_seconds,
        ) as client:
            if self.config.use_tls:
                client.starttls(context=ssl.create_default_context())
            if self.config.username:
                client.login(self.config.username, self.config.password)
            client.send_message(message)

    async def send_confirmation_email(self, to: str, confirmation_link: str) -> None:
        message = self._build_message(to, confirmation_link)
        await asyncio.to_thread(self._send, message)
        logger.info("Confirmation email sent", extra={"recipient": to})


class LoggingNotificationSender:
    """Stand-in sender for environments without SMTP; records the attempt only."""

    async def send_confirmation_email(self, to: str, confirmation_link: str) -> None:
        logger.info("SMTP not configured, confirmation email not sent", extra={"recipient": to})


def build_sender(config: SmtpConfig) -> NotificationSender:
    """Pick the SMTP sender when a host is configured."""
    if config.enabled:
        return SmtpNotificationSender(config)
    return LoggingNotificationSender()


class NotificationDispatcher:
    """
    Fire-and-forget delivery of notifications.

    Each send runs as its own task. References are kept until the task
    finishes so it cannot be garbage collected mid-flight, and failures are
    logged here instead of reaching the caller.
    """

    def __init__(self, sender: NotificationSender):
        self.sender = sender
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch_confirmation(self, to: str, confirmation_link: str) -> asyncio.Task:
        """Schedule a confirmation email and return immediately. Needs a running loop."""
        task = asyncio.create_task(self._deliver(to, confirmation_link))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, to: str, confirmation_link: str) -> None:
        try:
            await self.sender.send_confirmation_email(to, confirmation_link)
        except Exception:
            logger.exception("Failed to send confirmation email", extra={"recipient": to})

    async def drain(self) -> None:
        """Wait for every in-flight notification to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
