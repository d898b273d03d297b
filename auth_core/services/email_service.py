"""
Email Service

SMTP delivery for account emails with bounded retry and backoff.
"""

import asyncio
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
import structlog

from ..core.config import Settings
from ..core.exceptions import EmailDeliveryError
from ..interfaces.email_interface import IEmailTransport

logger = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]+>")


class SMTPEmailTransport(IEmailTransport):
    """Sends email through the configured SMTP relay."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self.settings.EMAILS_FROM_NAME, self.settings.EMAILS_FROM_EMAIL))
        message["To"] = to
        message["Subject"] = subject

        message.attach(MIMEText(_TAG_RE.sub("", html_body).strip(), "plain"))
        message.attach(MIMEText(html_body, "html"))
        return message

    def _deliver(self, message: MIMEMultipart) -> None:
        settings = self.settings
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS) as server:
            if settings.SMTP_TLS:
                server.starttls()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(message)

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if not self.settings.smtp_configured:
            logger.error("Email environment variables are not present")
            raise EmailDeliveryError("Email transport is not configured")

        message = self._build_message(to, subject, html_body)
        attempts = self.settings.EMAIL_MAX_RETRIES
        delay = self.settings.EMAIL_RETRY_BACKOFF_SECONDS

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(self._deliver, message)
                logger.info("Email sent", subject=subject, attempt=attempt)
                return
            except (smtplib.SMTPException, OSError) as e:
                logger.warning(
                    "Email delivery attempt failed",
                    subject=subject,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e)
                )
                if attempt == attempts:
                    raise EmailDeliveryError() from e
                await asyncio.sleep(delay)
                delay *= 2
