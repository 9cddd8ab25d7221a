"""
Outbound email over SMTP.

smtplib is blocking, so every send runs in a worker thread.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from config import settings
from utils.logging import get_logger

logger = get_logger("email-service")


def is_configured() -> bool:
    return bool(settings.SMTP_HOST)


def _build_message(to: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text or "This message requires an HTML capable mail client.")
    message.add_alternative(html, subtype="html")
    return message


def _open_connection() -> smtplib.SMTP:
    connection = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10)
    if settings.SMTP_USE_TLS:
        connection.starttls()
    if settings.SMTP_USER and settings.SMTP_PASSWORD:
        connection.login(settings.SMTP_USER, settings.SMTP_PASSWORD.get_secret_value())
    return connection


def _send_sync(message: EmailMessage) -> None:
    with _open_connection() as connection:
        connection.send_message(message)


async def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Send one email. Returns False when SMTP is not configured or delivery fails."""
    if not is_configured():
        logger.debug("SMTP not configured, email skipped", extra={"data": {"to": to, "subject": subject}})
        return False

    try:
        await asyncio.to_thread(_send_sync, _build_message(to, subject, html, text))
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email", extra={"data": {"to": to, "subject": subject, "error": str(e)}})
        return False

    logger.info("Email sent", extra={"data": {"to": to, "subject": subject}})
    return True


async def verify_connection() -> bool:
    """Open and close an SMTP connection to validate configuration at startup."""
    if not is_configured():
        logger.info("SMTP not configured, email notifications disabled")
        return False

    def _verify():
        with _open_connection() as connection:
            connection.noop()

    try:
        await asyncio.to_thread(_verify)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP connection failed", extra={"data": {"host": settings.SMTP_HOST, "error": str(e)}})
        return False

    logger.info("SMTP server is ready", extra={"data": {"host": settings.SMTP_HOST}})
    return True
