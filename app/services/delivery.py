"""Outbound delivery of verification secrets: SMTP email and carrier email-to-SMS gateways.

When SEND_EMAILS / SEND_SMS are disabled the message is logged instead of sent,
which keeps local development free of SMTP credentials.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Carrier key -> email-to-SMS gateway domain (message goes to <digits>@<domain>).
SMS_GATEWAYS: dict[str, str] = {
    "att": "txt.att.net",
    "tmobile": "tmomail.net",
    "verizon": "vtext.com",
    "sprint": "messaging.sprintpcs.com",
    "uscellular": "email.uscc.net",
    "boost": "sms.myboostmobile.com",
    "cricket": "sms.cricketwireless.net",
    "metro": "mymetropcs.com",
    "googlefi": "msg.fi.google.com",
}


class DeliveryError(Exception):
    """Raised when a message could not be handed to the delivery channel."""

    def __init__(self, message: str, channel: str | None = None) -> None:
        self.message = message
        self.channel = channel
        super().__init__(message)


def _is_smtp_configured(settings: Settings) -> bool:
    if not settings.SMTP_HOST:
        return False
    if not settings.SMTP_USER or not settings.SMTP_USER.strip():
        return False
    if settings.SMTP_PASSWORD is None:
        return False
    return bool(settings.SMTP_PASSWORD.get_secret_value().strip())


def sms_gateway_address(phone: str, carrier: str) -> str:
    """Build <10-digit number>@<gateway> for a carrier. Raises DeliveryError if unusable."""
    domain = SMS_GATEWAYS.get(carrier.strip().lower())
    if domain is None:
        raise DeliveryError(f"Unsupported SMS carrier: {carrier}", channel="sms")
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        raise DeliveryError("Phone number must have 10 digits for SMS delivery", channel="sms")
    return f"{digits}@{domain}"


class EmailSender:
    """Send plain-text email over SMTP (STARTTLS when SMTP_USE_TLS)."""

    def __init__(self, settings: Settings, enabled: bool | None = None) -> None:
        self._settings = settings
        self._enabled = settings.SEND_EMAILS if enabled is None else enabled

    def send(self, to_address: str, subject: str, body: str) -> None:
        settings = self._settings
        if not self._enabled:
            logger.info(
                "Email delivery disabled; message not sent",
                extra={"to": to_address, "subject": subject},
            )
            if settings.APP_ENV == "dev":
                logger.debug("Undelivered email body: %s", body)
            return
        if not _is_smtp_configured(settings):
            raise DeliveryError(
                "SMTP is not configured (SMTP_HOST, SMTP_USER, SMTP_PASSWORD).",
                channel="email",
            )

        msg = EmailMessage()
        msg["From"] = settings.EMAIL_FROM
        msg["To"] = to_address
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with smtplib.SMTP(
                settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SEC
            ) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD.get_secret_value())
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"Email delivery failed: {e}", channel="email") from e


class SmsSender:
    """Send SMS through the carrier's email-to-SMS gateway."""

    def __init__(self, settings: Settings, email_sender: EmailSender | None = None) -> None:
        self._settings = settings
        self._email = email_sender or EmailSender(settings, enabled=settings.SEND_SMS)

    def send(self, phone: str, message: str, carrier: str | None = None) -> None:
        address = sms_gateway_address(phone, carrier or self._settings.DEFAULT_SMS_CARRIER)
        try:
            self._email.send(address, "Verification", message)
        except DeliveryError as e:
            raise DeliveryError(e.message, channel="sms") from e
