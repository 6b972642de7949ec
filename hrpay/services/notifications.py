from __future__ import annotations

import logging
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

from hrpay.settings import get_settings

logger = logging.getLogger("hrpay.notifications")

EMAIL_ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SMTP_TIMEOUT_SECONDS = 15


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    recipients: list[str]
    subject: str
    body: str
    reply_to: str | None = None


class NotificationChannel:
    name = "base"
    configured: bool = False

    def send(self, message: NotificationMessage) -> dict[str, Any]:
        raise NotImplementedError


def normalize_email(value: str | None) -> str | None:
    """Lower-case and collapse whitespace; None when the result is not an address."""
    normalized = " ".join((value or "").strip().lower().split())
    if not normalized or not EMAIL_ADDRESS_PATTERN.match(normalized):
        return None
    return normalized


def _unique_addresses(values: list[str]) -> tuple[list[str], int]:
    seen: list[str] = []
    dropped = 0
    for value in values:
        address = normalize_email(value)
        if address is None:
            dropped += 1
        elif address not in seen:
            seen.append(address)
    return seen, dropped


@dataclass(frozen=True, slots=True)
class SmtpConfig:
    host: str
    port: int
    user: str
    password: str
    sender: str
    use_tls: bool

    @classmethod
    def from_settings(cls) -> "SmtpConfig":
        settings = get_settings()
        return cls(
            host=(settings.smtp_host or "").strip(),
            port=int(settings.smtp_port),
            user=(settings.smtp_user or "").strip(),
            password=settings.smtp_pass or "",
            sender=(settings.smtp_from or "").strip(),
            use_tls=bool(settings.smtp_use_tls),
        )

    def missing_fields(self) -> list[str]:
        return [name for name, value in (("SMTP_HOST", self.host), ("SMTP_FROM", self.sender)) if not value]


class EmailChannel(NotificationChannel):
    name = "email"

    def __init__(self, config: SmtpConfig | None = None) -> None:
        self.config = config or SmtpConfig.from_settings()
        self.configured = not self.config.missing_fields()

    def _build(self, message: NotificationMessage, recipients: list[str]) -> EmailMessage:
        email_message = EmailMessage()
        email_message["From"] = self.config.sender
        email_message["To"] = ", ".join(recipients)
        email_message["Subject"] = message.subject
        if message.reply_to:
            email_message["Reply-To"] = message.reply_to
        email_message.set_content(message.body)
        return email_message

    def send(self, message: NotificationMessage) -> dict[str, Any]:
        recipients, dropped = _unique_addresses(message.recipients)
        if dropped:
            logger.warning("email_recipients_dropped", extra={"subject": message.subject, "dropped": dropped})
        if not recipients:
            return {"mode": "no_recipients", "sent": 0, "recipients": []}

        if not self.configured:
            logger.info(
                "email_not_sent_unconfigured",
                extra={"subject": message.subject, "recipient_count": len(recipients)},
            )
            return {"mode": "disabled", "sent": 0, "recipients": recipients}

        config = self.config
        with smtplib.SMTP(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS) as client:
            if config.use_tls:
                client.starttls()
            if config.user:
                client.login(config.user, config.password)
            client.send_message(self._build(message, recipients))
        logger.info("email_sent", extra={"subject": message.subject, "recipient_count": len(recipients)})
        return {"mode": "smtp", "sent": len(recipients), "recipients": recipients}

    def config_status(self) -> dict[str, Any]:
        return {
            "channel": self.name,
            "configured": self.configured,
            "host": self.config.host or None,
            "port": self.config.port,
            "sender_set": bool(self.config.sender),
            "auth": bool(self.config.user),
            "tls": self.config.use_tls,
            "missing_fields": self.config.missing_fields(),
        }


def safe_send_email(channel: NotificationChannel, message: NotificationMessage) -> dict[str, Any]:
    """Send through ``channel``; transport failures are logged and reported, never raised."""
    try:
        return channel.send(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception(
            "email_send_failed",
            extra={"channel": channel.name, "subject": message.subject},
        )
        return {"mode": "failed", "sent": 0, "recipients": [], "error": type(exc).__name__}
