"""
Outbound notifications for the reservation flow.

Delivery is best-effort everywhere: the reservation outcome never depends on
whether a message went out.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

from rsvp.core import config

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    pass


class NotificationGateway(ABC):
    """Channel used to deliver one-time codes and confirmations to a user."""

    @abstractmethod
    def send_code(self, user_id: int, event_id: int, code: str) -> None:
        """Deliver the verification code for a pending reservation."""

    @abstractmethod
    def send_confirmation(self, user_id: int, event_id: int) -> None:
        """Tell the user their spot is confirmed."""


def address_for(user_id: int) -> str:
    return config.NOTIFY_ADDRESS_TEMPLATE.format(user_id=user_id)


def _build_message(*, to_email: str, subject: str, text_content: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = f"{config.SMTP_FROM_NAME} <{config.SMTP_FROM_EMAIL}>"
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    return message


class EmailNotificationGateway(NotificationGateway):
    """Sends mail over SMTP, or logs a preview when SMTP is not configured."""

    def __init__(self, host: str | None = None, port: int | None = None):
        self.host = host if host is not None else config.SMTP_HOST
        self.port = port or config.SMTP_PORT

    def send_code(self, user_id: int, event_id: int, code: str) -> None:
        self._send(
            to_email=address_for(user_id),
            subject=f"Verify Your Registration - event {event_id}",
            text_content=(
                f"Your verification code is: {code}\n"
                f"This code expires in {config.OTP_TTL_MINUTES} minutes.\n\n"
                "If you didn't request this registration, please ignore this email."
            ),
            preview=f"OTP Code: {code}",
        )

    def send_confirmation(self, user_id: int, event_id: int) -> None:
        self._send(
            to_email=address_for(user_id),
            subject=f"Registration Confirmed - event {event_id}",
            text_content="Your registration has been confirmed. See you at the event!",
            preview=f"Event: {event_id}",
        )

    def _send(self, *, to_email: str, subject: str, text_content: str, preview: str) -> None:
        if not self.host:
            logger.info("EMAIL PREVIEW | to=%s | subject=%s | %s", to_email, subject, preview)
            return

        message = _build_message(to_email=to_email, subject=subject, text_content=text_content)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=config.SMTP_TIMEOUT_SECONDS) as smtp:
                if config.SMTP_USE_TLS:
                    smtp.starttls(context=ssl.create_default_context())
                if config.SMTP_USERNAME:
                    smtp.login(config.SMTP_USERNAME, config.SMTP_PASSWORD or "")
                smtp.send_message(message)
        except smtplib.SMTPAuthenticationError as exc:
            raise NotificationDeliveryError("SMTP authentication failed") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDeliveryError(f"Unable to deliver email to {to_email}") from exc
        logger.info("Sent '%s' to %s", subject, to_email)
