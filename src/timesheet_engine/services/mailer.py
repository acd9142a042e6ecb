"""Outbound email over SMTP."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from timesheet_engine.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class MailerDisabledError(RuntimeError):
    """Raised when sending is attempted without SMTP configured."""


class Mailer:
    """Sends plain-text email through the configured SMTP relay.

    smtplib is blocking, so each send runs in a worker thread.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.email_enabled

    def build_message(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: list[Attachment] | None = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_from
        msg["To"] = to
        msg.set_content(body)
        for attachment in attachments or []:
            maintype, _, subtype = attachment.content_type.partition("/")
            msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return msg

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        """Send a message. Raises on SMTP failure or when disabled."""
        if not self.enabled:
            raise MailerDisabledError("SMTP is not configured")
        msg = self.build_message(to, subject, body, attachments)
        await asyncio.to_thread(self._deliver, msg)
        logger.info("Sent email '%s' to %s", subject, to)

    def _deliver(self, msg: EmailMessage) -> None:
        settings = self.settings
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            if settings.smtp_tls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)
