"""Failure notification emails."""
import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence, Tuple

import aiosmtplib

from booker.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def should_notify_failure(consecutive_failures: int, every: int = 3) -> bool:
    """Notify on every Nth consecutive failure, never on zero."""
    return consecutive_failures > 0 and consecutive_failures % every == 0


def format_failure_email(
        reason: str,
        consecutive_failures: int,
        available_slots: Sequence[str] = ()) -> Tuple[str, str]:
    """Build the subject and HTML body for a failure email."""
    subject = f"Booking Issue ({consecutive_failures} consecutive failures)"
    slots_html = ""
    if available_slots:
        items = "".join(f"<li>{html.escape(s)}</li>" for s in available_slots)
        slots_html = f"<p><strong>Available slots were:</strong></p><ul>{items}</ul>"
    body = f"""
    <html>
        <body>
            <h1>Booking encountered an issue</h1>
            <p><strong>Reason:</strong> {html.escape(reason)}</p>
            <p><strong>Consecutive failures:</strong> {consecutive_failures}</p>
            {slots_html}
            <p>The bot will retry at the next scheduled run.</p>
            <hr>
            <p style="color: #666; font-size: 12px;">Sent by Appointment Booker</p>
        </body>
    </html>
    """
    return subject, body


class EmailNotifier:
    """Sends notification emails over SMTP."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def enabled(self) -> bool:
        return bool(self.config.smtp_host)

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        """Send an email; without SMTP settings the send is only logged."""
        if not self.enabled:
            logger.info(f"[MOCK] Would send email to {to}: {subject}")
            return True

        message = MIMEMultipart()
        message["From"] = self.config.smtp_sender
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(html_body, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_username,
                password=self.config.smtp_password,
                start_tls=self.config.smtp_use_tls,
            )
            logger.info(f"Email sent: {subject}")
            return True
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Email failed: {e}")
            return False

    async def send_booking_failure(
            self,
            to: str,
            reason: str,
            consecutive_failures: int,
            available_slots: Sequence[str] = ()) -> bool:
        subject, body = format_failure_email(reason, consecutive_failures, available_slots)
        return await self.send(to, subject, body)
