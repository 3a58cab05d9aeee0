"""Urgent message channel for the Message contact method. If SMTP is not configured, the message is logged only."""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from docreach.config import settings
from docreach.core.errors import DependencyError

logger = logging.getLogger(__name__)


class EmailMessageChannel:
    def send_urgent(
        self,
        to_email: str,
        doctor_name: str,
        requester_name: Optional[str],
        requester_phone: Optional[str],
        description: Optional[str],
    ) -> bool:
        """Send a one-way urgent message. Returns True if handed to SMTP, False if only logged."""
        who = requester_name or "A patient"
        body = (
            f"Dr. {doctor_name},\n\n{who} has requested urgent contact through DocReach.\n\n"
            f"Description: {description or 'not provided'}\n"
            f"Call back: {requester_phone or 'not provided'}\n\nDocReach"
        )
        if not all([settings.smtp_host, settings.smtp_user, settings.smtp_password]):
            logger.info("SMTP not configured; urgent message for %s logged only: %s", to_email, body)
            return False
        from_addr = settings.email_from or settings.smtp_user
        msg = MIMEMultipart("alternative")
        msg["Subject"] = "Urgent patient contact request"
        msg["From"] = from_addr
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain"))
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
                server.starttls()
                server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(from_addr, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send urgent message to %s: %s", to_email, e)
            raise DependencyError("Message delivery failed", "MESSAGE_DELIVERY_FAILED") from e
        logger.info("Urgent message sent to %s", to_email)
        return True


def get_message_channel() -> EmailMessageChannel:
    return EmailMessageChannel()
