"""
Email Channel

Sends notifications via SMTP using aiosmtplib.
Without an SMTP host the send is simulated and logged as such.
"""
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import aiosmtplib

from .base_channel import BaseChannel, DeliveryResult
from ..models.notification import DeliveryChannel
from ..models.queue import QueueItem

logger = logging.getLogger("notifyhub.channels.email")


class EmailChannel(BaseChannel):
    """Send notifications by email"""

    channel = DeliveryChannel.EMAIL

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_name: str = "AutoLab",
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_name = from_name

    @property
    def simulated(self) -> bool:
        return not (self.smtp_host and self.smtp_user)

    async def deliver(self, item: QueueItem) -> DeliveryResult:
        if self.simulated:
            logger.warning(
                f"SIMULATED email for notification {item.notification_id} "
                f"(SMTP not configured, nothing was sent)"
            )
            return DeliveryResult(success=True)

        email_to = item.contact.email if item.contact else None
        if not email_to:
            return DeliveryResult(success=False, error="No email address for recipient")

        notification = item.notification
        text = notification.body
        if notification.action_url:
            text += f"\n\n{notification.action_url}"

        try:
            msg = MIMEMultipart("alternative")
            msg["From"] = f"{self.from_name} <{self.smtp_user}>"
            msg["To"] = email_to
            msg["Subject"] = notification.title
            msg.attach(MIMEText(text, "plain", "utf-8"))

            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                use_tls=False,
                start_tls=True,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Email send error for notification {item.notification_id}: {e}")
            return DeliveryResult(success=False, error=str(e))

        logger.info(f"Email for notification {item.notification_id} sent to {email_to}")
        return DeliveryResult(success=True)
