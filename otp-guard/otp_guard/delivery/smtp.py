"""
SMTP Email Channel
==================
Delivers codes as plain-text email via async SMTP.
"""

from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

import aiosmtplib
import structlog

from ..otp.exceptions import DeliveryError
from ..otp.masking import mask_identifier
from ..otp.models import OTPMessage, OTPPurpose
from .base import DeliveryChannel, render_email_text

logger = structlog.get_logger(__name__)

SUBJECTS = {
    OTPPurpose.EMAIL_VERIFICATION: "Verify your email address",
    OTPPurpose.PHONE_VERIFICATION: "Your verification code",
    OTPPurpose.PASSWORD_RESET: "Your password reset code",
    OTPPurpose.TWO_FACTOR_AUTH: "Your sign-in code",
}


@dataclass
class SMTPSettings:
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "no-reply@localhost"
    start_tls: bool = True


class SMTPEmailChannel(DeliveryChannel):
    """Sends codes using the configured SMTP server."""

    name = "smtp"

    def __init__(self, settings: SMTPSettings):
        self.settings = settings

    def build_message(self, message: OTPMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = SUBJECTS.get(message.purpose, "Your verification code")
        msg["From"] = self.settings.sender
        msg["To"] = message.identifier
        msg.set_content(render_email_text(message))
        return msg

    async def deliver(self, message: OTPMessage) -> None:
        recipient = mask_identifier(message.identifier)
        logger.info("Sending OTP email", recipient=recipient)

        try:
            await aiosmtplib.send(
                self.build_message(message),
                hostname=self.settings.host,
                port=self.settings.port,
                username=self.settings.username or None,
                password=self.settings.password or None,
                start_tls=self.settings.start_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.error("OTP email failed", recipient=recipient, error=str(e))
            raise DeliveryError(f"SMTP delivery failed: {e}", channel="EMAIL") from e

        logger.info("OTP email sent", recipient=recipient)
