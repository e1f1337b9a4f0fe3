"""
OTP Delivery Channels
=====================
Email and SMS senders the OTP service hands codes to.
"""

from .base import (
    DeliveryChannel,
    ChannelRouter,
    LoggingDeliveryChannel,
    render_sms_text,
    render_email_text,
)
from .twilio import TwilioSMSChannel
from .smtp import SMTPEmailChannel, SMTPSettings

__all__ = [
    "DeliveryChannel",
    "ChannelRouter",
    "LoggingDeliveryChannel",
    "render_sms_text",
    "render_email_text",
    "TwilioSMSChannel",
    "SMTPEmailChannel",
    "SMTPSettings",
]
