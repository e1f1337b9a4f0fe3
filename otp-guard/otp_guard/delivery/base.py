"""
Delivery Channel Base
=====================
Base classes for handing issued codes to an email or SMS sender.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import structlog

from ..otp.exceptions import DeliveryError
from ..otp.masking import mask_identifier
from ..otp.models import OTPChannel, OTPMessage

logger = structlog.get_logger(__name__)


def _minutes(count: int) -> str:
    return f"{count} minute{'' if count == 1 else 's'}"


def render_sms_text(message: OTPMessage) -> str:
    """Plain SMS body for a code."""
    return (
        f"Your verification code is: {message.code}. "
        f"This code expires in {_minutes(message.expiry_minutes)}. "
        "Do not share this code with anyone."
    )


def render_email_text(message: OTPMessage) -> str:
    """Plain-text email body for a code."""
    name = message.display_name or "User"
    return (
        f"Hello {name},\n\n"
        f"Your verification code is: {message.code}\n\n"
        f"This code expires in {_minutes(message.expiry_minutes)}. "
        "If you did not request this code, you can ignore this email.\n"
    )


class DeliveryChannel(ABC):
    """
    Abstract base class for OTP delivery.

    Implementations raise on failure; the caller rolls back the record.
    """

    name: str = "base"

    async def initialize(self) -> None:
        """Acquire resources (e.g., HTTP clients)."""
        logger.info("Delivery channel initialized", channel=self.name)

    async def close(self) -> None:
        """Release resources."""
        logger.info("Delivery channel closed", channel=self.name)

    @abstractmethod
    async def deliver(self, message: OTPMessage) -> None:
        """
        Send a code to its identifier.

        Args:
            message: Identifier, code, purpose and expiry to render

        Raises:
            DeliveryError: The code could not be handed off
        """
        pass


class LoggingDeliveryChannel(DeliveryChannel):
    """
    Development channel that only logs the masked recipient.

    With ``keep_messages=True`` the last message per identifier is kept so
    tests and local tooling can read the code back. Nothing is kept by
    default.
    """

    name = "logging"

    def __init__(self, keep_messages: bool = False):
        self.keep_messages = keep_messages
        self.sent: Dict[str, OTPMessage] = {}

    async def deliver(self, message: OTPMessage) -> None:
        if self.keep_messages:
            self.sent[message.identifier] = message
        logger.info(
            "OTP delivered to log",
            recipient=mask_identifier(message.identifier),
            channel=message.channel.value,
            purpose=message.purpose.value,
            expires_in_minutes=message.expiry_minutes,
        )

    def last_code(self, identifier: str) -> Optional[str]:
        message = self.sent.get(identifier)
        return message.code if message else None


class ChannelRouter(DeliveryChannel):
    """Dispatches each message to the channel registered for its OTPChannel."""

    name = "router"

    def __init__(self, routes: Optional[Dict[OTPChannel, DeliveryChannel]] = None):
        self.routes: Dict[OTPChannel, DeliveryChannel] = dict(routes or {})

    def register(self, channel: OTPChannel, sender: DeliveryChannel) -> None:
        self.routes[OTPChannel(channel)] = sender

    async def initialize(self) -> None:
        for sender in set(self.routes.values()):
            await sender.initialize()

    async def close(self) -> None:
        for sender in set(self.routes.values()):
            await sender.close()

    async def deliver(self, message: OTPMessage) -> None:
        sender = self.routes.get(message.channel)
        if sender is None:
            raise DeliveryError(
                f"No delivery channel registered for {message.channel.value}",
                channel=message.channel.value,
            )
        await sender.deliver(message)
