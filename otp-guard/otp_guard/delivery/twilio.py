"""
Twilio SMS Channel
==================
Delivers codes through the Twilio Messages API.
"""

import httpx
from typing import Optional, Dict, Any
from base64 import b64encode
import structlog

from ..otp.exceptions import DeliveryError
from ..otp.masking import mask_identifier
from ..otp.models import OTPMessage
from .base import DeliveryChannel, render_sms_text

logger = structlog.get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSMSChannel(DeliveryChannel):
    """Twilio SMS delivery channel."""

    name = "twilio"

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: {
                "account_sid": "ACxxx",
                "auth_token": "xxx",
                "from_number": "+15550000000",
                "messaging_service_sid": "MGxxx",  # optional
            }
            client: Pre-built HTTP client (created on initialize otherwise)
        """
        self.account_sid = config["account_sid"]
        self.auth_token = config["auth_token"]
        self.from_number = config.get("from_number")
        self.messaging_service_sid = config.get("messaging_service_sid")
        self.base_url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}"
        self._client = client

    def _auth_header(self) -> Dict[str, str]:
        auth = b64encode(f"{self.account_sid}:{self.auth_token}".encode()).decode()
        return {"Authorization": f"Basic {auth}"}

    async def initialize(self) -> None:
        """Create HTTP client with auth."""
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self._auth_header(), timeout=30.0)
        await super().initialize()

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def deliver(self, message: OTPMessage) -> None:
        """Send the code as an SMS."""
        if not self._client:
            raise RuntimeError("Channel not initialized")

        payload = {
            "To": message.identifier,
            "Body": render_sms_text(message),
        }
        if self.messaging_service_sid:
            payload["MessagingServiceSid"] = self.messaging_service_sid
        else:
            payload["From"] = self.from_number

        try:
            response = await self._client.post(
                f"{self.base_url}/Messages.json",
                data=payload,
                headers=self._auth_header(),
            )
        except httpx.HTTPError as e:
            logger.error("Twilio send failed", error=str(e))
            raise DeliveryError(f"Twilio request failed: {e}", channel="SMS") from e

        if response.status_code != 201:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            logger.error(
                "Twilio rejected message",
                status_code=response.status_code,
                error_code=error_data.get("code"),
                recipient=mask_identifier(message.identifier),
            )
            raise DeliveryError(
                error_data.get("message", f"Twilio returned {response.status_code}"),
                channel="SMS",
            )

        logger.info(
            "OTP SMS sent",
            recipient=mask_identifier(message.identifier),
            sid=response.json().get("sid"),
        )
