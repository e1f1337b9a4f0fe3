"""
OTP Guard Configuration
=======================
Environment-driven settings and component factories.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .delivery import (
    ChannelRouter,
    DeliveryChannel,
    LoggingDeliveryChannel,
    SMTPEmailChannel,
    SMTPSettings,
    TwilioSMSChannel,
)
from .otp.models import OTPChannel
from .otp.policy import PolicyTable
from .otp.service import OTPService
from .otp.store import InMemoryOTPStore, OTPStore, RedisOTPStore


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class OTPGuardConfig:
    """Configuration for an OTP Guard deployment."""
    service_name: str = field(default_factory=lambda: os.getenv("SERVICE_NAME", "otp-guard"))
    store_backend: str = field(default_factory=lambda: os.getenv("OTP_STORE_BACKEND", "memory"))
    redis_url: str = field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    redis_prefix: str = field(default_factory=lambda: os.getenv("OTP_REDIS_PREFIX", "otp"))
    janitor_interval: float = field(
        default_factory=lambda: float(os.getenv("OTP_JANITOR_INTERVAL", "60"))
    )

    # Twilio (SMS); channel is disabled when the SID is empty
    twilio_account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    twilio_auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    twilio_from_number: str = field(default_factory=lambda: os.getenv("TWILIO_FROM_NUMBER", ""))
    twilio_messaging_service_sid: Optional[str] = field(
        default_factory=lambda: os.getenv("TWILIO_MESSAGING_SERVICE_SID") or None
    )

    # SMTP (email); channel is disabled when the host is empty
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", ""))
    smtp_port: int = field(default_factory=lambda: int(os.getenv("SMTP_PORT", "587")))
    smtp_username: str = field(default_factory=lambda: os.getenv("SMTP_USERNAME", ""))
    smtp_password: str = field(default_factory=lambda: os.getenv("SMTP_PASSWORD", ""))
    smtp_from: str = field(default_factory=lambda: os.getenv("SMTP_FROM", "no-reply@localhost"))
    smtp_start_tls: bool = field(default_factory=lambda: _env_bool("SMTP_START_TLS", True))

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = field(default_factory=lambda: _env_bool("LOG_JSON", True))


def build_store(config: OTPGuardConfig) -> OTPStore:
    """Create the configured store backend."""
    backend = config.store_backend.strip().lower()
    if backend == "memory":
        return InMemoryOTPStore()
    if backend == "redis":
        from redis.asyncio import Redis

        client = Redis.from_url(config.redis_url)
        return RedisOTPStore(client, prefix=config.redis_prefix)
    raise ValueError(f"Unknown OTP store backend: {config.store_backend}")


def build_delivery(config: OTPGuardConfig) -> DeliveryChannel:
    """Route each channel to its configured sender, falling back to logging."""
    fallback = LoggingDeliveryChannel()
    router = ChannelRouter({OTPChannel.EMAIL: fallback, OTPChannel.SMS: fallback})

    if config.twilio_account_sid:
        router.register(
            OTPChannel.SMS,
            TwilioSMSChannel({
                "account_sid": config.twilio_account_sid,
                "auth_token": config.twilio_auth_token,
                "from_number": config.twilio_from_number,
                "messaging_service_sid": config.twilio_messaging_service_sid,
            }),
        )

    if config.smtp_host:
        router.register(
            OTPChannel.EMAIL,
            SMTPEmailChannel(SMTPSettings(
                host=config.smtp_host,
                port=config.smtp_port,
                username=config.smtp_username or None,
                password=config.smtp_password or None,
                sender=config.smtp_from,
                start_tls=config.smtp_start_tls,
            )),
        )

    return router


def build_service(
    config: Optional[OTPGuardConfig] = None,
    policies: Optional[PolicyTable] = None,
) -> OTPService:
    """Wire store, policies and delivery from *config*."""
    config = config or OTPGuardConfig()
    return OTPService(
        store=build_store(config),
        policies=policies or PolicyTable(),
        delivery=build_delivery(config),
    )
