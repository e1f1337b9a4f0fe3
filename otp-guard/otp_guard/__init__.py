"""
OTP Guard
=========
One-time-code issuance and verification for email and phone confirmation,
password reset and two-factor step-up.
"""

__version__ = "0.1.0"

# OTP
from otp_guard.otp import (
    OTPChannel,
    OTPPurpose,
    CharacterSet,
    OTPPolicy,
    OTPRecord,
    OTPMessage,
    GenerateOutcome,
    VerifyOutcome,
    GenerateResult,
    VerifyResult,
    OTPStatus,
    ResendStatus,
    SweepResult,
    OTPStatistics,
    OTPError,
    ConfigurationError,
    DeliveryError,
    generate_code,
    codes_match,
    mask_identifier,
    format_time_remaining,
    PolicyTable,
    DEFAULT_POLICIES,
    OTPStore,
    InMemoryOTPStore,
    RedisOTPStore,
    OTPJanitor,
    OTPService,
)

# Delivery
from otp_guard.delivery import (
    DeliveryChannel,
    ChannelRouter,
    LoggingDeliveryChannel,
    TwilioSMSChannel,
    SMTPEmailChannel,
    SMTPSettings,
)

# Config
from otp_guard.config import OTPGuardConfig, build_store, build_delivery, build_service

__all__ = [
    # OTP
    "OTPChannel",
    "OTPPurpose",
    "CharacterSet",
    "OTPPolicy",
    "OTPRecord",
    "OTPMessage",
    "GenerateOutcome",
    "VerifyOutcome",
    "GenerateResult",
    "VerifyResult",
    "OTPStatus",
    "ResendStatus",
    "SweepResult",
    "OTPStatistics",
    "OTPError",
    "ConfigurationError",
    "DeliveryError",
    "generate_code",
    "codes_match",
    "mask_identifier",
    "format_time_remaining",
    "PolicyTable",
    "DEFAULT_POLICIES",
    "OTPStore",
    "InMemoryOTPStore",
    "RedisOTPStore",
    "OTPJanitor",
    "OTPService",
    # Delivery
    "DeliveryChannel",
    "ChannelRouter",
    "LoggingDeliveryChannel",
    "TwilioSMSChannel",
    "SMTPEmailChannel",
    "SMTPSettings",
    # Config
    "OTPGuardConfig",
    "build_store",
    "build_delivery",
    "build_service",
]
