"""
OTP Issuance and Verification
=============================
Time-bounded, attempt-limited one-time codes with resend throttling.
"""

# Re-export all public APIs
from .models import (
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
)
from .exceptions import OTPError, ConfigurationError, DeliveryError
from .codes import generate_code, codes_match
from .masking import mask_identifier, format_time_remaining
from .policy import PolicyTable, DEFAULT_POLICIES
from .store import OTPStore, InMemoryOTPStore, RedisOTPStore
from .janitor import OTPJanitor
from .service import OTPService

__all__ = [
    # Models
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
    # Exceptions
    "OTPError",
    "ConfigurationError",
    "DeliveryError",
    # Codes
    "generate_code",
    "codes_match",
    # Masking
    "mask_identifier",
    "format_time_remaining",
    # Policy
    "PolicyTable",
    "DEFAULT_POLICIES",
    # Stores
    "OTPStore",
    "InMemoryOTPStore",
    "RedisOTPStore",
    # Janitor
    "OTPJanitor",
    # Service
    "OTPService",
]
