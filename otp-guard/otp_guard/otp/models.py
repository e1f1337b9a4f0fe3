"""
OTP Models
==========
Data models and enums for OTP issuance and verification.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class OTPChannel(str, Enum):
    """OTP delivery channels."""
    EMAIL = "EMAIL"
    SMS = "SMS"


class OTPPurpose(str, Enum):
    """Business reason an OTP was issued."""
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PHONE_VERIFICATION = "PHONE_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"
    TWO_FACTOR_AUTH = "TWO_FACTOR_AUTH"


class CharacterSet(str, Enum):
    """Alphabets a code can be drawn from."""
    NUMERIC = "numeric"
    ALPHANUMERIC = "alphanumeric"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OTPPolicy:
    """Per-purpose issuance policy."""
    code_length: int = 6
    expiry: timedelta = timedelta(minutes=10)
    max_attempts: int = 3
    resend_cooldown: timedelta = timedelta(minutes=1)
    charset: CharacterSet = CharacterSet.NUMERIC

    @property
    def expiry_minutes(self) -> int:
        return math.ceil(self.expiry.total_seconds() / 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code_length": self.code_length,
            "expiry_seconds": int(self.expiry.total_seconds()),
            "max_attempts": self.max_attempts,
            "resend_cooldown_seconds": int(self.resend_cooldown.total_seconds()),
            "charset": self.charset.value,
        }


@dataclass
class OTPRecord:
    """One outstanding or recently resolved code."""
    record_id: str
    identifier: str
    code: str
    channel: OTPChannel
    purpose: OTPPurpose
    max_attempts: int
    created_at: datetime
    expires_at: datetime
    attempts: int = 0
    verified_at: Optional[datetime] = None
    is_used: bool = False

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.is_used and not self.is_expired(now)

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "identifier": self.identifier,
            "code": self.code,
            "channel": self.channel.value,
            "purpose": self.purpose.value,
            "max_attempts": self.max_attempts,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "attempts": self.attempts,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "is_used": self.is_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OTPRecord":
        verified_at = data.get("verified_at")
        return cls(
            record_id=data["record_id"],
            identifier=data["identifier"],
            code=data["code"],
            channel=OTPChannel(data["channel"]),
            purpose=OTPPurpose(data["purpose"]),
            max_attempts=int(data["max_attempts"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            attempts=int(data.get("attempts", 0)),
            verified_at=datetime.fromisoformat(verified_at) if verified_at else None,
            is_used=bool(data.get("is_used", False)),
        )


@dataclass
class OTPMessage:
    """Inputs handed to a delivery channel."""
    identifier: str
    code: str
    channel: OTPChannel
    purpose: OTPPurpose
    expiry_minutes: int
    display_name: Optional[str] = None


class GenerateOutcome(str, Enum):
    SENT = "sent"
    THROTTLED = "throttled"
    CONFIGURATION_ERROR = "configuration_error"
    DELIVERY_FAILED = "delivery_failed"


class VerifyOutcome(str, Enum):
    SUCCESS = "success"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    INVALID_REQUEST = "invalid_request"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    CODE_MISMATCH = "code_mismatch"
    NOT_FOUND = "not_found"


@dataclass
class GenerateResult:
    """Result of a generate call."""
    outcome: GenerateOutcome
    message: str
    record_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None
    retry_after: Optional[int] = None  # Seconds until a resend is allowed

    @property
    def success(self) -> bool:
        return self.outcome == GenerateOutcome.SENT

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.success:
            data["record_id"] = self.record_id
            data["expires_at"] = self.expires_at
        if self.cooldown_until is not None:
            data["cooldown_until"] = self.cooldown_until
        return data


@dataclass
class VerifyResult:
    """Result of a verify call."""
    outcome: VerifyOutcome
    message: str
    purpose: Optional[OTPPurpose] = None
    attempts_remaining: Optional[int] = None
    record_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == VerifyOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.purpose is not None:
            data["purpose"] = self.purpose.value
        if self.attempts_remaining is not None:
            data["attempts_remaining"] = self.attempts_remaining
        if self.record_id is not None:
            data["record_id"] = self.record_id
        return data


@dataclass
class OTPStatus:
    """Introspection view of a single record."""
    exists: bool
    is_valid: Optional[bool] = None
    is_used: Optional[bool] = None
    attempts_remaining: Optional[int] = None
    expires_at: Optional[datetime] = None
    purpose: Optional[OTPPurpose] = None


@dataclass
class ResendStatus:
    can_resend: bool
    cooldown_until: Optional[datetime] = None
    time_remaining: Optional[str] = None


@dataclass
class SweepResult:
    records_removed: int = 0
    cooldowns_removed: int = 0


@dataclass
class OTPStatistics:
    """Counts of records and cooldowns currently held by the store."""
    active: int = 0
    used: int = 0
    expired: int = 0
    active_cooldowns: int = 0
    by_purpose: Dict[str, int] = field(default_factory=dict)
    by_channel: Dict[str, int] = field(default_factory=dict)
