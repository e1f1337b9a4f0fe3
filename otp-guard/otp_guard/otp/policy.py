"""
OTP Policy Table
================
Purpose-indexed issuance policies, tunable at runtime.
"""

from dataclasses import fields, replace
from datetime import timedelta
from typing import Dict, Optional, Any, Mapping
import structlog

from .models import OTPPolicy, OTPPurpose, CharacterSet
from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


DEFAULT_POLICIES: Dict[OTPPurpose, OTPPolicy] = {
    OTPPurpose.EMAIL_VERIFICATION: OTPPolicy(
        code_length=6,
        expiry=timedelta(minutes=30),
        max_attempts=5,
        resend_cooldown=timedelta(minutes=2),
        charset=CharacterSet.NUMERIC,
    ),
    OTPPurpose.PHONE_VERIFICATION: OTPPolicy(
        code_length=6,
        expiry=timedelta(minutes=10),
        max_attempts=3,
        resend_cooldown=timedelta(minutes=1),
        charset=CharacterSet.NUMERIC,
    ),
    # Wider alphabet for more entropy per character
    OTPPurpose.PASSWORD_RESET: OTPPolicy(
        code_length=8,
        expiry=timedelta(minutes=15),
        max_attempts=3,
        resend_cooldown=timedelta(minutes=5),
        charset=CharacterSet.ALPHANUMERIC,
    ),
    OTPPurpose.TWO_FACTOR_AUTH: OTPPolicy(
        code_length=6,
        expiry=timedelta(minutes=5),
        max_attempts=3,
        resend_cooldown=timedelta(minutes=1),
        charset=CharacterSet.NUMERIC,
    ),
}

_POLICY_FIELDS = {f.name for f in fields(OTPPolicy)}


def validate_policy(purpose: OTPPurpose, policy: OTPPolicy) -> None:
    """Reject policies that could never issue a usable code."""
    if policy.code_length < 1:
        raise ConfigurationError("code_length must be at least 1", purpose=purpose.value)
    if policy.max_attempts < 1:
        raise ConfigurationError("max_attempts must be at least 1", purpose=purpose.value)
    if policy.expiry <= timedelta(0):
        raise ConfigurationError("expiry must be positive", purpose=purpose.value)
    if policy.resend_cooldown < timedelta(0):
        raise ConfigurationError("resend_cooldown must not be negative", purpose=purpose.value)


class PolicyTable:
    """
    Maps purpose to policy.

    Reads return a snapshot; updates replace the entry, so records already
    issued keep the values they were created with.
    """

    def __init__(self, policies: Optional[Mapping[OTPPurpose, OTPPolicy]] = None):
        source = DEFAULT_POLICIES if policies is None else policies
        self._policies: Dict[OTPPurpose, OTPPolicy] = {}
        for purpose, policy in source.items():
            purpose = OTPPurpose(purpose)
            validate_policy(purpose, policy)
            self._policies[purpose] = replace(policy)

    def get_config(self, purpose: OTPPurpose) -> Optional[OTPPolicy]:
        """Return the policy for *purpose*, or None if unconfigured."""
        policy = self._policies.get(OTPPurpose(purpose))
        return replace(policy) if policy is not None else None

    def require(self, purpose: OTPPurpose) -> OTPPolicy:
        """Return the policy for *purpose* or raise ConfigurationError."""
        policy = self.get_config(purpose)
        if policy is None:
            raise ConfigurationError(
                f"No OTP policy configured for {OTPPurpose(purpose).value}",
                purpose=OTPPurpose(purpose).value,
            )
        return policy

    def set_config(self, purpose: OTPPurpose, **partial: Any) -> OTPPolicy:
        """
        Merge *partial* into the existing policy for *purpose*.

        Args:
            purpose: Configured purpose
            **partial: Any OTPPolicy field

        Returns:
            The updated policy

        Raises:
            ConfigurationError: Purpose is unconfigured or result is invalid
            ValueError: Unknown field name
        """
        purpose = OTPPurpose(purpose)
        current = self._policies.get(purpose)
        if current is None:
            raise ConfigurationError(
                f"No OTP policy configured for {purpose.value}",
                purpose=purpose.value,
            )

        unknown = set(partial) - _POLICY_FIELDS
        if unknown:
            raise ValueError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        if "charset" in partial:
            partial["charset"] = CharacterSet(partial["charset"])

        updated = replace(current, **partial)
        validate_policy(purpose, updated)
        self._policies[purpose] = updated

        logger.info(
            "OTP policy updated",
            purpose=purpose.value,
            fields=sorted(partial),
        )
        return replace(updated)

    def purposes(self):
        return list(self._policies)
