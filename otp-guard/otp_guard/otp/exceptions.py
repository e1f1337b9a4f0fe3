"""
OTP Exceptions
==============
Exception classes for OTP operations.
"""

from typing import Optional


class OTPError(Exception):
    """Base exception for OTP operations."""
    pass


class ConfigurationError(OTPError):
    """Raised when a purpose has no policy or a policy is invalid."""

    def __init__(self, message: str, purpose: Optional[str] = None):
        super().__init__(message)
        self.purpose = purpose


class DeliveryError(OTPError):
    """Raised by a delivery channel when a code could not be handed off."""

    def __init__(self, message: str, channel: Optional[str] = None):
        super().__init__(message)
        self.channel = channel
