"""
Identifier Masking
==================
Display-only helpers for outcome messages and logs.
"""

from datetime import datetime
from typing import Optional

from .models import utcnow


def mask_identifier(identifier: str) -> str:
    """
    Mask an email address or phone number for safe display.

    Emails keep the first and last character of the local part and the
    whole domain. Anything else is treated as a phone number and keeps
    the first two and last two characters.

    Args:
        identifier: Email address or phone number

    Returns:
        Masked identifier (e.g., "j**n@example.com", "+1*******34")
    """
    if "@" in identifier:
        local, _, domain = identifier.rpartition("@")
        if not local or not domain:
            return "*" * len(identifier)

        if len(local) > 2:
            masked_local = local[0] + "*" * (len(local) - 2) + local[-1]
        else:
            masked_local = "*" * len(local)
        return f"{masked_local}@{domain}"

    if len(identifier) > 4:
        return identifier[:2] + "*" * (len(identifier) - 4) + identifier[-2:]
    return "*" * len(identifier)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_remaining(until: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable wait until *until* (e.g., "1 minute 30 seconds")."""
    diff_ms = int((until - (now or utcnow())).total_seconds() * 1000)
    if diff_ms <= 0:
        return "0 seconds"

    minutes, rem_ms = divmod(diff_ms, 60_000)
    seconds = rem_ms // 1000

    if minutes > 0:
        return f"{_plural(minutes, 'minute')} {_plural(seconds, 'second')}"
    return _plural(seconds, "second")
