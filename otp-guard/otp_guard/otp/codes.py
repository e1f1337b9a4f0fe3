"""
OTP Code Utilities
==================
Secure code generation and constant-time comparison.
"""

import secrets
import string
import hmac
import uuid

from .models import CharacterSet

NUMERIC_ALPHABET = string.digits
ALPHANUMERIC_ALPHABET = string.digits + string.ascii_uppercase

_ALPHABETS = {
    CharacterSet.NUMERIC: NUMERIC_ALPHABET,
    CharacterSet.ALPHANUMERIC: ALPHANUMERIC_ALPHABET,
}


def alphabet_for(charset: CharacterSet) -> str:
    """Return the characters a code of the given charset is drawn from."""
    return _ALPHABETS[CharacterSet(charset)]


def generate_code(length: int = 6, charset: CharacterSet = CharacterSet.NUMERIC) -> str:
    """
    Generate a secure random code.

    Every character is drawn independently and uniformly from the alphabet
    using the system CSPRNG.

    Args:
        length: Number of characters
        charset: Digits only or uppercase letters plus digits

    Returns:
        Code string
    """
    if length < 1:
        raise ValueError("Code length must be at least 1")

    chars = alphabet_for(charset)
    return ''.join(secrets.choice(chars) for _ in range(length))


def codes_match(candidate: str, stored: str) -> bool:
    """
    Compare a submitted code against the stored one.

    Both sides are uppercased, then compared with hmac.compare_digest so
    the running time does not depend on the position of the first
    differing character.
    """
    return hmac.compare_digest(
        candidate.upper().encode(),
        stored.upper().encode(),
    )


def new_record_id() -> str:
    """Mint an opaque record identifier."""
    return str(uuid.uuid4())
