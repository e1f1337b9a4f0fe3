"""
OTP Storage Backends
====================
In-memory store for single-process deployments, Redis store for shared state.
"""

from .base import OTPStore
from .in_memory import InMemoryOTPStore
from .redis_store import RedisOTPStore

__all__ = [
    "OTPStore",
    "InMemoryOTPStore",
    "RedisOTPStore",
]
