"""
Shared fixtures for otp-guard tests.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from otp_guard.delivery import DeliveryChannel
from otp_guard.otp import (
    DeliveryError,
    InMemoryOTPStore,
    OTPMessage,
    OTPService,
    PolicyTable,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingChannel(DeliveryChannel):
    """Captures delivered messages instead of sending them."""

    name = "recording"

    def __init__(self):
        self.messages: List[OTPMessage] = []

    async def deliver(self, message: OTPMessage) -> None:
        self.messages.append(message)

    @property
    def last(self) -> OTPMessage:
        return self.messages[-1]


class FailingChannel(DeliveryChannel):
    """Always fails delivery."""

    name = "failing"

    async def deliver(self, message: OTPMessage) -> None:
        raise DeliveryError("provider unavailable", channel=message.channel.value)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def store():
    return InMemoryOTPStore()


@pytest.fixture
def service(store, channel, clock):
    return OTPService(
        store=store,
        policies=PolicyTable(),
        delivery=channel,
        clock=clock,
    )
