"""
Tests for the Redis store

Run against fakeredis by default, or against a disposable Redis instance
when REDIS_TEST_URL is set.
"""

import asyncio
import os
import uuid
from datetime import timedelta

import fakeredis.aioredis
import pytest
from redis.asyncio import Redis

from otp_guard.otp import (
    GenerateOutcome,
    OTPChannel,
    OTPPurpose,
    OTPService,
    RedisOTPStore,
    VerifyOutcome,
)
from otp_guard.otp.models import utcnow

from conftest import FakeClock, RecordingChannel

REDIS_TEST_URL = os.getenv("REDIS_TEST_URL")

EMAIL = "user@example.com"
PHONE = "+14155551234"


def make_client():
    if REDIS_TEST_URL:
        return Redis.from_url(REDIS_TEST_URL)
    return fakeredis.aioredis.FakeRedis()


def make_service():
    """Service over a uniquely prefixed store; keys expire on wall-clock time."""
    store = RedisOTPStore(make_client(), prefix=f"otp-test-{uuid.uuid4().hex[:8]}")
    channel = RecordingChannel()
    clock = FakeClock(start=utcnow())
    return OTPService(store=store, delivery=channel, clock=clock), channel, clock


class TestRedisStore:
    """End-to-end flows against Redis."""

    @pytest.mark.asyncio
    async def test_generate_and_verify(self):
        service, channel, _ = make_service()
        try:
            issued = await service.generate(EMAIL, OTPChannel.EMAIL, OTPPurpose.EMAIL_VERIFICATION)
            assert issued.outcome == GenerateOutcome.SENT

            record = await service.store.get(issued.record_id)
            assert record.code == channel.last.code
            assert record.expires_at == issued.expires_at

            result = await service.verify(issued.record_id, channel.last.code)
            assert result.success

            again = await service.verify(issued.record_id, channel.last.code)
            assert again.outcome == VerifyOutcome.ALREADY_USED
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_cooldown_and_replacement(self):
        service, channel, clock = make_service()
        try:
            first = await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.PHONE_VERIFICATION)
            throttled = await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.PHONE_VERIFICATION)
            assert throttled.outcome == GenerateOutcome.THROTTLED

            clock.advance(minutes=1, seconds=1)
            second = await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.PHONE_VERIFICATION)

            assert second.outcome == GenerateOutcome.SENT
            assert await service.store.get(first.record_id) is None
            active = await service.store.find_active(
                PHONE, OTPPurpose.PHONE_VERIFICATION, clock(),
            )
            assert active.record_id == second.record_id
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_concurrent_generate(self):
        service, channel, _ = make_service()
        try:
            results = await asyncio.gather(*[
                service.generate(EMAIL, OTPChannel.EMAIL, OTPPurpose.TWO_FACTOR_AUTH)
                for _ in range(5)
            ])

            outcomes = [r.outcome for r in results]
            assert outcomes.count(GenerateOutcome.SENT) == 1
            assert outcomes.count(GenerateOutcome.THROTTLED) == 4
            assert len(await service.store.list_records()) == 1

            sent = next(r for r in results if r.success)
            result = await service.verify(sent.record_id, channel.last.code)
            assert result.outcome == VerifyOutcome.SUCCESS
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_throttled_call_keeps_first_record_valid(self):
        service, channel, clock = make_service()
        try:
            first = await service.generate(EMAIL, OTPChannel.EMAIL, OTPPurpose.EMAIL_VERIFICATION)
            code = channel.last.code
            clock.advance(seconds=5)

            throttled = await service.generate(EMAIL, OTPChannel.EMAIL, OTPPurpose.EMAIL_VERIFICATION)
            assert throttled.outcome == GenerateOutcome.THROTTLED
            assert throttled.retry_after == 115

            result = await service.verify(first.record_id, code)
            assert result.outcome == VerifyOutcome.SUCCESS
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_concurrent_wrong_guesses(self):
        service, channel, _ = make_service()
        try:
            issued = await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.PHONE_VERIFICATION)
            wrong = "000000" if channel.last.code != "000000" else "111111"

            results = await asyncio.gather(*[
                service.verify(issued.record_id, wrong) for _ in range(8)
            ])

            outcomes = [r.outcome for r in results]
            assert outcomes.count(VerifyOutcome.CODE_MISMATCH) == 3
            assert outcomes.count(VerifyOutcome.ATTEMPTS_EXHAUSTED) == 1
            assert await service.store.get(issued.record_id) is None
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_sweep_and_statistics(self):
        service, channel, clock = make_service()
        try:
            used = await service.generate(EMAIL, OTPChannel.EMAIL, OTPPurpose.EMAIL_VERIFICATION)
            await service.verify(used.record_id, channel.last.code)
            await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.TWO_FACTOR_AUTH)

            stats = await service.get_statistics()
            assert stats.active == 1
            assert stats.used == 1
            assert stats.active_cooldowns == 2

            result = await service.store.sweep(clock() + timedelta(seconds=90))
            assert result.records_removed == 1
            assert result.cooldowns_removed == 1
            assert await service.store.ping() is True

            # The running email cooldown survives the sweep
            assert await service.store.get_cooldown(
                EMAIL, OTPPurpose.EMAIL_VERIFICATION,
            ) is not None
            assert await service.store.get_cooldown(
                PHONE, OTPPurpose.TWO_FACTOR_AUTH,
            ) is None
        finally:
            await service.clear_all()
            await service.store.close()

    @pytest.mark.asyncio
    async def test_sweep_skips_cooldown_rewritten_mid_check(self):
        """A cooldown rewritten between the read and the delete is left alone."""
        service, channel, clock = make_service()
        store = service.store
        try:
            await service.generate(PHONE, OTPChannel.SMS, OTPPurpose.TWO_FACTOR_AUTH)
            key = store._cooldown_key(PHONE, OTPPurpose.TWO_FACTOR_AUTH)
            fresh = (clock() + timedelta(hours=1)).isoformat()
            real_pipeline = store.redis.pipeline

            class RacingPipeline:
                """Rewrites the cooldown on another connection right after the watched read."""

                def __init__(self, pipe):
                    self.pipe = pipe

                async def __aenter__(self):
                    await self.pipe.__aenter__()
                    return self

                async def __aexit__(self, *exc):
                    return await self.pipe.__aexit__(*exc)

                async def get(self, name):
                    raw = await self.pipe.get(name)
                    if (name.decode() if isinstance(name, bytes) else name) == key:
                        await store.redis.set(key, fresh)
                    return raw

                def __getattr__(self, name):
                    return getattr(self.pipe, name)

            store.redis.pipeline = lambda transaction=True: RacingPipeline(
                real_pipeline(transaction=transaction)
            )
            try:
                result = await store.sweep(clock() + timedelta(seconds=90))
            finally:
                store.redis.pipeline = real_pipeline

            assert result.cooldowns_removed == 0
            assert await store.redis.get(key) == fresh.encode()
        finally:
            await service.clear_all()
            await service.store.close()
