"""
Redis OTP Store
===============
Shared OTP store for multi-instance deployments.

Read-modify-write sequences use optimistic WATCH/MULTI transactions and
retry on conflict, so concurrent verifications on different processes
cannot both consume the last attempt.
"""

import json
from datetime import datetime, timedelta
from typing import List, Optional, Union

import structlog
from redis.exceptions import WatchError

from ..models import OTPPurpose, OTPRecord, SweepResult
from ..verifier import RecordAction
from .base import OTPStore, Transaction, T

logger = structlog.get_logger(__name__)

# Records outlive expires_at slightly so late verifications still report
# "expired" rather than "not found".
DEFAULT_RECORD_GRACE = timedelta(minutes=5)


def _to_str(value: Optional[Union[bytes, str]]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode()
    return value


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class RedisOTPStore(OTPStore):
    """
    Redis-backed OTP store.

    Key layout (``prefix`` defaults to ``otp``):
        {prefix}:record:{record_id}             JSON record
        {prefix}:pair:{purpose}:{identifier}    set of unused record ids
        {prefix}:cooldown:{purpose}:{identifier} ISO cooldown_until
    """

    name = "redis"

    def __init__(
        self,
        redis_client,
        prefix: str = "otp",
        record_grace: timedelta = DEFAULT_RECORD_GRACE,
    ):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
            prefix: Key namespace
            record_grace: Extra lifetime kept after a record expires
        """
        self.redis = redis_client
        self.prefix = prefix
        self.record_grace = record_grace

    # -- keys ---------------------------------------------------------------

    def _record_key(self, record_id: str) -> str:
        return f"{self.prefix}:record:{record_id}"

    def _pair_key(self, identifier: str, purpose: OTPPurpose) -> str:
        return f"{self.prefix}:pair:{OTPPurpose(purpose).value}:{identifier}"

    def _cooldown_key(self, identifier: str, purpose: OTPPurpose) -> str:
        return f"{self.prefix}:cooldown:{OTPPurpose(purpose).value}:{identifier}"

    def _decode(self, raw) -> Optional[OTPRecord]:
        if raw is None:
            return None
        return OTPRecord.from_dict(json.loads(_to_str(raw)))

    def _encode(self, record: OTPRecord) -> str:
        return json.dumps(record.to_dict(), separators=(",", ":"))

    def _record_expiry_ms(self, record: OTPRecord) -> int:
        return _to_ms(record.expires_at + self.record_grace)

    # -- operations ---------------------------------------------------------

    async def get(self, record_id: str) -> Optional[OTPRecord]:
        return self._decode(await self.redis.get(self._record_key(record_id)))

    async def delete(self, record_id: str) -> bool:
        def remove(record):
            return (record is not None), RecordAction.DELETE

        return await self.transact(record_id, remove)

    async def get_cooldown(
        self, identifier: str, purpose: OTPPurpose
    ) -> Optional[datetime]:
        raw = await self.redis.get(self._cooldown_key(identifier, purpose))
        return datetime.fromisoformat(_to_str(raw)) if raw is not None else None

    async def invalidate_active(self, identifier: str, purpose: OTPPurpose) -> int:
        pair_key = self._pair_key(identifier, purpose)

        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(pair_key)
                    member_ids = [_to_str(m) for m in await pipe.smembers(pair_key)]
                    pipe.multi()
                    for record_id in member_ids:
                        pipe.delete(self._record_key(record_id))
                    pipe.delete(pair_key)
                    await pipe.execute()
                    return len(member_ids)
                except WatchError:
                    logger.debug("OTP invalidate conflict, retrying", pair=pair_key)
                    continue

    async def issue(
        self,
        record: OTPRecord,
        cooldown_until: datetime,
        now: datetime,
    ) -> Optional[datetime]:
        pair_key = self._pair_key(record.identifier, record.purpose)
        cooldown_key = self._cooldown_key(record.identifier, record.purpose)
        record_key = self._record_key(record.record_id)

        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(pair_key, cooldown_key)

                    raw_cooldown = await pipe.get(cooldown_key)
                    if raw_cooldown is not None:
                        existing = datetime.fromisoformat(_to_str(raw_cooldown))
                        if existing > now:
                            await pipe.unwatch()
                            return existing

                    stale_ids = [_to_str(m) for m in await pipe.smembers(pair_key)]

                    pipe.multi()
                    for record_id in stale_ids:
                        pipe.delete(self._record_key(record_id))
                    pipe.delete(pair_key)
                    pipe.set(record_key, self._encode(record))
                    pipe.pexpireat(record_key, self._record_expiry_ms(record))
                    pipe.sadd(pair_key, record.record_id)
                    pipe.pexpireat(pair_key, self._record_expiry_ms(record))
                    pipe.set(cooldown_key, cooldown_until.isoformat())
                    pipe.pexpireat(cooldown_key, max(_to_ms(cooldown_until), _to_ms(now) + 1))
                    await pipe.execute()
                    return None
                except WatchError:
                    logger.debug("OTP issue conflict, retrying", pair=pair_key)
                    continue

    async def transact(self, record_id: str, fn: Transaction) -> T:
        record_key = self._record_key(record_id)

        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(record_key)
                    record = self._decode(await pipe.get(record_key))

                    value, action = fn(record)

                    if record is None or action == RecordAction.KEEP:
                        await pipe.unwatch()
                        return value

                    pair_key = self._pair_key(record.identifier, record.purpose)
                    pipe.multi()
                    if action == RecordAction.DELETE:
                        pipe.delete(record_key)
                        pipe.srem(pair_key, record_id)
                    else:
                        pipe.set(record_key, self._encode(record))
                        pipe.pexpireat(record_key, self._record_expiry_ms(record))
                        if record.is_used:
                            pipe.srem(pair_key, record_id)
                    await pipe.execute()
                    return value
                except WatchError:
                    logger.debug("OTP record conflict, retrying", record_id=record_id)
                    continue

    async def find_active(
        self, identifier: str, purpose: OTPPurpose, now: datetime
    ) -> Optional[OTPRecord]:
        member_ids = [
            _to_str(m)
            for m in await self.redis.smembers(self._pair_key(identifier, purpose))
        ]
        if not member_ids:
            return None

        raws = await self.redis.mget([self._record_key(i) for i in member_ids])
        for raw in raws:
            record = self._decode(raw)
            if record is not None and record.is_active(now):
                return record
        return None

    async def sweep(self, now: datetime) -> SweepResult:
        result = SweepResult()

        async for key in self.redis.scan_iter(match=f"{self.prefix}:record:*"):
            record_id = _to_str(key).rsplit(":", 1)[-1]

            def reap(record):
                if record is not None and (record.is_used or record.expires_at < now):
                    return True, RecordAction.DELETE
                return False, RecordAction.KEEP

            if await self.transact(record_id, reap):
                result.records_removed += 1

        async for key in self.redis.scan_iter(match=f"{self.prefix}:cooldown:*"):
            if await self._reap_cooldown(key, now):
                result.cooldowns_removed += 1

        return result

    async def _reap_cooldown(self, key, now: datetime) -> bool:
        """Delete a lapsed cooldown unless issue() rewrote it meanwhile."""
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None or datetime.fromisoformat(_to_str(raw)) >= now:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
                return True
            except WatchError:
                logger.debug("OTP cooldown rewritten during sweep", key=_to_str(key))
                return False

    async def list_records(self) -> List[OTPRecord]:
        records = []
        async for key in self.redis.scan_iter(match=f"{self.prefix}:record:*"):
            record = self._decode(await self.redis.get(key))
            if record is not None:
                records.append(record)
        return records

    async def count_cooldowns(self, now: datetime) -> int:
        count = 0
        async for key in self.redis.scan_iter(match=f"{self.prefix}:cooldown:*"):
            raw = await self.redis.get(key)
            if raw is not None and datetime.fromisoformat(_to_str(raw)) > now:
                count += 1
        return count

    async def clear(self) -> None:
        keys = [key async for key in self.redis.scan_iter(match=f"{self.prefix}:*")]
        if keys:
            await self.redis.delete(*keys)

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()
