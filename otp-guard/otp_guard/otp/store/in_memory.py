"""
In-Memory OTP Store
===================
Process-local store guarded by a single asyncio lock.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..models import OTPPurpose, OTPRecord, SweepResult
from ..verifier import RecordAction
from .base import OTPStore, Transaction, T

CooldownKey = Tuple[str, OTPPurpose]


class InMemoryOTPStore(OTPStore):
    """
    Dict-backed OTP store.

    Only valid when a single process owns all OTP traffic.
    Use RedisOTPStore for multi-instance deployments.
    """

    name = "memory"

    def __init__(self):
        self._records: Dict[str, OTPRecord] = {}
        self._cooldowns: Dict[CooldownKey, datetime] = {}
        self._lock = asyncio.Lock()

    async def get(self, record_id: str) -> Optional[OTPRecord]:
        async with self._lock:
            record = self._records.get(record_id)
            return replace(record) if record is not None else None

    async def delete(self, record_id: str) -> bool:
        async with self._lock:
            return self._records.pop(record_id, None) is not None

    async def get_cooldown(
        self, identifier: str, purpose: OTPPurpose
    ) -> Optional[datetime]:
        async with self._lock:
            return self._cooldowns.get((identifier, OTPPurpose(purpose)))

    async def invalidate_active(self, identifier: str, purpose: OTPPurpose) -> int:
        async with self._lock:
            return self._invalidate_locked(identifier, OTPPurpose(purpose))

    def _invalidate_locked(self, identifier: str, purpose: OTPPurpose) -> int:
        stale = [
            record_id for record_id, record in self._records.items()
            if record.identifier == identifier
            and record.purpose == purpose
            and not record.is_used
        ]
        for record_id in stale:
            del self._records[record_id]
        return len(stale)

    async def issue(
        self,
        record: OTPRecord,
        cooldown_until: datetime,
        now: datetime,
    ) -> Optional[datetime]:
        key = (record.identifier, record.purpose)
        async with self._lock:
            existing = self._cooldowns.get(key)
            if existing is not None and existing > now:
                return existing

            self._invalidate_locked(record.identifier, record.purpose)
            self._records[record.record_id] = replace(record)
            self._cooldowns[key] = cooldown_until
            return None

    async def transact(self, record_id: str, fn: Transaction) -> T:
        async with self._lock:
            current = self._records.get(record_id)
            working = replace(current) if current is not None else None

            value, action = fn(working)

            if action == RecordAction.SAVE and working is not None:
                self._records[record_id] = working
            elif action == RecordAction.DELETE:
                self._records.pop(record_id, None)
            return value

    async def find_active(
        self, identifier: str, purpose: OTPPurpose, now: datetime
    ) -> Optional[OTPRecord]:
        purpose = OTPPurpose(purpose)
        async with self._lock:
            for record in self._records.values():
                if (
                    record.identifier == identifier
                    and record.purpose == purpose
                    and record.is_active(now)
                ):
                    return replace(record)
        return None

    async def sweep(self, now: datetime) -> SweepResult:
        async with self._lock:
            dead_records = [
                record_id for record_id, record in self._records.items()
                if record.is_used or record.expires_at < now
            ]
            for record_id in dead_records:
                del self._records[record_id]

            lapsed = [
                key for key, until in self._cooldowns.items()
                if until < now
            ]
            for key in lapsed:
                del self._cooldowns[key]

        return SweepResult(
            records_removed=len(dead_records),
            cooldowns_removed=len(lapsed),
        )

    async def list_records(self) -> List[OTPRecord]:
        async with self._lock:
            return [replace(record) for record in self._records.values()]

    async def count_cooldowns(self, now: datetime) -> int:
        async with self._lock:
            return sum(1 for until in self._cooldowns.values() if until > now)

    async def clear(self) -> None:
        async with self._lock:
            self._records.clear()
            self._cooldowns.clear()
