"""
OTP Store Interface
===================
Abstract storage contract shared by the in-memory and Redis backends.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional, Tuple, TypeVar

from ..models import OTPPurpose, OTPRecord, SweepResult
from ..verifier import RecordAction

T = TypeVar("T")

Transaction = Callable[[Optional[OTPRecord]], Tuple[T, RecordAction]]


class OTPStore(ABC):
    """
    Storage for OTP records and per-(identifier, purpose) cooldowns.

    Every method that reads and then writes must be atomic with respect to
    other calls on the same store, across every process sharing it.
    """

    name: str = "base"

    @abstractmethod
    async def get(self, record_id: str) -> Optional[OTPRecord]:
        """Return a copy of the record, or None."""

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record. Returns False if it was already gone."""

    @abstractmethod
    async def get_cooldown(
        self, identifier: str, purpose: OTPPurpose
    ) -> Optional[datetime]:
        """Return the stored cooldown_until for the pair, if any."""

    @abstractmethod
    async def invalidate_active(self, identifier: str, purpose: OTPPurpose) -> int:
        """Delete every unused record for the pair. Returns the count."""

    @abstractmethod
    async def issue(
        self,
        record: OTPRecord,
        cooldown_until: datetime,
        now: datetime,
    ) -> Optional[datetime]:
        """
        Atomically insert *record* and start the pair's cooldown.

        If a cooldown for the pair is still running at *now*, nothing is
        written and its cooldown_until is returned. Otherwise unused records
        for the pair are deleted, the record is inserted, the cooldown is
        set, and None is returned.
        """

    @abstractmethod
    async def transact(self, record_id: str, fn: Transaction) -> T:
        """
        Run *fn* against the record as one atomic read-modify-write.

        *fn* receives a copy of the record (or None) and returns
        ``(value, action)``; the store applies the action and returns value.
        """

    @abstractmethod
    async def find_active(
        self, identifier: str, purpose: OTPPurpose, now: datetime
    ) -> Optional[OTPRecord]:
        """Return the unused, unexpired record for the pair, if any."""

    @abstractmethod
    async def sweep(self, now: datetime) -> SweepResult:
        """Delete used/expired records and lapsed cooldowns."""

    @abstractmethod
    async def list_records(self) -> List[OTPRecord]:
        """Snapshot of every stored record."""

    @abstractmethod
    async def count_cooldowns(self, now: datetime) -> int:
        """Number of cooldowns still running at *now*."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove all records and cooldowns."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass
