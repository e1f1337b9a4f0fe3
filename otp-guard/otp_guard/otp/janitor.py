"""
OTP Janitor
===========
Periodic background sweep that reclaims used/expired records and lapsed
cooldowns. Verification re-checks expiry and usage on its own, so sweep
timing only affects memory, never correctness.
"""

import asyncio
from typing import Optional
import structlog

from .models import SweepResult, utcnow
from .store import OTPStore

logger = structlog.get_logger(__name__)


class OTPJanitor:
    """
    Cancellable periodic sweep task.

    Example:
        janitor = OTPJanitor(store, interval=60)
        janitor.start()
        ...
        await janitor.stop()
    """

    def __init__(self, store: OTPStore, interval: float = 60.0, clock=utcnow):
        if interval <= 0:
            raise ValueError("Janitor interval must be positive")
        self.store = store
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("OTP janitor started", interval=self.interval, store=self.store.name)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("OTP janitor stopped", sweeps=self.sweeps)

    async def sweep_once(self) -> SweepResult:
        """Run a single sweep pass."""
        result = await self.store.sweep(self._clock())
        self.sweeps += 1
        if result.records_removed or result.cooldowns_removed:
            logger.debug(
                "OTP sweep completed",
                records_removed=result.records_removed,
                cooldowns_removed=result.cooldowns_removed,
            )
        return result

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("OTP sweep failed", error=str(e))

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False
