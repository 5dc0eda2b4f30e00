"""Background reclamation of stale rate-limit records."""

import asyncio
from typing import Optional

from shared.logging import get_logger
from access_gate.rate_limiter import RateLimiter

logger = get_logger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 15 * 60


class RateLimitSweeper:
    """
    Periodically sweeps a rate limiter on its own timer.

    ``start`` and ``stop`` are driven by the application lifespan;
    ``run_once`` sweeps immediately and is what tests call.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    ) -> None:
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self, now: Optional[float] = None) -> int:
        """Sweep stale records now and return how many were removed."""
        return self.rate_limiter.sweep(now)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                removed = self.run_once()
            except Exception as e:
                logger.error("Rate limit sweep failed", error=str(e), exc_info=True)
                continue
            logger.debug("Rate limit sweep completed", removed=removed)

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Rate limit sweeper started", interval_seconds=self.interval_seconds)

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
        logger.info("Rate limit sweeper stopped")
