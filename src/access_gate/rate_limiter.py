"""Fixed-window rate limiter keyed by client identity.

A window opens on the first request from an identity and lasts
``window_seconds``. Once it has fully elapsed, the next request opens a
fresh window with a count of one. A client can therefore burst up to twice
the limit across a window boundary.

No locks: the read-modify-write in ``check`` never awaits, so requests on
the event loop cannot interleave inside it.
"""

import time
from typing import Callable, Optional

from shared.logging import get_logger
from shared.models import RateLimitRecord, RateLimitResult

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 60 * 60
DEFAULT_MAX_REQUESTS = 100


class RateLimiter:
    """
    In-memory request counter per client identity.

    The store is owned by the instance; build a fresh limiter per
    application (or per test) instead of sharing one globally.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    def check(self, identity: str) -> RateLimitResult:
        """
        Count one request for ``identity`` and report whether it is allowed.

        The request is counted even when it is denied.
        """
        now = self._clock()
        record = self._records.get(identity)

        if record is None or now - record.window_start > self.window_seconds:
            record = RateLimitRecord(count=1, window_start=now)
        else:
            record = RateLimitRecord(count=record.count + 1, window_start=record.window_start)

        self._records[identity] = record

        return RateLimitResult(
            allowed=record.count <= self.max_requests,
            count=record.count,
            limit=self.max_requests,
            reset_at=record.window_start + self.window_seconds,
        )

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Remove records whose window has fully elapsed.

        Args:
            now: Reference time in epoch seconds (defaults to the clock)

        Returns:
            Number of records removed
        """
        if now is None:
            now = self._clock()

        stale = [
            identity for identity, record in self._records.items()
            if now - record.window_start > self.window_seconds
        ]
        for identity in stale:
            del self._records[identity]

        if stale:
            logger.debug("Rate limit records swept", removed=len(stale), remaining=len(self._records))
        return len(stale)

    def get(self, identity: str) -> Optional[RateLimitRecord]:
        """Return the current record for an identity, if any."""
        return self._records.get(identity)

    def reset(self) -> None:
        """Drop all records."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: object) -> bool:
        return identity in self._records
