"""
Provides a keyed rate limiter that enforces a minimum spacing between repeated
identical operations.
"""

import asyncio
import logging
import time
from typing import Callable

from bilifetch.exceptions import RateLimitedError

log = logging.getLogger(__name__)


def operation_key(operation: str, account: str, target: str) -> str:
    """Builds the composite key identifying one operation on one target."""
    return f"{operation}_{account or 'default'}_{target}"


class OperationRateLimiter:
    """
    Remembers when each operation key was last admitted and rejects repeats
    that arrive before their interval has elapsed.

    Instances are constructed explicitly and handed to the orchestration layer;
    two limiters never share state.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initializes the rate limiter.

        Args:
            clock: Monotonic time source, replaceable in tests.
        """
        self._clock = clock
        # key -> (admitted at, interval)
        self._admitted: dict[str, tuple[float, float]] = {}
        self._lock = asyncio.Lock()

    async def check(self, key: str, min_interval: float) -> None:
        """
        Admits the operation or raises if it repeats too soon.

        Args:
            key: Composite operation key, see `operation_key`.
            min_interval: Minimum number of seconds between two admissions.

        Raises:
            RateLimitedError: If the key was admitted less than `min_interval`
            seconds ago.
        """
        async with self._lock:
            now = self._clock()
            self._prune(now)
            last = self._admitted.get(key)
            if last is not None:
                elapsed = now - last[0]
                if elapsed < min_interval:
                    wait = min_interval - elapsed
                    log.warning(
                        f"[yellow]Rate limit for '{key}': retry in {wait:.1f}s[/yellow]"
                    )
                    raise RateLimitedError(
                        f"Too many requests, please wait {wait:.1f} seconds and try again."
                    )
            self._admitted[key] = (now, min_interval)

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, (admitted_at, interval) in self._admitted.items()
            if now - admitted_at >= interval
        ]
        for key in expired:
            del self._admitted[key]

    @property
    def tracked_keys(self) -> int:
        return len(self._admitted)

    async def forget(self, key: str) -> None:
        """Drops the record for a key, e.g. after the admitted operation failed early."""
        async with self._lock:
            self._admitted.pop(key, None)
