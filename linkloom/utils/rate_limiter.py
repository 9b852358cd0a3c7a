"""
Request pacing for categorizer backends.

Up to K batches call the categorizer at once, but the provider allows only
so many requests per minute. ``RateLimiter`` hands every caller its own
start slot, spaced ``60 / requests_per_minute`` seconds apart, and lets it
sleep until then. Slots are reserved under a lock; the waiting happens
outside it, so a caller with a short timeout learns immediately that its
slot is too far away instead of queueing behind sleepers.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Dict, Hashable, Optional

# Width of the window reported by get_status
WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Slot-based requests-per-minute limiter shared by concurrent batches.

    Example:
        >>> limiter = RateLimiter(60, name="OpenAI")
        >>> if await limiter.acquire(timeout=30, key=batch.index):
        ...     response = await send(batch)
    """

    def __init__(self, requests_per_minute: int, name: str = "RateLimiter"):
        """
        Args:
            requests_per_minute: Allowed request rate; must be positive
            name: Name used in log messages and status

        Raises:
            ValueError: If requests_per_minute is not positive
        """
        if requests_per_minute <= 0:
            raise ValueError(
                f"requests_per_minute must be positive, got {requests_per_minute}"
            )
        self.requests_per_minute = requests_per_minute
        self.name = name
        self.min_interval = WINDOW_SECONDS / requests_per_minute

        self._next_slot = 0.0
        self._granted: deque = deque()
        self._lock = asyncio.Lock()

        self.total_requests = 0
        self.total_wait_time = 0.0
        self.requests_denied = 0
        # Seconds waited per caller key (batch index for categorizers)
        self.wait_by_key: Dict[Hashable, float] = {}

        self.logger = logging.getLogger(f"{__name__}.{name}")

    async def _reserve(self, timeout: Optional[float]) -> Optional[float]:
        """Reserve the next free slot; None when it lies beyond ``timeout``."""
        async with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            wait_time = slot - now
            if timeout is not None and wait_time > timeout:
                return None

            self._next_slot = slot + self.min_interval
            self._granted.append(slot)
            return wait_time

    async def acquire(
        self, timeout: Optional[float] = None, key: Optional[Hashable] = None
    ) -> bool:
        """
        Wait for this caller's request slot.

        Args:
            timeout: Maximum seconds to wait; None waits as long as needed
            key: Optional caller identifier for per-key wait statistics

        Returns:
            True once the slot is reached, False if it is further away
            than ``timeout`` (no slot is consumed in that case)
        """
        wait_time = await self._reserve(timeout)
        if wait_time is None:
            self.requests_denied += 1
            self.logger.warning(
                f"{self.name}: next request slot is more than {timeout:.2f}s away"
                + (f" for {key!r}" if key is not None else "")
            )
            return False

        self.total_requests += 1
        if wait_time > 0:
            self.total_wait_time += wait_time
            if key is not None:
                self.wait_by_key[key] = self.wait_by_key.get(key, 0.0) + wait_time
            self.logger.debug(f"{self.name}: waiting {wait_time:.2f}s for slot")
            await asyncio.sleep(wait_time)
        return True

    def get_status(self) -> Dict[str, Any]:
        """Current pacing statistics."""
        cutoff = time.monotonic() - WINDOW_SECONDS
        while self._granted and self._granted[0] <= cutoff:
            self._granted.popleft()

        return {
            "name": self.name,
            "requests_in_window": len(self._granted),
            "requests_per_minute": self.requests_per_minute,
            "total_requests": self.total_requests,
            "total_wait_time": self.total_wait_time,
            "requests_denied": self.requests_denied,
            "wait_by_key": dict(self.wait_by_key),
        }


__all__ = ["RateLimiter"]
