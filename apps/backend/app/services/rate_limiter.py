"""
rate_limiter.py — Per-user sliding-window limiter for Companion Mode.

Limits each user to `max_requests` admitted messages within any trailing
`window_ms` interval (defaults: 20 per hour).

ALGORITHM (sliding-window log)
───────────────────────────────
Each identity owns a deque of admitted-request timestamps, oldest first.
On admit():
  1. Drop timestamps at or before `now - window`.
  2. If `max_requests` remain, reject with retry_after_ms = the time until
     the oldest timestamp leaves the window.
  3. Otherwise append `now` and admit, reporting the remaining quota.

Entries are kept in an OrderedDict ordered by their newest timestamp, so
fully-expired identities are evicted from the front of the dict and the
sweep stops at the first live entry.

State is process-local. With several API instances, replace this with a
shared store (e.g. Redis) behind the same admit() contract.
"""

import logging
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: Optional[int] = None
    retry_after_ms: Optional[float] = None


class SlidingWindowRateLimiter:
    """
    Thread-safe sliding-window log keyed by user ID.

    `clock` returns milliseconds from any monotonic origin; tests pass a fake.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._entries: "OrderedDict[str, Deque[float]]" = OrderedDict()
        # admit() never awaits, so a plain mutex serialises same-user checks
        self._lock = threading.Lock()

    def admit(self, identity: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            cutoff = now - self.window_ms
            self._evict_expired(cutoff)

            timestamps = self._entries.get(identity)
            if timestamps is None:
                timestamps = deque()
            while timestamps and timestamps[0] <= cutoff:
                timestamps.popleft()

            if len(timestamps) >= self.max_requests:
                retry_after_ms = timestamps[0] + self.window_ms - now
                logger.info(
                    "Rate limit hit for user %s (retry in %.0f ms)", identity, retry_after_ms
                )
                return RateLimitDecision(allowed=False, retry_after_ms=retry_after_ms)

            timestamps.append(now)
            self._entries[identity] = timestamps
            self._entries.move_to_end(identity)
            return RateLimitDecision(
                allowed=True, remaining=self.max_requests - len(timestamps)
            )

    def _evict_expired(self, cutoff: float) -> None:
        while self._entries:
            identity, timestamps = next(iter(self._entries.items()))
            if timestamps and timestamps[-1] > cutoff:
                break
            del self._entries[identity]

    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


# Module-level singleton — shared by every request in this process
companion_rate_limiter = SlidingWindowRateLimiter(
    max_requests=settings.companion_max_requests,
    window_ms=settings.companion_window_ms,
)
