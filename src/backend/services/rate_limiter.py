"""
Client-side rate limiting.

A sliding one-minute window per key plus a cooldown measured from the
key's latest accepted action. One limiter instance belongs to one client
session; nothing here is shared between clients.
"""

import time
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

WINDOW_MS = 60_000


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """
    In-memory sliding-window rate limiter.

    Usage:
        limiter = RateLimiter()
        remaining = limiter.get_cooldown_remaining(key, 500)
        if remaining == 0 and limiter.is_action_allowed(key, 10):
            ...  # do the thing
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, window_ms: int = WINDOW_MS):
        """
        Args:
            clock: Returns the current time in milliseconds (monotonic by default)
            window_ms: Sliding window length
        """
        self._clock = clock or monotonic_ms
        self.window_ms = window_ms
        self._trackers: dict[str, list[float]] = {}

    def is_action_allowed(self, key: str, max_per_window: int) -> bool:
        """
        Check the sliding window and record the action if allowed.

        Timestamps older than the window are pruned first. A rejected
        action is not recorded.
        """
        now = self._clock()
        window_start = now - self.window_ms

        recent = [ts for ts in self._trackers.get(key, []) if ts > window_start]

        if len(recent) >= max_per_window:
            self._trackers[key] = recent
            logger.debug("rate_limit_exceeded", key=key, limit=max_per_window)
            return False

        recent.append(now)
        self._trackers[key] = recent
        return True

    def get_cooldown_remaining(self, key: str, cooldown_ms: int) -> int:
        """
        Milliseconds left before the key may act again, or 0.

        Only looks at the latest recorded action; does not modify state.
        """
        timestamps = self._trackers.get(key)
        if not timestamps:
            return 0

        elapsed = self._clock() - timestamps[-1]
        return max(0, int(round(cooldown_ms - elapsed)))

    def action_count(self, key: str) -> int:
        """Actions recorded for the key inside the current window."""
        window_start = self._clock() - self.window_ms
        return sum(1 for ts in self._trackers.get(key, []) if ts > window_start)

    def clear(self, key: str) -> None:
        """Forget all history for one key."""
        self._trackers.pop(key, None)

    def clear_all(self) -> None:
        self._trackers.clear()
