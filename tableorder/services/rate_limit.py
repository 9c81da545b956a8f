"""
Login Rate Limiter

Counts failed login attempts per identifier inside a rolling window.
Once ``max_attempts`` failures sit inside the window, further attempts are
refused with ``RateLimitedError`` until the oldest failure ages out.

State is process-local and bounded: the least recently touched identifier
is dropped once ``max_keys`` is exceeded.
"""

import logging
from collections import OrderedDict, deque
from datetime import datetime, timedelta
from functools import lru_cache

from tableorder.core.config import get_settings
from tableorder.core.exceptions import RateLimitedError
from tableorder.services.otp import Clock, utc_clock

logger = logging.getLogger(__name__)


class LoginRateLimiter:

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 30 * 60,
        max_keys: int = 10_000,
        clock: Clock = utc_clock,
    ):
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_seconds)
        self.max_keys = max_keys
        self.clock = clock
        self._failures: "OrderedDict[str, deque[datetime]]" = OrderedDict()

    def _recent(self, key: str, now: datetime) -> deque:
        attempts = self._failures.get(key)
        if attempts is None:
            return deque()
        cutoff = now - self.window
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()
        if not attempts:
            del self._failures[key]
        return attempts

    def check(self, key: str) -> None:
        """Raise ``RateLimitedError`` when ``key`` is currently locked out."""
        now = self.clock()
        attempts = self._recent(key, now)
        if len(attempts) >= self.max_attempts:
            retry_after = attempts[0] + self.window - now
            minutes = max(1, int(retry_after.total_seconds() // 60) + 1)
            logger.warning(f"Login rate limit hit for {key}")
            raise RateLimitedError(
                f"Too many failed login attempts. Try again in {minutes} minutes."
            )

    def record_failure(self, key: str) -> int:
        """Record a failed attempt; returns failures now inside the window."""
        now = self.clock()
        attempts = self._recent(key, now)
        attempts.append(now)
        self._failures[key] = attempts
        self._failures.move_to_end(key)
        while len(self._failures) > self.max_keys:
            self._failures.popitem(last=False)
        return len(attempts)

    def reset(self, key: str) -> None:
        self._failures.pop(key, None)

    def purge(self) -> int:
        """Drop identifiers with no failures left inside the window."""
        now = self.clock()
        before = len(self._failures)
        for key in list(self._failures):
            self._recent(key, now)
        return before - len(self._failures)


@lru_cache()
def get_login_limiter() -> LoginRateLimiter:
    settings = get_settings()
    return LoginRateLimiter(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
        max_keys=settings.login_tracker_max_keys,
    )


def reset_login_limiter() -> None:
    get_login_limiter.cache_clear()
