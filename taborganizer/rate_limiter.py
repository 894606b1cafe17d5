"""Fixed-window request gate in front of the remote classifier."""
import logging
import threading
import time
from typing import Callable, Dict, Any, Optional

from .config import RATE_LIMIT_PER_MINUTE, RATE_LIMIT_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allows at most ``capacity`` acquisitions per window.

    The window is reset lazily by the first call after it expires; there is
    no background timer. ``try_acquire`` never blocks.
    """

    def __init__(
        self,
        capacity: int = RATE_LIMIT_PER_MINUTE,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._count = 0
        self._window_end = self._clock() + window_seconds

    def _roll_window(self, now: float) -> None:
        if now >= self._window_end:
            self._count = 0
            self._window_end = now + self.window_seconds

    def try_acquire(self) -> bool:
        with self._lock:
            self._roll_window(self._clock())
            if self._count >= self.capacity:
                logger.debug(f"Rate limit reached ({self._count}/{self.capacity})")
                return False
            self._count += 1
            return True

    def release(self) -> None:
        """Return a slot taken by try_acquire whose request did not succeed."""
        with self._lock:
            self._roll_window(self._clock())
            if self._count > 0:
                self._count -= 1

    def remaining(self) -> int:
        with self._lock:
            self._roll_window(self._clock())
            return max(self.capacity - self._count, 0)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            self._roll_window(now)
            return {
                "used": self._count,
                "capacity": self.capacity,
                "resets_in_seconds": round(max(self._window_end - now, 0.0), 2),
            }
