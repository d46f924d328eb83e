"""Per-client request throttling"""

import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict, Optional, Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter keyed by client.

    Allows at most max_requests per window_seconds for each key.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock

        self._hits: Dict[str, Deque[float]] = {}
        self.lock = Lock()

    def _clean_old_hits(self, now: float) -> None:
        """Drop timestamps outside the window, and clients left with none"""
        cutoff = now - self.window_seconds
        for key in list(self._hits.keys()):
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if not hits:
                del self._hits[key]

    def hit(self, key: str) -> Tuple[bool, Optional[float]]:
        """
        Record a request for key if it is within the limit.

        Returns:
            Tuple of (allowed, retry_after_seconds_if_not_allowed)
        """
        with self.lock:
            now = self.clock()
            self._clean_old_hits(now)
            hits = self._hits.setdefault(key, deque())

            if len(hits) >= self.max_requests:
                retry_after = max(0.0, hits[0] + self.window_seconds - now) if hits else self.window_seconds
                logger.warning("Rate limit exceeded", client=key, retry_after=round(retry_after, 1))
                return False, retry_after

            hits.append(now)
            return True, None

    def reset(self, key: Optional[str] = None) -> None:
        with self.lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
