"""Fixed-window request limiter for the assessment endpoint.

Counters live in process memory; deployments running several workers should
put a shared limiter behind the same RateLimiter interface.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from .collaborators import RateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_time: float


def build_identifier(ip: Optional[str], user_id: Optional[str], path: str) -> str:
    """Limiter key: client address, user (or anonymous) and endpoint."""
    return f"{ip or 'unknown'}:{user_id or 'anonymous'}:{path}"


class InMemoryRateLimiter(RateLimiter):
    """Counts requests per identifier within a fixed window."""

    def __init__(
        self,
        window_seconds: int = 60,
        max_requests: int = 10,
        max_tracked: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_tracked = max_tracked
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()

        with self._lock:
            window = self._windows.get(identifier)
            if window is None or now > window.reset_time:
                if window is None and len(self._windows) >= self.max_tracked:
                    self._evict_expired(now)
                window = _Window(count=0, reset_time=now + self.window_seconds)
                self._windows[identifier] = window

            window.count += 1
            count = window.count
            reset_time = window.reset_time

        allowed = count <= self.max_requests
        retry_after = None if allowed else max(1, math.ceil(reset_time - now))

        if not allowed:
            logger.warning(
                "RATE_LIMIT_EXCEEDED",
                extra={
                    "count": count,
                    "limit": self.max_requests,
                    "retry_after": retry_after,
                }
            )

        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=datetime.utcfromtimestamp(reset_time),
            retry_after=retry_after,
        )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, w in self._windows.items() if now > w.reset_time]
        for key in expired:
            del self._windows[key]
        logger.debug("RATE_LIMIT_WINDOWS_EVICTED", extra={"evicted": len(expired)})
