"""
Sliding-window rate limiting for write-heavy endpoints.

Counters live behind the RateLimitStore protocol. The in-memory store serves a
single process; a multi-instance deployment plugs in a shared store with the
same increment() contract and no call site changes.
"""
import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Protocol, Tuple

from leavetrack.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitHit:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_seconds: int


class RateLimitExceeded(Exception):
    """The caller used up the budget for this window."""

    def __init__(self, key: str, limit: int, retry_after: int):
        self.key = key
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(f"Rate limit of {limit} exceeded for {key}; retry after {retry_after}s")


class RateLimitStore(Protocol):
    """Counter backend: record one hit for key and report the hits inside the window."""

    def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        ...


class InMemoryRateLimitStore:
    """
    Sliding log per key, guarded by a lock.

    Expired timestamps are trimmed on every access to their key, and idle keys
    are evicted by a periodic sweep so the map does not grow without bound.
    """

    SWEEP_EVERY = 1000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Tuple[int, Deque[float]]] = {}
        self._calls = 0

    def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        now = self._clock()
        with self._lock:
            self._calls += 1
            if self._calls % self.SWEEP_EVERY == 0:
                self._sweep(now)

            _, log = self._hits.get(key, (window_seconds, deque()))
            cutoff = now - window_seconds
            while log and log[0] <= cutoff:
                log.popleft()
            log.append(now)
            self._hits[key] = (window_seconds, log)
            return RateLimitHit(count=len(log), reset_at=log[0] + window_seconds)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (window, log) in self._hits.items() if not log or log[-1] <= now - window]
        for key in expired:
            del self._hits[key]
        if expired:
            logger.debug("Evicted %d idle rate-limit keys", len(expired))

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def __len__(self) -> int:
        return len(self._hits)


class RateLimiter:
    def __init__(self, store: RateLimitStore, clock: Callable[[], float] = time.monotonic):
        self.store = store
        self._clock = clock

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitHit:
        """
        Count one request against policy.

        Raises:
            RateLimitExceeded: once the window holds more than max_requests hits
        """
        hit = self.store.increment(key, policy.window_seconds)
        if hit.count > policy.max_requests:
            retry_after = max(1, math.ceil(hit.reset_at - self._clock()))
            logger.warning(
                "Rate limit exceeded: key=%s count=%s limit=%s retry_after=%ss",
                key, hit.count, policy.max_requests, retry_after,
            )
            raise RateLimitExceeded(key, policy.max_requests, retry_after)
        return hit


def get_policy(endpoint_class: str) -> RateLimitPolicy:
    """Budgets per endpoint class, read from settings."""
    if endpoint_class == "submission":
        return RateLimitPolicy(
            "submission", settings.RATE_LIMIT_SUBMISSION_MAX, settings.RATE_LIMIT_SUBMISSION_WINDOW_SECONDS
        )
    if endpoint_class == "approval":
        return RateLimitPolicy(
            "approval", settings.RATE_LIMIT_APPROVAL_MAX, settings.RATE_LIMIT_APPROVAL_WINDOW_SECONDS
        )
    raise ValueError(f"Unknown rate limit class: {endpoint_class}")


rate_limiter = RateLimiter(InMemoryRateLimitStore())
