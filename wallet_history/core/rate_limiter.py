"""Per-network sliding window rate limiter for outbound source calls."""

import asyncio
import time
from collections import defaultdict, deque
from typing import Awaitable, Callable, Deque, Dict, Tuple

import structlog

from wallet_history.models.networks import NetworkRegistry, RateLimit
from wallet_history.utils.metrics import metrics

logger = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """
    In-memory rate limiter using a sliding window per network key.

    Callers for the same key serialize on that key's lock, so the window
    is never mutated concurrently; different keys never block each other.
    State is process-local and starts empty.
    """

    def __init__(self, registry: NetworkRegistry,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.registry = registry
        self._clock = clock
        self._sleep = sleep
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, network_key: str) -> asyncio.Lock:
        lock = self._locks.get(network_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[network_key] = lock
        return lock

    def _prune(self, window: Deque[float], limit: RateLimit, now: float) -> None:
        # Remove old requests outside the window
        while window and window[0] <= now - limit.window_seconds:
            window.popleft()

    async def acquire(self, network_key: str) -> float:
        """
        Wait until a slot is free for ``network_key``, then record the call.

        Returns the number of seconds the caller was suspended.
        """
        limit = self.registry.rate_limit_for(network_key)

        async with self._lock_for(network_key):
            window = self.requests[network_key]
            now = self._clock()
            self._prune(window, limit, now)

            waited = 0.0
            if len(window) >= limit.max_requests:
                wait = limit.window_seconds - (now - window[0])
                if wait > 0:
                    logger.debug("Rate limit reached, waiting",
                                 network=network_key,
                                 wait_seconds=round(wait, 3))
                    metrics.rate_limit_waits.labels(network=network_key).inc()
                    await self._sleep(wait)
                    waited = wait
                now = self._clock()
                self._prune(window, limit, now)

            window.append(now)
            return waited

    def get_remaining(self, network_key: str) -> Tuple[int, float]:
        """Get remaining requests and the time the oldest slot frees up."""
        limit = self.registry.rate_limit_for(network_key)
        now = self._clock()
        window = self.requests[network_key]
        self._prune(window, limit, now)

        remaining = max(0, limit.max_requests - len(window))
        reset_time = window[0] + limit.window_seconds if window else now
        return remaining, reset_time

    def reset(self) -> None:
        self.requests.clear()
