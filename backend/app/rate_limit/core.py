"""Core rate limiting logic."""

import logging
import math
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Protocol

from backend.app.rate_limit.types import RateLimitConfig, RateLimitDecision

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _wall_clock_ms() -> float:
    return time.time() * 1000


class RateLimitStore(Protocol):
    """Protocol for sliding window state backends."""

    # Whether expired keys must be swept by the process (no server-side TTL)
    sweeps_locally: bool

    def hit(self, key: str, config: RateLimitConfig, now_ms: float) -> RateLimitDecision:
        """Prune the key's window, then record the request if under the limit.

        Args:
            key: Rate limit key (route plus client identity).
            config: Limit and window for the route.
            now_ms: Current time in epoch milliseconds.

        Returns:
            RateLimitDecision for this request.
        """
        ...

    def sweep(self, now_ms: float) -> int:
        """Prune every key and drop keys left empty.

        Returns:
            Number of keys removed.
        """
        ...


class InMemoryRateLimitStore:
    """In-memory sliding window store.

    Suitable for single-instance deployments and tests. For multiple
    instances use RedisRateLimitStore.
    """

    sweeps_locally = True

    def __init__(self) -> None:
        """Initialize the in-memory store."""
        # Structure: {key: deque[timestamp_ms, ...]} in chronological order
        self._requests: dict[str, deque[float]] = {}
        # Last window seen per key, used by the sweep
        self._windows: dict[str, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def hit(self, key: str, config: RateLimitConfig, now_ms: float) -> RateLimitDecision:
        """Check the window and consume a slot if allowed.

        The prune, count and append happen under one lock so concurrent
        requests on the same key can never exceed the limit.
        """
        window_start = now_ms - config.window_ms

        with self._lock:
            timestamps = self._requests.get(key)
            if timestamps is None:
                timestamps = deque()

            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            self._windows[key] = config.window_ms

            if len(timestamps) >= config.limit:
                # Sliding window: wait until the oldest request in the window expires
                self._requests[key] = timestamps
                retry_after_ms = timestamps[0] + config.window_ms - now_ms
                return RateLimitDecision(
                    allowed=False,
                    retry_after_seconds=math.ceil(retry_after_ms / 1000),
                    remaining=0,
                )

            timestamps.append(now_ms)
            self._requests[key] = timestamps

            return RateLimitDecision(
                allowed=True,
                retry_after_seconds=0,
                remaining=config.limit - len(timestamps),
            )

    def sweep(self, now_ms: float) -> int:
        """Drop expired timestamps and remove keys with nothing left."""
        removed = 0
        with self._lock:
            for key in list(self._requests):
                window_ms = self._windows.get(key, 0)
                timestamps = self._requests[key]
                while timestamps and timestamps[0] <= now_ms - window_ms:
                    timestamps.popleft()
                if not timestamps:
                    del self._requests[key]
                    self._windows.pop(key, None)
                    removed += 1
        return removed

    def reset(self, key: str) -> None:
        """Forget all requests recorded for a key."""
        with self._lock:
            self._requests.pop(key, None)
            self._windows.pop(key, None)


class SlidingWindowRateLimiter:
    """Sliding window admission control shared by long-running endpoints.

    One instance is created per application and injected into routes, so
    tests can build isolated limiters with their own store and clock.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        *,
        enabled: bool = True,
        clock: Clock | None = None,
        cleanup_interval_s: float = 300.0,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: State backend (defaults to a fresh in-memory store).
            enabled: When False every request is allowed and nothing is recorded.
            clock: Returns current time in epoch milliseconds (for testing).
            cleanup_interval_s: Interval of the background sweep.
        """
        self.store: RateLimitStore = store if store is not None else InMemoryRateLimitStore()
        self.enabled = enabled
        self._clock = clock or _wall_clock_ms
        self.cleanup_interval_s = cleanup_interval_s
        self._cleanup_thread: threading.Thread | None = None
        self._cleanup_stop = threading.Event()
        self._cleanup_lock = threading.Lock()

    def check(self, key: str, config: RateLimitConfig) -> RateLimitDecision:
        """Check whether a request identified by `key` is within the limit.

        Args:
            key: Rate limit key, e.g. "analyze:ip:1.2.3.4".
            config: Limit and window for the route.

        Returns:
            RateLimitDecision with allowed status and retry hint.

        Example:
            decision = limiter.check("analyze:ip:1.2.3.4", RATE_LIMITS["analyze"])
            if not decision.allowed:
                # Return 429 with Retry-After: decision.retry_after_seconds
                pass
        """
        if not self.enabled:
            return RateLimitDecision(
                allowed=True, retry_after_seconds=0, remaining=config.limit
            )

        self._ensure_cleanup()
        return self.store.hit(key, config, self._clock())

    def sweep(self) -> int:
        """Run one sweep of the store immediately."""
        return self.store.sweep(self._clock())

    def _ensure_cleanup(self) -> None:
        """Start the background sweep on first use."""
        if self._cleanup_thread is not None or not self.store.sweeps_locally:
            return
        with self._cleanup_lock:
            if self._cleanup_thread is not None:
                return
            # Daemon thread: never keeps the process alive
            thread = threading.Thread(
                target=self._cleanup_loop, name="rate-limit-sweep", daemon=True
            )
            self._cleanup_thread = thread
            thread.start()

    def _cleanup_loop(self) -> None:
        while not self._cleanup_stop.wait(self.cleanup_interval_s):
            try:
                removed = self.sweep()
                if removed:
                    logger.debug("rate_limit_sweep", extra={"removed_keys": removed})
            except Exception:
                logger.exception("Rate limit sweep failed")

    def close(self) -> None:
        """Stop the background sweep."""
        self._cleanup_stop.set()
        thread = self._cleanup_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
