"""
Fixed-window rate limiting keyed by ``operation:identity``.

Two interchangeable backends:

- InMemoryRateLimiter: process-local dict. A restart resets every window
  and separate workers keep separate counts. Expired windows are swept at
  most once per sweep interval.
- RedisRateLimiter: the same algorithm inside one Lua script, so the
  check and the increment are a single atomic step shared by all workers.

Fixed windows are bursty at the boundary (up to 2 x max across a reset);
the goal is coarse abuse prevention, not precise throttling.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in_minutes: Optional[int] = None


@dataclass
class _Window:
    count: int
    reset_at: float


def _minutes_until(seconds: float) -> int:
    return max(1, math.ceil(seconds / 60))


class RateLimiter(Protocol):
    async def check(self, key: str, max_attempts: int, window_seconds: int) -> RateLimitResult: ...


class InMemoryRateLimiter:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep = clock() + sweep_interval_seconds

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]
        self._next_sweep = now + self._sweep_interval

    async def check(self, key: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        return self.check_sync(key, max_attempts, window_seconds)

    def check_sync(self, key: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)
            window = self._windows.get(key)

            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + window_seconds)
                return RateLimitResult(allowed=True, remaining=max_attempts - 1)

            if window.count >= max_attempts:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_in_minutes=_minutes_until(window.reset_at - now),
                )

            window.count += 1
            return RateLimitResult(allowed=True, remaining=max_attempts - window.count)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


# KEYS[1] = counter key, ARGV[1] = max attempts, ARGV[2] = window in ms.
# Returns {allowed (0/1), count, ttl_ms}.
_FIXED_WINDOW_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
  redis.call('SET', KEYS[1], 1, 'PX', ARGV[2])
  return {1, 1, tonumber(ARGV[2])}
end
local ttl = redis.call('PTTL', KEYS[1])
if tonumber(current) >= tonumber(ARGV[1]) then
  return {0, tonumber(current), ttl}
end
local count = redis.call('INCR', KEYS[1])
return {1, count, ttl}
"""


class RedisRateLimiter:
    def __init__(self, redis_client: aioredis.Redis, prefix: str = "rate_limit") -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._script = redis_client.register_script(_FIXED_WINDOW_SCRIPT)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def check(self, key: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        try:
            allowed, count, ttl_ms = await self._script(
                keys=[self._key(key)], args=[max_attempts, window_seconds * 1000]
            )
        except RedisError as e:
            # Fail open: an unreachable Redis must not lock every user out
            log.warning(
                "rate_limit_backend_error",
                operation=key.split(":", 1)[0],
                error=str(e),
            )
            return RateLimitResult(allowed=True, remaining=max_attempts)
        if int(allowed):
            return RateLimitResult(allowed=True, remaining=max(max_attempts - int(count), 0))
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_in_minutes=_minutes_until(max(int(ttl_ms), 0) / 1000),
        )
