"""Sliding-window Rate Limiter

Counts admitted actions per (user, action) key within a trailing window.
The in-memory variant is only correct for a single-process deployment;
multi-instance deployments must use the Redis-backed implementation.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional


def rate_limit_key(user_id: str, action: str) -> str:
    return f"{user_id}:{action}"


def now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter(ABC):

    def __init__(self, max_requests: int, window_ms: int):
        self.max_requests = max_requests
        self.window_ms = window_ms

    @abstractmethod
    async def is_allowed(self, key: str) -> bool:
        """
        Prune expired entries, then admit and record the request only if
        fewer than max_requests remain in the window
        """
        pass

    @abstractmethod
    async def retry_after(self, key: str) -> int:
        """
        Milliseconds until the oldest entry in the window expires (0 if none)
        """
        pass

    @abstractmethod
    async def reset(self, key: Optional[str] = None) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):

    def __init__(
        self,
        max_requests: int = 10,
        window_ms: int = 60000,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(max_requests, window_ms)
        self._clock = clock
        self._entries: Dict[str, Deque[int]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    def _prune(self, key: str, now: int) -> Deque[int]:
        entries = self._entries[key]
        while entries and now - entries[0] >= self.window_ms:
            entries.popleft()
        return entries

    async def is_allowed(self, key: str) -> bool:
        async with self._lock:
            now = self._clock()
            entries = self._prune(key, now)
            if len(entries) < self.max_requests:
                entries.append(now)
                return True
            return False

    async def retry_after(self, key: str) -> int:
        async with self._lock:
            now = self._clock()
            entries = self._prune(key, now)
            if not entries:
                return 0
            return max(0, entries[0] + self.window_ms - now)

    async def reset(self, key: Optional[str] = None) -> None:
        async with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
