"""Retry / Backoff Policy

Pure decision functions: whether a failed provider attempt may be retried,
and how long to wait before the next one.
"""

import random
from typing import Callable, Optional
from image_studio.app.services.image_provider import ProviderError

JITTER_RATIO = 0.1


class RetryPolicy:
    """
    Exponential backoff with jitter

    delay(attempt) = base * 2^(attempt-1) + uniform(0, 10% of that)

    Only transient provider errors (timeout, provider rate limit, 5xx) are
    retried, and never past max_attempts. Anything else is fatal.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: int = 2000,
        rng: Optional[Callable[[], float]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._rng = rng or random.random

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, ProviderError) and error.retryable

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """
        Args:
            attempt: 1-based number of the attempt that just failed
            error: The failure it raised
        """
        if attempt >= self.max_attempts:
            return False
        return self.is_retryable(error)

    def next_delay(self, attempt: int) -> int:
        """
        Delay in milliseconds before the attempt following `attempt`
        """
        delay = self.base_delay_ms * (2 ** (max(attempt, 1) - 1))
        jitter = self._rng() * JITTER_RATIO * delay
        return int(delay + jitter)
