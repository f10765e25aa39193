# parceltrack/core/location/rate_limit.py
"""
Per-driver token bucket for location ingest.

A bucket holds `capacity` tokens and refills completely over
`refill_seconds`. Each report takes one token.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Hashable

from parceltrack.common.exceptions import RateLimitedError


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketLimiter:
    """In-process limiter keyed by driver id."""

    def __init__(
        self,
        capacity: int = 3,
        refill_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity = capacity
        self.rate = capacity / refill_seconds
        self._clock = clock
        self._buckets: dict[Hashable, _Bucket] = {}

    def allow(self, key: Hashable) -> bool:
        """Takes a token if one is available."""
        now = self._clock()
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = _Bucket(tokens=float(self.capacity), updated_at=now)
        else:
            elapsed = max(0.0, now - bucket.updated_at)
            bucket.tokens = min(float(self.capacity), bucket.tokens + elapsed * self.rate)
            bucket.updated_at = now

        if bucket.tokens < 1.0:
            return False
        bucket.tokens -= 1.0
        return True

    def check(self, key: Hashable) -> None:
        """
        Raises:
            RateLimitedError: bucket empty
        """
        if not self.allow(key):
            retry_after = (1.0 - self._buckets[key].tokens) / self.rate
            raise RateLimitedError(
                "Too many location updates",
                details={"retry_after": round(retry_after, 2)},
            )
