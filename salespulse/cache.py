"""
Short-TTL memo for the dashboard summary.

One slot, owned by the app (see dashboard.api.main lifespan). Concurrent
requests may both miss and both recompute; the last put wins, which only
costs a duplicate upstream fetch.

Usage:
    cache = SummaryCache(ttl_seconds=300)
    summary = cache.get(threshold, default_threshold)
    if summary is None:
        summary = await build()
        cache.put(summary, threshold, default_threshold)
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from salespulse.logger import setup_logger

logger = setup_logger("summary_cache")


@dataclass
class _Entry:
    summary: dict
    threshold: float
    stored_at: float


class SummaryCache:
    """Single-slot summary memo keyed on 'request used the default threshold'."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[_Entry] = None

    def get(self, threshold: float, default_threshold: float) -> Optional[dict]:
        """Cached summary, or None if stale, empty or the threshold is non-default."""
        if threshold != default_threshold:
            return None
        entry = self._entry
        if entry is None or entry.threshold != threshold:
            return None
        age = self._clock() - entry.stored_at
        if age >= self.ttl_seconds:
            logger.debug("Summary cache stale (age %.1fs)", age)
            return None
        return entry.summary

    def put(self, summary: dict, threshold: float, default_threshold: float) -> bool:
        """Store *summary* if it was built with the default threshold."""
        if threshold != default_threshold:
            return False
        self._entry = _Entry(summary=summary, threshold=threshold, stored_at=self._clock())
        return True

    def clear(self) -> None:
        self._entry = None

    @property
    def age(self) -> Optional[float]:
        if self._entry is None:
            return None
        return self._clock() - self._entry.stored_at
