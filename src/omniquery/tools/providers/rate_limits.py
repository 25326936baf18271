"""Per-provider usage counters and rate-limit cooldown state.

The tracker is process-wide shared state: every financial specialist run
records its provider outcomes here, possibly from several threads at once.
Each provider owns its own ``ProviderUsageStats`` with its own lock, so
updates to one provider never block another.  The tracker-level lock is
only taken to create a stats entry the first time a provider is seen.

Windows are bucketed by ``floor(now / window)``; buckets older than the
current one are dropped lazily on the next write.  The cooldown flag
(``is_rate_limited_recently``) is advisory – the sequential chain ignores
it, only the provider selector reads it.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

MINUTE_WINDOW = 60
HOUR_WINDOW = 3600
RATE_LIMIT_COOLDOWN = 5 * 60

Clock = Callable[[], float]


class ProviderUsageStats:
    """Counters, timestamps and sliding windows for one provider."""

    def __init__(self, provider_name: str, clock: Clock = time.time):
        self.provider_name = provider_name
        self._clock = clock
        self._lock = threading.Lock()

        self.success_count = 0
        self.failure_count = 0
        self.rate_limit_count = 0
        self.last_success: float | None = None
        self.last_failure: float | None = None
        self.last_rate_limit: float | None = None
        self.last_failure_reason = ""

        self._minute_buckets: dict[int, int] = {}
        self._hour_buckets: dict[int, int] = {}

    # ── writes ──────────────────────────────────────────────────────────

    def _record_call(self, now: float) -> None:
        # caller holds self._lock
        for buckets, window in ((self._minute_buckets, MINUTE_WINDOW), (self._hour_buckets, HOUR_WINDOW)):
            bucket = math.floor(now / window)
            for stale in [b for b in buckets if b != bucket]:
                del buckets[stale]
            buckets[bucket] = buckets.get(bucket, 0) + 1

    def record_success(self) -> None:
        now = self._clock()
        with self._lock:
            self.success_count += 1
            self.last_success = now
            self._record_call(now)

    def record_failure(self, reason: str) -> None:
        now = self._clock()
        with self._lock:
            self.failure_count += 1
            self.last_failure = now
            self.last_failure_reason = reason
            self._record_call(now)

    def record_rate_limit(self, reason: str = "") -> None:
        now = self._clock()
        with self._lock:
            self.rate_limit_count += 1
            self.last_rate_limit = now
            if reason:
                self.last_failure_reason = reason
            self._record_call(now)

    def reset(self) -> None:
        with self._lock:
            self.success_count = self.failure_count = self.rate_limit_count = 0
            self.last_success = self.last_failure = self.last_rate_limit = None
            self.last_failure_reason = ""
            self._minute_buckets.clear()
            self._hour_buckets.clear()

    # ── reads ───────────────────────────────────────────────────────────

    def _window_count(self, buckets: dict[int, int], window: int) -> int:
        bucket = math.floor(self._clock() / window)
        with self._lock:
            return buckets.get(bucket, 0)

    def calls_last_minute(self) -> int:
        return self._window_count(self._minute_buckets, MINUTE_WINDOW)

    def calls_last_hour(self) -> int:
        return self._window_count(self._hour_buckets, HOUR_WINDOW)

    @property
    def total_calls(self) -> int:
        return self.success_count + self.failure_count + self.rate_limit_count

    def success_rate(self) -> float:
        """Share of recorded calls that succeeded; 1.0 before any call."""
        total = self.total_calls
        return 1.0 if total == 0 else self.success_count / total

    def is_rate_limited_recently(self) -> bool:
        last = self.last_rate_limit
        return last is not None and (self._clock() - last) < RATE_LIMIT_COOLDOWN

    def summary(self) -> str:
        text = (
            f"{self.provider_name}: success={self.success_count} "
            f"failure={self.failure_count} rate_limited={self.rate_limit_count} "
            f"success_rate={self.success_rate():.0%} "
            f"last_min={self.calls_last_minute()} last_hour={self.calls_last_hour()}"
        )
        if self.is_rate_limited_recently():
            text += " [RATE LIMITED]"
        return text


class RateLimitTracker:
    """Process-wide registry of ``ProviderUsageStats``."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._stats: dict[str, ProviderUsageStats] = {}
        self._lock = threading.Lock()

    def get_stats(self, provider_name: str) -> ProviderUsageStats:
        stats = self._stats.get(provider_name)
        if stats is not None:
            return stats
        with self._lock:
            return self._stats.setdefault(provider_name, ProviderUsageStats(provider_name, self._clock))

    def record_success(self, provider_name: str) -> None:
        self.get_stats(provider_name).record_success()

    def record_failure(self, provider_name: str, reason: str) -> None:
        self.get_stats(provider_name).record_failure(reason)

    def record_rate_limit(self, provider_name: str, reason: str = "") -> None:
        logger.warning("Rate limit hit for %s: %s", provider_name, reason)
        self.get_stats(provider_name).record_rate_limit(reason)

    def is_rate_limited_recently(self, provider_name: str) -> bool:
        return self.get_stats(provider_name).is_rate_limited_recently()

    def all_stats_summary(self) -> str:
        with self._lock:
            stats = sorted(self._stats.values(), key=lambda s: s.provider_name)
        if not stats:
            return "No provider usage recorded."
        return "\n".join(s.summary() for s in stats)

    def reset_all(self) -> None:
        with self._lock:
            stats = list(self._stats.values())
        for s in stats:
            s.reset()


# Shared by every chain built without an explicit tracker.
default_tracker = RateLimitTracker()
