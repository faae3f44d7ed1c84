"""
Performance Analytics - Time-Series Store.

============================================================
RESPONSIBILITY
============================================================

Keeps timestamped latency samples per source and answers:
- Average latency over the last N minutes
- Average latency over every retained sample
- Which sources have samples

============================================================
RETENTION
============================================================

Samples older than retention_minutes are evicted when a new
sample is appended for the same source and by prune_expired().
Each source also keeps at most max_samples_per_source samples,
oldest dropped first. The all-time average is therefore the
average over retained samples.

============================================================
"""

import threading
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional, Set
import logging

from core.clock import ClockProtocol, SystemClock
from performance_analytics.models import PerformanceSample


logger = logging.getLogger(__name__)


class TimeSeriesStore:
    """
    Thread-safe per-source latency samples.

    Samples of one source are kept in insertion order.
    """

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        retention_minutes: float = 1440.0,
        max_samples_per_source: int = 10000,
    ) -> None:
        if retention_minutes <= 0:
            raise ValueError("retention_minutes must be positive")
        if max_samples_per_source < 1:
            raise ValueError("max_samples_per_source must be >= 1")

        self._clock = clock or SystemClock()
        self._retention = timedelta(minutes=retention_minutes)
        self._max_samples = max_samples_per_source
        self._samples: Dict[str, Deque[PerformanceSample]] = {}
        self._lock = threading.RLock()

    def record_metric(self, source_name: str, latency_ms: float) -> PerformanceSample:
        """Append a sample stamped with the current time."""
        if not source_name:
            raise ValueError("source_name must not be empty")
        if latency_ms < 0:
            raise ValueError(f"latency_ms must be non-negative, got {latency_ms}")

        now = self._clock.now()
        sample = PerformanceSample(timestamp=now, latency_ms=float(latency_ms))

        with self._lock:
            samples = self._samples.get(source_name)
            if samples is None:
                samples = deque(maxlen=self._max_samples)
                self._samples[source_name] = samples

            self._evict_older_than(samples, now - self._retention)
            samples.append(sample)

        return sample

    def get_average_performance(self, source_name: str, window_minutes: float) -> Optional[float]:
        """
        Average latency of samples taken within the last `window_minutes`.

        Returns:
            The average, or None when the source is unknown or has no
            sample inside the window
        """
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")

        cutoff = self._clock.now() - timedelta(minutes=window_minutes)
        with self._lock:
            samples = self._samples.get(source_name)
            if not samples:
                return None
            recent = [s.latency_ms for s in samples if s.timestamp >= cutoff]

        if not recent:
            return None
        return sum(recent) / len(recent)

    def get_overall_average_performance(self, source_name: str) -> Optional[float]:
        """Average latency of every retained sample, None for an unknown source."""
        with self._lock:
            samples = self._samples.get(source_name)
            if not samples:
                return None
            total = sum(s.latency_ms for s in samples)
            count = len(samples)

        return total / count

    def get_tracked_sources(self) -> Set[str]:
        """Names of sources with at least one retained sample."""
        with self._lock:
            return {name for name, samples in self._samples.items() if samples}

    def get_samples(self, source_name: str) -> List[PerformanceSample]:
        """Snapshot of a source's samples, oldest first."""
        with self._lock:
            return list(self._samples.get(source_name, ()))

    def sample_count(self, source_name: Optional[str] = None) -> int:
        """Retained samples for one source, or across all sources."""
        with self._lock:
            if source_name is not None:
                return len(self._samples.get(source_name, ()))
            return sum(len(s) for s in self._samples.values())

    def prune_expired(self) -> int:
        """
        Evict samples older than the retention period.

        Sources left without samples stop being tracked.

        Returns:
            Number of samples evicted
        """
        cutoff = self._clock.now() - self._retention
        removed = 0

        with self._lock:
            for name in list(self._samples.keys()):
                samples = self._samples[name]
                removed += self._evict_older_than(samples, cutoff)
                if not samples:
                    del self._samples[name]

        if removed:
            logger.debug(f"Pruned {removed} expired performance samples")
        return removed

    def clear(self) -> None:
        """Drop every sample."""
        with self._lock:
            self._samples.clear()

    @staticmethod
    def _evict_older_than(samples: Deque[PerformanceSample], cutoff) -> int:
        removed = 0
        while samples and samples[0].timestamp < cutoff:
            samples.popleft()
            removed += 1
        return removed
