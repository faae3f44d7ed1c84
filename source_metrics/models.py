"""
Source Metrics - Data Models.

============================================================
LATENCY BUCKETS
============================================================

- FAST:    latency < 200 ms
- AVERAGE: 200 ms <= latency <= 500 ms
- SLOW:    latency > 500 ms

Every recorded request lands in exactly one bucket, so
fast + average + slow == total at all times.

============================================================
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, List, Tuple


FAST_THRESHOLD_MS = 200
SLOW_THRESHOLD_MS = 500
MAX_LATENCY_SAMPLES = 100


class PerformanceBucket(Enum):
    """Latency bucket of a single request."""
    FAST = "fast"
    AVERAGE = "average"
    SLOW = "slow"


def classify_latency(latency_ms: float) -> PerformanceBucket:
    """Map a latency to its bucket."""
    if latency_ms < FAST_THRESHOLD_MS:
        return PerformanceBucket.FAST
    if latency_ms <= SLOW_THRESHOLD_MS:
        return PerformanceBucket.AVERAGE
    return PerformanceBucket.SLOW


# =============================================================
# MUTABLE PER-SOURCE COUNTERS
# =============================================================


@dataclass
class ApiMetrics:
    """
    Cumulative counters for one source.

    Created on the first recording for a source and only
    discarded by a reset. All mutation goes through record().
    """
    source_name: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    cache_hits: int = 0
    fast: int = 0
    average: int = 0
    slow: int = 0
    total_latency_ms: float = 0.0

    # Most recent latencies, oldest first; exposed as recent_response_times_ms
    latency_samples: Deque[float] = field(
        default_factory=lambda: deque(maxlen=MAX_LATENCY_SAMPLES)
    )

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def record(self, latency_ms: float, success: bool, from_cache: bool = False) -> None:
        """Count one request."""
        bucket = classify_latency(latency_ms)
        with self._lock:
            self.total += 1
            if success:
                self.successful += 1
                if from_cache:
                    self.cache_hits += 1
            else:
                self.failed += 1

            if bucket == PerformanceBucket.FAST:
                self.fast += 1
            elif bucket == PerformanceBucket.AVERAGE:
                self.average += 1
            else:
                self.slow += 1

            self.total_latency_ms += latency_ms
            self.latency_samples.append(latency_ms)

    def snapshot(self) -> "ApiStatistics":
        """Take a consistent read of the counters."""
        with self._lock:
            average_latency = self.total_latency_ms / self.total if self.total else 0.0
            cache_hit_rate = self.cache_hits / self.total * 100 if self.total else 0.0
            return ApiStatistics(
                source_name=self.source_name,
                total_requests=self.total,
                successful_requests=self.successful,
                failed_requests=self.failed,
                average_response_time_ms=round(average_latency, 2),
                buckets=PerformanceBuckets(
                    fast=self.fast,
                    average=self.average,
                    slow=self.slow,
                ),
                cache_hit_rate=round(cache_hit_rate, 2),
                recent_response_times_ms=tuple(self.latency_samples),
            )


# =============================================================
# READ-SIDE SNAPSHOTS
# =============================================================


@dataclass(frozen=True)
class PerformanceBuckets:
    """Request counts per latency bucket."""
    fast: int = 0
    average: int = 0
    slow: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"fast": self.fast, "average": self.average, "slow": self.slow}


@dataclass(frozen=True)
class ApiStatistics:
    """Statistics for a single source."""
    source_name: str
    total_requests: int
    successful_requests: int
    failed_requests: int
    average_response_time_ms: float
    buckets: PerformanceBuckets
    cache_hit_rate: float
    recent_response_times_ms: Tuple[float, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_name": self.source_name,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_response_time_ms": self.average_response_time_ms,
            "buckets": self.buckets.to_dict(),
            "cache_hit_rate": self.cache_hit_rate,
            "recent_response_times_ms": list(self.recent_response_times_ms),
        }


@dataclass(frozen=True)
class OverallStatistics:
    """Statistics across all sources."""
    total_requests: int = 0
    average_response_time_ms: float = 0.0
    success_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "average_response_time_ms": self.average_response_time_ms,
            "success_rate": self.success_rate,
        }


@dataclass(frozen=True)
class StatisticsResponse:
    """Per-source statistics plus the overall summary."""
    source_stats: List[ApiStatistics] = field(default_factory=list)
    overall: OverallStatistics = field(default_factory=OverallStatistics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_stats": [s.to_dict() for s in self.source_stats],
            "overall": self.overall.to_dict(),
        }
