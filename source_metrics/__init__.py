"""
Source Metrics Package - Cumulative per-source request statistics.
"""

from source_metrics.models import (
    ApiMetrics,
    ApiStatistics,
    OverallStatistics,
    PerformanceBucket,
    PerformanceBuckets,
    StatisticsResponse,
    classify_latency,
)
from source_metrics.recorder import MetricsRecorder


__all__ = [
    "ApiMetrics",
    "ApiStatistics",
    "MetricsRecorder",
    "OverallStatistics",
    "PerformanceBucket",
    "PerformanceBuckets",
    "StatisticsResponse",
    "classify_latency",
]
