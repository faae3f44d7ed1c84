"""
Performance Analytics Package - Latency time series and anomaly detection.
"""

from performance_analytics.config import MonitorConfig
from performance_analytics.exceptions import MonitorObservationError
from performance_analytics.models import (
    AnalysisPass,
    AnomalyReport,
    MonitorState,
    PerformanceObservation,
    PerformanceSample,
)
from performance_analytics.monitor import AnomalyMonitor
from performance_analytics.store import TimeSeriesStore


__all__ = [
    "AnalysisPass",
    "AnomalyMonitor",
    "AnomalyReport",
    "MonitorConfig",
    "MonitorObservationError",
    "MonitorState",
    "PerformanceObservation",
    "PerformanceSample",
    "TimeSeriesStore",
]
