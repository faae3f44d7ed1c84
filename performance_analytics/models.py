"""
Performance Analytics - Data Models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List

from performance_analytics.exceptions import MonitorObservationError


class MonitorState(Enum):
    """Lifecycle state of the anomaly monitor."""
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class PerformanceSample:
    """One latency observation for a source."""
    timestamp: datetime
    latency_ms: float


@dataclass(frozen=True)
class AnomalyReport:
    """Recent latency rose past the threshold relative to the all-time average."""
    source_name: str
    recent_average_ms: float
    overall_average_ms: float
    window_minutes: float
    percent_increase: float
    threshold_percent: float
    detected_at: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_name": self.source_name,
            "recent_average_ms": round(self.recent_average_ms, 2),
            "overall_average_ms": round(self.overall_average_ms, 2),
            "window_minutes": self.window_minutes,
            "percent_increase": round(self.percent_increase, 1),
            "threshold_percent": self.threshold_percent,
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass(frozen=True)
class PerformanceObservation:
    """Recent latency within the threshold."""
    source_name: str
    recent_average_ms: float
    overall_average_ms: float
    percent_change: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_name": self.source_name,
            "recent_average_ms": round(self.recent_average_ms, 2),
            "overall_average_ms": round(self.overall_average_ms, 2),
            "percent_change": round(self.percent_change, 1),
        }


@dataclass
class AnalysisPass:
    """Findings of one monitor pass."""
    started_at: datetime
    anomalies: List[AnomalyReport] = field(default_factory=list)
    observations: List[PerformanceObservation] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[MonitorObservationError] = field(default_factory=list)
    pruned_samples: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "started_at": self.started_at.isoformat(),
            "anomalies": [a.to_dict() for a in self.anomalies],
            "observations": [o.to_dict() for o in self.observations],
            "skipped": list(self.skipped),
            "errors": [e.to_dict() for e in self.errors],
            "pruned_samples": self.pruned_samples,
        }
