"""
Performance Analytics - Configuration.

============================================================
CONFIGURABLE MONITORING
============================================================

- Check interval of the anomaly monitor
- Recent window compared against the all-time average
- Anomaly threshold (percent increase)
- Sample retention (age and count per source)

Configuration can be loaded from:
- Default values
- Environment variables
- A mapping (the `monitor` section of the YAML config)

============================================================
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging


logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """Settings for the time-series store and the anomaly monitor."""
    check_interval_minutes: float = 1.0
    window_minutes: float = 5.0
    anomaly_threshold_percent: float = 50.0
    retention_minutes: float = 1440.0  # 24 hours
    max_samples_per_source: int = 10000

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.check_interval_minutes <= 0:
            raise ValueError("check_interval_minutes must be positive")
        if self.window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        if self.anomaly_threshold_percent <= 0:
            raise ValueError("anomaly_threshold_percent must be positive")
        if self.retention_minutes < self.window_minutes:
            raise ValueError("retention_minutes must be >= window_minutes")
        if self.max_samples_per_source < 1:
            raise ValueError("max_samples_per_source must be >= 1")

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_minutes * 60

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - AGGREGATOR_MONITOR_INTERVAL_MINUTES
        - AGGREGATOR_MONITOR_WINDOW_MINUTES
        - AGGREGATOR_ANOMALY_THRESHOLD_PERCENT
        - AGGREGATOR_RETENTION_MINUTES
        - AGGREGATOR_MAX_SAMPLES_PER_SOURCE
        """
        defaults = cls()
        return cls(
            check_interval_minutes=float(
                os.getenv("AGGREGATOR_MONITOR_INTERVAL_MINUTES", defaults.check_interval_minutes)
            ),
            window_minutes=float(
                os.getenv("AGGREGATOR_MONITOR_WINDOW_MINUTES", defaults.window_minutes)
            ),
            anomaly_threshold_percent=float(
                os.getenv("AGGREGATOR_ANOMALY_THRESHOLD_PERCENT", defaults.anomaly_threshold_percent)
            ),
            retention_minutes=float(
                os.getenv("AGGREGATOR_RETENTION_MINUTES", defaults.retention_minutes)
            ),
            max_samples_per_source=int(
                os.getenv("AGGREGATOR_MAX_SAMPLES_PER_SOURCE", defaults.max_samples_per_source)
            ),
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MonitorConfig":
        defaults = cls()
        data = data or {}
        return cls(
            check_interval_minutes=float(data.get("check_interval_minutes", defaults.check_interval_minutes)),
            window_minutes=float(data.get("window_minutes", defaults.window_minutes)),
            anomaly_threshold_percent=float(
                data.get("anomaly_threshold_percent", defaults.anomaly_threshold_percent)
            ),
            retention_minutes=float(data.get("retention_minutes", defaults.retention_minutes)),
            max_samples_per_source=int(data.get("max_samples_per_source", defaults.max_samples_per_source)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "check_interval_minutes": self.check_interval_minutes,
            "window_minutes": self.window_minutes,
            "anomaly_threshold_percent": self.anomaly_threshold_percent,
            "retention_minutes": self.retention_minutes,
            "max_samples_per_source": self.max_samples_per_source,
        }
