"""
Aggregation - Configuration.

Partial-failure policy, cache lifetime and per-source limits.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging


logger = logging.getLogger(__name__)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AggregationConfig:
    """
    Settings for the aggregation engine.

    - require_all_sources: fail the whole request when any resolved
      source fails
    - cache_duration_minutes: absolute TTL of a cached source payload
      (the sliding window is half of it)
    - source_timeout_seconds: upper bound for one source fetch
    - max_retry_attempts: attempts per fetch inside a provider
    """
    require_all_sources: bool = False
    cache_duration_minutes: float = 5.0
    source_timeout_seconds: float = 10.0
    max_retry_attempts: int = 3

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.cache_duration_minutes <= 0:
            raise ValueError("cache_duration_minutes must be positive")
        if self.source_timeout_seconds <= 0:
            raise ValueError("source_timeout_seconds must be positive")
        if self.max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be >= 1")

    @classmethod
    def from_env(cls) -> "AggregationConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - AGGREGATOR_REQUIRE_ALL_SOURCES
        - AGGREGATOR_CACHE_DURATION_MINUTES
        - AGGREGATOR_SOURCE_TIMEOUT_SECONDS
        - AGGREGATOR_MAX_RETRY_ATTEMPTS
        """
        config = cls()

        if os.getenv("AGGREGATOR_REQUIRE_ALL_SOURCES"):
            config.require_all_sources = _env_bool(os.getenv("AGGREGATOR_REQUIRE_ALL_SOURCES"))
        if os.getenv("AGGREGATOR_CACHE_DURATION_MINUTES"):
            config.cache_duration_minutes = float(os.getenv("AGGREGATOR_CACHE_DURATION_MINUTES"))
        if os.getenv("AGGREGATOR_SOURCE_TIMEOUT_SECONDS"):
            config.source_timeout_seconds = float(os.getenv("AGGREGATOR_SOURCE_TIMEOUT_SECONDS"))
        if os.getenv("AGGREGATOR_MAX_RETRY_ATTEMPTS"):
            config.max_retry_attempts = int(os.getenv("AGGREGATOR_MAX_RETRY_ATTEMPTS"))

        config.__post_init__()
        return config

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AggregationConfig":
        defaults = cls()
        data = data or {}
        return cls(
            require_all_sources=bool(data.get("require_all_sources", defaults.require_all_sources)),
            cache_duration_minutes=float(data.get("cache_duration_minutes", defaults.cache_duration_minutes)),
            source_timeout_seconds=float(data.get("source_timeout_seconds", defaults.source_timeout_seconds)),
            max_retry_attempts=int(data.get("max_retry_attempts", defaults.max_retry_attempts)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "require_all_sources": self.require_all_sources,
            "cache_duration_minutes": self.cache_duration_minutes,
            "source_timeout_seconds": self.source_timeout_seconds,
            "max_retry_attempts": self.max_retry_attempts,
        }
