"""
Core Module - Application Configuration.

============================================================
SOURCES
============================================================

- Defaults
- Environment variables (AGGREGATOR_*), after loading a
  .env file with python-dotenv
- YAML file with the sections: server, logging, aggregation,
  monitor, sources

============================================================
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union
import logging

import yaml
from dotenv import load_dotenv

from aggregation.config import AggregationConfig
from data_sources.config import SourcesConfig
from performance_analytics.config import MonitorConfig


logger = logging.getLogger(__name__)


LOG_FORMATS = ("text", "json")


@dataclass
class AppConfig:
    """Top-level configuration of the service."""
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_format: str = "text"
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)

    def __post_init__(self) -> None:
        """Validate settings."""
        if not 0 < self.port < 65536:
            raise ValueError("port must be 1-65535")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        self.log_level = self.log_level.upper()

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - AGGREGATOR_HOST
        - AGGREGATOR_PORT
        - AGGREGATOR_LOG_LEVEL
        - AGGREGATOR_LOG_FORMAT
        plus those read by AggregationConfig, MonitorConfig and
        SourcesConfig.
        """
        load_dotenv()

        return cls(
            host=os.getenv("AGGREGATOR_HOST", "0.0.0.0"),
            port=int(os.getenv("AGGREGATOR_PORT", "8000")),
            log_level=os.getenv("AGGREGATOR_LOG_LEVEL", "INFO"),
            log_format=os.getenv("AGGREGATOR_LOG_FORMAT", "text"),
            aggregation=AggregationConfig.from_env(),
            monitor=MonitorConfig.from_env(),
            sources=SourcesConfig.from_env(),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AppConfig":
        """Load configuration from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        server = data.get("server") or {}
        log = data.get("logging") or {}
        return cls(
            host=server.get("host", "0.0.0.0"),
            port=int(server.get("port", 8000)),
            log_level=log.get("level", "INFO"),
            log_format=log.get("format", "text"),
            aggregation=AggregationConfig.from_dict(data.get("aggregation")),
            monitor=MonitorConfig.from_dict(data.get("monitor")),
            sources=SourcesConfig.from_dict(data.get("sources")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary. API keys are masked."""
        return {
            "server": {"host": self.host, "port": self.port},
            "logging": {"level": self.log_level, "format": self.log_format},
            "aggregation": self.aggregation.to_dict(),
            "monitor": self.monitor.to_dict(),
            "sources": self.sources.to_dict(),
        }
