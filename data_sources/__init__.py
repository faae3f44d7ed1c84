"""
Data Sources Package - Pluggable external data source layer.

Provides isolated, replaceable data providers behind one interface.

Features:
- Normalized DataItem output across all sources
- Retry with backoff and cooperative cancellation
- Health tracking per provider
- No downstream dependency on specific providers

Quick Start:
    from data_sources import NewsSource, SourceRegistry, SourcesConfig

    config = SourcesConfig.from_env()
    registry = SourceRegistry()
    registry.register(NewsSource(config.news))

    items = await registry.get_source("news").fetch()

Adding New Providers:
    1. Create class extending BaseDataSource
    2. Implement: name, fetch_raw(), normalize(), metadata()
    3. Register with SourceRegistry
    4. No changes needed to aggregation, caching or statistics
"""

from data_sources.base import BaseDataSource
from data_sources.config import SourceEndpointConfig, SourcesConfig
from data_sources.exceptions import (
    ConfigurationError,
    DataSourceError,
    FetchError,
    NormalizationError,
    RateLimitError,
    SourceCancelledError,
    SourceTimeoutError,
    SourceUnavailableError,
)
from data_sources.models import (
    DataItem,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
)
from data_sources.providers import NewsSource, UsersSource, WeatherSource
from data_sources.registry import SourceRegistry


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseDataSource",

    # Config
    "SourceEndpointConfig",
    "SourcesConfig",

    # Models
    "DataItem",
    "SourceHealth",
    "SourceMetadata",
    "SourceStatus",

    # Exceptions
    "DataSourceError",
    "FetchError",
    "NormalizationError",
    "RateLimitError",
    "SourceCancelledError",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "ConfigurationError",

    # Providers
    "NewsSource",
    "UsersSource",
    "WeatherSource",

    # Registry
    "SourceRegistry",
]
