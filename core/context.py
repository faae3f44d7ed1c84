"""
Core Module - Application Context.

============================================================
RESPONSIBILITY
============================================================
Owns every process-wide component and ties their lifecycle
to server start/stop:

- SourceRegistry (providers)
- CacheStore, MetricsRecorder, TimeSeriesStore
- AggregationEngine
- AnomalyMonitor (background task)

Nothing here is a module-level singleton; tests build their
own context with mock providers and a MockClock.

============================================================
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from aggregation.engine import AggregationEngine
from caching.cache_store import CacheStore
from core.clock import ClockProtocol, SystemClock
from core.config import AppConfig
from data_sources.base import BaseDataSource
from data_sources.providers import NewsSource, UsersSource, WeatherSource
from data_sources.registry import SourceRegistry
from performance_analytics.monitor import AnomalyMonitor
from performance_analytics.store import TimeSeriesStore
from source_metrics.recorder import MetricsRecorder


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """All shared components of one running service."""
    config: AppConfig
    clock: ClockProtocol
    registry: SourceRegistry
    cache: CacheStore
    recorder: MetricsRecorder
    time_series: TimeSeriesStore
    engine: AggregationEngine
    monitor: AnomalyMonitor

    async def start(self) -> None:
        """Start background work."""
        await self.monitor.start()
        logger.info(f"Service started with sources: {self.registry.list_sources()}")

    async def stop(self) -> None:
        """Stop background work and release provider resources."""
        await self.monitor.stop()
        await self.registry.close()
        logger.info("Service stopped")


def build_default_providers(
    config: AppConfig,
    clock: Optional[ClockProtocol] = None,
) -> List[BaseDataSource]:
    """Create the built-in News, Weather and Users providers."""
    sources = config.sources
    timeout = config.aggregation.source_timeout_seconds
    retries = config.aggregation.max_retry_attempts

    return [
        NewsSource(sources.news, timeout=timeout, max_retries=retries, clock=clock),
        WeatherSource(
            sources.weather,
            city=sources.weather_city,
            timeout=timeout,
            max_retries=retries,
            clock=clock,
        ),
        UsersSource(sources.users, timeout=timeout, max_retries=retries, clock=clock),
    ]


def build_context(
    config: Optional[AppConfig] = None,
    providers: Optional[Iterable[BaseDataSource]] = None,
    clock: Optional[ClockProtocol] = None,
) -> AppContext:
    """
    Wire all components together.

    Args:
        config: Application configuration (defaults to AppConfig())
        providers: Providers to register; the built-in ones when None
        clock: Clock shared by every component

    Returns:
        AppContext, not yet started
    """
    config = config or AppConfig()
    clock = clock or SystemClock()

    registry = SourceRegistry()
    if providers is None:
        providers = build_default_providers(config, clock)
    for provider in providers:
        registry.register(provider)

    cache = CacheStore(clock=clock)
    recorder = MetricsRecorder()
    time_series = TimeSeriesStore(
        clock=clock,
        retention_minutes=config.monitor.retention_minutes,
        max_samples_per_source=config.monitor.max_samples_per_source,
    )
    engine = AggregationEngine(
        registry=registry,
        cache=cache,
        recorder=recorder,
        time_series=time_series,
        config=config.aggregation,
        clock=clock,
    )
    monitor = AnomalyMonitor(time_series, config.monitor, clock=clock)

    return AppContext(
        config=config,
        clock=clock,
        registry=registry,
        cache=cache,
        recorder=recorder,
        time_series=time_series,
        engine=engine,
        monitor=monitor,
    )
