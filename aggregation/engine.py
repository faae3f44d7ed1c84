"""
Aggregation - Engine.

============================================================
FLOW
============================================================

1. Resolve the requested sources against the registry
2. Per source, concurrently:
   a. cache.get("data_" + name); a hit is a success
   b. on a miss, provider.fetch() bounded by the per-source
      timeout and the request's cancellation signal; a
      success is written back to the cache
   c. the outcome is recorded in the metrics recorder and the
      time-series store
3. Join all sources, partition into successful / failed
4. require_all_sources and any failure -> AggregationFailure
5. Merge, filter, stable sort, truncate, build metadata

A source failure never propagates out of step 2.

============================================================
"""

import asyncio
import time
from typing import Iterable, List, Optional
import logging

from aggregation.config import AggregationConfig
from aggregation.exceptions import AggregationFailure
from aggregation.models import (
    AggregatedResponse,
    AggregationMetadata,
    AggregationRequest,
    SortField,
    SortDirection,
    SourceOutcome,
)
from caching.cache_store import CacheStore
from core.cancellation import CancellationToken
from core.clock import ClockProtocol, SystemClock
from data_sources.base import BaseDataSource
from data_sources.exceptions import SourceCancelledError, SourceTimeoutError
from data_sources.models import DataItem
from data_sources.registry import SourceRegistry
from performance_analytics.store import TimeSeriesStore
from source_metrics.recorder import MetricsRecorder


logger = logging.getLogger(__name__)


CACHE_KEY_PREFIX = "data_"


def cache_key_for(source_name: str) -> str:
    """Cache key of a source's payload."""
    return f"{CACHE_KEY_PREFIX}{source_name}"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class AggregationEngine:
    """
    Concurrent cache-or-fetch fan-out with merge, filter, sort and limit.

    Usage:
        engine = AggregationEngine(registry, cache, recorder, time_series)
        response = await engine.aggregate(AggregationRequest(sources={"news"}))
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: CacheStore,
        recorder: MetricsRecorder,
        time_series: TimeSeriesStore,
        config: Optional[AggregationConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._recorder = recorder
        self._time_series = time_series
        self._config = config or AggregationConfig()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> AggregationConfig:
        return self._config

    async def aggregate(
        self,
        request: Optional[AggregationRequest] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> AggregatedResponse:
        """
        Aggregate items from the requested sources.

        Args:
            request: Aggregation request (defaults to all sources)
            cancellation: Cancellation signal handed to every fetch

        Returns:
            AggregatedResponse

        Raises:
            AggregationFailure: If require_all_sources is set and at
                least one source failed
        """
        request = request or AggregationRequest()
        cancellation = cancellation or CancellationToken()
        start = time.perf_counter()

        sources = self._registry.resolve(request.sources)
        if not sources:
            logger.info("No sources matched the request")
            return self._build_response([], [], request, start)

        outcomes = list(await asyncio.gather(
            *(self._process_source(source, cancellation) for source in sources)
        ))

        failed = [o.source_name for o in outcomes if not o.success]
        if self._config.require_all_sources and failed:
            logger.warning(f"Aggregation failed, required sources failed: {failed}")
            raise AggregationFailure(failed)

        return self._build_response(outcomes, self._merge(outcomes), request, start)

    # =========================================================
    # PER-SOURCE PROCESSING
    # =========================================================

    async def _process_source(
        self,
        source: BaseDataSource,
        cancellation: CancellationToken,
    ) -> SourceOutcome:
        """Cache lookup, fetch on miss, record. Never raises for a source failure."""
        name = source.name
        key = cache_key_for(name)
        start = time.perf_counter()

        cached = self._cache.get(key)
        if cached.failed:
            logger.warning(f"Cache lookup failed for {name}, treating as miss: {cached.error.message}")
        elif cached.value is not None:
            outcome = SourceOutcome.succeeded(name, cached.value, _elapsed_ms(start), from_cache=True)
            logger.info(f"Cache hit for {name}")
            self._record(outcome)
            return outcome

        logger.info(f"Fetching data from {name}")
        try:
            items = await self._fetch_bounded(source, cancellation)

        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            outcome = SourceOutcome.failed(name, "Fetch cancelled", _elapsed_ms(start))

        except Exception as e:
            outcome = SourceOutcome.failed(name, str(e) or e.__class__.__name__, _elapsed_ms(start))

        else:
            outcome = SourceOutcome.succeeded(name, items, _elapsed_ms(start))
            stored = self._cache.set(key, list(outcome.items), self._config.cache_duration_minutes)
            if stored.failed:
                logger.warning(f"Failed to cache data for {name}: {stored.error.message}")

        if not outcome.success:
            logger.warning(f"Source {name} failed: {outcome.error_message}")

        self._record(outcome)
        return outcome

    async def _fetch_bounded(
        self,
        source: BaseDataSource,
        cancellation: CancellationToken,
    ) -> List[DataItem]:
        """Run source.fetch() until it finishes, times out or the request is cancelled."""
        timeout = self._config.source_timeout_seconds
        fetch_task = asyncio.ensure_future(source.fetch(cancellation))
        cancel_task = asyncio.ensure_future(cancellation.wait())

        try:
            done, _ = await asyncio.wait(
                {fetch_task, cancel_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            fetch_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if fetch_task in done:
            return fetch_task.result()

        fetch_task.cancel()
        await asyncio.gather(fetch_task, return_exceptions=True)

        if cancel_task in done or cancellation.is_cancelled:
            raise SourceCancelledError(
                message=f"Fetch cancelled: {cancellation.reason}",
                source_name=source.name,
                reason=cancellation.reason,
            )

        raise SourceTimeoutError(
            message=f"Fetch timed out after {timeout:g}s",
            source_name=source.name,
            timeout_seconds=timeout,
        )

    def _record(self, outcome: SourceOutcome) -> None:
        """Record an outcome; recording problems are logged and ignored."""
        if outcome.success:
            result = self._recorder.record_success(
                outcome.source_name, outcome.elapsed_ms, from_cache=outcome.from_cache
            )
        else:
            result = self._recorder.record_failure(outcome.source_name, outcome.elapsed_ms)
        if result.failed:
            logger.warning(f"Failed to record statistics for {outcome.source_name}: {result.error.message}")

        try:
            self._time_series.record_metric(outcome.source_name, outcome.elapsed_ms)
        except Exception as e:
            logger.warning(f"Failed to record performance sample for {outcome.source_name}: {e}")

    # =========================================================
    # MERGE / FILTER / SORT
    # =========================================================

    @staticmethod
    def _merge(outcomes: Iterable[SourceOutcome]) -> List[DataItem]:
        return [item for o in outcomes if o.success for item in o.items]

    @staticmethod
    def apply_filters(items: Iterable[DataItem], request: AggregationRequest) -> List[DataItem]:
        """Category (case-insensitive) and inclusive date-range filters."""
        filtered = list(items)

        if request.category:
            category = request.category.casefold()
            filtered = [i for i in filtered if i.category.casefold() == category]

        if request.from_date is not None:
            filtered = [i for i in filtered if i.timestamp >= request.from_date]

        if request.to_date is not None:
            filtered = [i for i in filtered if i.timestamp <= request.to_date]

        return filtered

    @staticmethod
    def apply_sorting(items: Iterable[DataItem], request: AggregationRequest) -> List[DataItem]:
        """Stable sort on one field in one direction."""
        if request.sort_by == SortField.RELEVANCE:
            key = lambda i: i.relevance_score
        elif request.sort_by == SortField.TITLE:
            key = lambda i: i.title
        else:
            key = lambda i: i.timestamp

        return sorted(items, key=key, reverse=request.sort_direction == SortDirection.DESC)

    def _build_response(
        self,
        outcomes: List[SourceOutcome],
        items: List[DataItem],
        request: AggregationRequest,
        start: float,
    ) -> AggregatedResponse:
        items = self.apply_sorting(self.apply_filters(items, request), request)
        if request.max_items is not None:
            items = items[:request.max_items]

        metadata = AggregationMetadata(
            total_items=len(items),
            successful_sources=[o.source_name for o in outcomes if o.success],
            failed_sources=[o.source_name for o in outcomes if not o.success],
            aggregated_at=self._clock.now(),
            total_elapsed_ms=_elapsed_ms(start),
            from_cache=bool(outcomes) and all(o.from_cache for o in outcomes),
        )

        logger.info(
            f"Aggregated {metadata.total_items} items from "
            f"{len(metadata.successful_sources)}/{len(outcomes)} sources "
            f"in {metadata.total_elapsed_ms}ms"
        )
        return AggregatedResponse(items=items, metadata=metadata, outcomes=outcomes)
