"""
Tests for the Aggregation Engine.

============================================================
PURPOSE
============================================================
- Partial-failure and require-all policies
- Cache-or-fetch per source and cache write-back
- Filtering, stable sorting and truncation
- Per-source timeout and request cancellation
- Outcome recording into statistics and time series

============================================================
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
from unittest.mock import MagicMock

from aggregation.config import AggregationConfig
from aggregation.engine import AggregationEngine, cache_key_for
from aggregation.exceptions import AggregationFailure
from aggregation.models import AggregationRequest, SortDirection, SortField
from caching.cache_store import CacheStore
from core.cancellation import CancellationToken
from core.clock import MockClock
from core.results import ErrorCode, OperationResult
from data_sources.base import BaseDataSource
from data_sources.exceptions import FetchError
from data_sources.models import DataItem, SourceMetadata
from data_sources.registry import SourceRegistry
from performance_analytics.store import TimeSeriesStore
from source_metrics.recorder import MetricsRecorder


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# HELPERS
# ============================================================

class FakeSource(BaseDataSource):
    """In-memory provider with a configurable payload, error and delay."""

    def __init__(
        self,
        name: str,
        items: Optional[List[DataItem]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(max_retries=1)
        self._name = name
        self.items = items or []
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def fetch_raw(self, cancellation=None) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.items)

    def normalize(self, raw_data: Any) -> List[DataItem]:
        return list(raw_data)

    def metadata(self) -> SourceMetadata:
        return SourceMetadata(name=self._name, display_name=self._name)


def make_item(
    source: str,
    item_id: str,
    relevance: int = 50,
    category: str = "News",
    minutes_ago: int = 0,
    title: Optional[str] = None,
) -> DataItem:
    return DataItem(
        source=source,
        id=item_id,
        title=title or f"{source} {item_id}",
        description="",
        category=category,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        relevance_score=relevance,
    )


def server_error(source: str) -> FetchError:
    return FetchError(message="HTTP 503", source_name=source, status_code=503)


def build_engine(sources, config: Optional[AggregationConfig] = None, cache=None):
    clock = MockClock(NOW)
    registry = SourceRegistry()
    for source in sources:
        registry.register(source)

    recorder = MetricsRecorder()
    time_series = TimeSeriesStore(clock=clock)
    engine = AggregationEngine(
        registry=registry,
        cache=cache if cache is not None else CacheStore(clock=clock),
        recorder=recorder,
        time_series=time_series,
        config=config or AggregationConfig(),
        clock=clock,
    )
    return engine, recorder, time_series


# ============================================================
# POLICY
# ============================================================

class TestFailurePolicy:
    """Partial success vs require-all."""

    @pytest.mark.asyncio
    async def test_all_sources_failing_is_still_a_response(self):
        engine, _, _ = build_engine([
            FakeSource("News", error=server_error("News")),
            FakeSource("Weather", error=server_error("Weather")),
        ])

        response = await engine.aggregate(AggregationRequest())

        assert response.items == []
        assert response.metadata.total_items == 0
        assert response.metadata.successful_sources == []
        assert response.metadata.failed_sources == ["News", "Weather"]

    @pytest.mark.asyncio
    async def test_partial_success_merges_successful_sources(self):
        engine, _, _ = build_engine([
            FakeSource("News", items=[make_item("News", "1")]),
            FakeSource("Weather", error=server_error("Weather")),
        ])

        response = await engine.aggregate()

        assert [i.id for i in response.items] == ["1"]
        assert response.metadata.successful_sources == ["News"]
        assert response.metadata.failed_sources == ["Weather"]

    @pytest.mark.asyncio
    async def test_require_all_names_every_failed_source(self):
        engine, _, _ = build_engine(
            [
                FakeSource("News", error=server_error("News")),
                FakeSource("Weather", items=[make_item("Weather", "1")]),
                FakeSource("Users", error=server_error("Users")),
            ],
            config=AggregationConfig(require_all_sources=True),
        )

        with pytest.raises(AggregationFailure) as exc_info:
            await engine.aggregate()

        assert exc_info.value.failed_sources == ["News", "Users"]
        assert "News" in str(exc_info.value)
        assert "Users" in str(exc_info.value)
        assert "Weather" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_require_all_passes_when_everything_succeeds(self):
        engine, _, _ = build_engine(
            [FakeSource("News", items=[make_item("News", "1")])],
            config=AggregationConfig(require_all_sources=True),
        )

        response = await engine.aggregate()

        assert response.metadata.total_items == 1

    @pytest.mark.asyncio
    async def test_source_with_zero_items_is_a_success(self):
        engine, _, _ = build_engine([FakeSource("News", items=[])])

        response = await engine.aggregate()

        assert response.metadata.successful_sources == ["News"]
        assert response.metadata.failed_sources == []


# ============================================================
# SOURCE RESOLUTION
# ============================================================

class TestSourceResolution:
    """Requested subset resolution."""

    @pytest.mark.asyncio
    async def test_requested_sources_match_case_insensitively(self):
        news = FakeSource("News", items=[make_item("News", "1")])
        users = FakeSource("Users", items=[make_item("Users", "2")])
        engine, _, _ = build_engine([news, users])

        response = await engine.aggregate(AggregationRequest(sources=frozenset({"news"})))

        assert response.metadata.successful_sources == ["News"]
        assert news.calls == 1
        assert users.calls == 0

    @pytest.mark.asyncio
    async def test_no_matching_sources_gives_empty_response(self):
        engine, recorder, _ = build_engine([FakeSource("News", items=[make_item("News", "1")])])

        response = await engine.aggregate(AggregationRequest(sources=frozenset({"unknown"})))

        assert response.items == []
        assert response.metadata.successful_sources == []
        assert response.metadata.failed_sources == []
        assert response.metadata.from_cache is False
        assert recorder.get_all_statistics().value.source_stats == []


# ============================================================
# CACHING
# ============================================================

class TestCaching:
    """Cache-or-fetch behaviour."""

    @pytest.mark.asyncio
    async def test_second_request_is_served_from_cache(self):
        news = FakeSource("News", items=[make_item("News", "1")])
        engine, recorder, _ = build_engine([news])

        first = await engine.aggregate()
        second = await engine.aggregate()

        assert news.calls == 1
        assert first.metadata.from_cache is False
        assert second.metadata.from_cache is True
        assert [i.id for i in second.items] == ["1"]

        stats = recorder.get_statistics("News").value
        assert stats.total_requests == 2
        assert stats.cache_hit_rate == 50.0

    @pytest.mark.asyncio
    async def test_successful_payload_is_cached_under_source_key(self):
        clock = MockClock(NOW)
        cache = CacheStore(clock=clock)
        engine, _, _ = build_engine([FakeSource("News", items=[make_item("News", "1")])], cache=cache)

        await engine.aggregate()

        assert cache_key_for("News") == "data_News"
        cached = cache.get("data_News").value
        assert [i.id for i in cached] == ["1"]

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        clock = MockClock(NOW)
        cache = CacheStore(clock=clock)
        engine, _, _ = build_engine([FakeSource("News", error=server_error("News"))], cache=cache)

        await engine.aggregate()

        assert cache.get("data_News").value is None

    @pytest.mark.asyncio
    async def test_from_cache_false_when_only_some_sources_cached(self):
        news = FakeSource("News", items=[make_item("News", "1")])
        users = FakeSource("Users", items=[make_item("Users", "2")])
        engine, _, _ = build_engine([news, users])

        await engine.aggregate(AggregationRequest(sources=frozenset({"News"})))
        response = await engine.aggregate()

        assert news.calls == 1
        assert users.calls == 1
        assert response.metadata.from_cache is False

    @pytest.mark.asyncio
    async def test_cache_error_degrades_to_miss(self):
        cache = MagicMock(spec=CacheStore)
        cache.get.return_value = OperationResult.fail(ErrorCode.INTERNAL, "boom")
        cache.set.return_value = OperationResult.ok()
        news = FakeSource("News", items=[make_item("News", "1")])
        engine, _, _ = build_engine([news], cache=cache)

        response = await engine.aggregate()

        assert news.calls == 1
        assert response.metadata.successful_sources == ["News"]
        cache.set.assert_called_once()
        key, value, ttl = cache.set.call_args.args
        assert key == "data_News"
        assert ttl == 5.0


# ============================================================
# FILTER / SORT / LIMIT
# ============================================================

class TestShaping:
    """Filtering, sorting and truncation."""

    @pytest.mark.asyncio
    async def test_max_items_bounds_the_result(self):
        engine, _, _ = build_engine([
            FakeSource("News", items=[make_item("News", str(i)) for i in range(3)]),
            FakeSource("Users", items=[make_item("Users", str(i)) for i in range(3)]),
        ])

        response = await engine.aggregate(AggregationRequest(max_items=4))

        assert len(response.items) == 4
        assert response.metadata.total_items == 4

    @pytest.mark.asyncio
    async def test_max_items_zero_returns_no_items(self):
        engine, _, _ = build_engine([FakeSource("News", items=[make_item("News", "1")])])

        response = await engine.aggregate(AggregationRequest(max_items=0))

        assert response.items == []
        assert response.metadata.successful_sources == ["News"]

    @pytest.mark.asyncio
    async def test_relevance_sort_descending(self):
        engine, _, _ = build_engine([FakeSource("News", items=[
            make_item("News", "a", relevance=50),
            make_item("News", "b", relevance=90),
            make_item("News", "c", relevance=70),
        ])])

        response = await engine.aggregate(AggregationRequest(sort_by=SortField.RELEVANCE))

        assert [i.relevance_score for i in response.items] == [90, 70, 50]

    @pytest.mark.asyncio
    async def test_timestamp_sort_ascending(self):
        engine, _, _ = build_engine([FakeSource("News", items=[
            make_item("News", "new", minutes_ago=0),
            make_item("News", "old", minutes_ago=30),
            make_item("News", "mid", minutes_ago=10),
        ])])

        response = await engine.aggregate(
            AggregationRequest(sort_by="timestamp", sort_direction=SortDirection.ASC)
        )

        assert [i.id for i in response.items] == ["old", "mid", "new"]

    @pytest.mark.asyncio
    async def test_title_sort(self):
        engine, _, _ = build_engine([FakeSource("News", items=[
            make_item("News", "1", title="Charlie"),
            make_item("News", "2", title="Alpha"),
            make_item("News", "3", title="Bravo"),
        ])])

        response = await engine.aggregate(AggregationRequest(sort_by="title", sort_direction="asc"))

        assert [i.title for i in response.items] == ["Alpha", "Bravo", "Charlie"]

    @pytest.mark.asyncio
    async def test_sort_is_stable_for_equal_keys(self):
        engine, _, _ = build_engine([FakeSource("News", items=[
            make_item("News", "first", relevance=80),
            make_item("News", "second", relevance=80),
            make_item("News", "third", relevance=80),
        ])])

        response = await engine.aggregate(AggregationRequest(sort_by="relevance", sort_direction="desc"))

        assert [i.id for i in response.items] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_category_filter_is_case_insensitive(self):
        engine, _, _ = build_engine([
            FakeSource("News", items=[make_item("News", "n1", category="News")]),
            FakeSource("Weather", items=[make_item("Weather", "w1", category="Weather")]),
        ])

        response = await engine.aggregate(AggregationRequest(category="weather"))

        assert [i.id for i in response.items] == ["w1"]
        assert response.metadata.successful_sources == ["News", "Weather"]

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self):
        engine, _, _ = build_engine([FakeSource("Users", items=[
            make_item("Users", "0", minutes_ago=0),
            make_item("Users", "10", minutes_ago=10),
            make_item("Users", "20", minutes_ago=20),
            make_item("Users", "30", minutes_ago=30),
        ])])

        response = await engine.aggregate(AggregationRequest(
            from_date=NOW - timedelta(minutes=20),
            to_date=NOW - timedelta(minutes=10),
        ))

        assert sorted(i.id for i in response.items) == ["10", "20"]


# ============================================================
# TIMEOUT / CANCELLATION
# ============================================================

class TestTimeoutAndCancellation:
    """Per-source bounds become per-source failures."""

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self):
        engine, _, _ = build_engine(
            [
                FakeSource("Slow", items=[make_item("Slow", "1")], delay=5.0),
                FakeSource("Fast", items=[make_item("Fast", "2")]),
            ],
            config=AggregationConfig(source_timeout_seconds=0.05),
        )

        response = await engine.aggregate()

        assert response.metadata.failed_sources == ["Slow"]
        assert response.metadata.successful_sources == ["Fast"]
        failed = [o for o in response.outcomes if not o.success][0]
        assert "timed out" in failed.error_message

    @pytest.mark.asyncio
    async def test_cancellation_fails_in_flight_sources(self):
        engine, _, _ = build_engine([
            FakeSource("News", items=[make_item("News", "1")], delay=5.0),
            FakeSource("Users", items=[make_item("Users", "2")], delay=5.0),
        ])
        token = CancellationToken()

        loop = asyncio.get_running_loop()
        loop.call_later(0.05, token.cancel, "client went away")

        response = await asyncio.wait_for(engine.aggregate(cancellation=token), timeout=2.0)

        assert response.metadata.failed_sources == ["News", "Users"]
        assert all("cancelled" in o.error_message.lower() for o in response.outcomes)

    @pytest.mark.asyncio
    async def test_already_cancelled_token_fails_every_source(self):
        news = FakeSource("News", items=[make_item("News", "1")])
        engine, recorder, _ = build_engine([news])
        token = CancellationToken()
        token.cancel()

        response = await engine.aggregate(cancellation=token)

        assert response.metadata.failed_sources == ["News"]
        assert recorder.get_statistics("News").value.failed_requests == 1

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_propagates(self):
        engine, _, _ = build_engine([FakeSource("News", delay=5.0)])

        task = asyncio.create_task(engine.aggregate())
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


# ============================================================
# RECORDING
# ============================================================

class TestRecording:
    """Every outcome reaches the recorder and the time series."""

    @pytest.mark.asyncio
    async def test_outcomes_are_recorded_everywhere(self):
        engine, recorder, time_series = build_engine([
            FakeSource("News", items=[make_item("News", "1")]),
            FakeSource("Weather", error=server_error("Weather")),
        ])

        await engine.aggregate()

        news = recorder.get_statistics("News").value
        weather = recorder.get_statistics("Weather").value
        assert news.successful_requests == 1
        assert weather.failed_requests == 1
        assert time_series.get_tracked_sources() == {"News", "Weather"}

    @pytest.mark.asyncio
    async def test_recording_failure_does_not_abort_aggregation(self):
        engine, _, _ = build_engine([FakeSource("News", items=[make_item("News", "1")])])
        engine._recorder = MagicMock(spec=MetricsRecorder)
        engine._recorder.record_success.return_value = OperationResult.fail(ErrorCode.GENERIC, "down")
        engine._time_series = MagicMock(spec=TimeSeriesStore)
        engine._time_series.record_metric.side_effect = RuntimeError("down")

        response = await engine.aggregate()

        assert response.metadata.total_items == 1
