"""
Tests for the HTTP API.

============================================================
PURPOSE
============================================================
Exercise the aggregation, statistics and health endpoints
end to end against in-process fake providers.

============================================================
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from aggregation.config import AggregationConfig
from core.cancellation import CancellationToken
from core.clock import MockClock
from core.config import AppConfig
from core.context import build_context
from data_sources.base import BaseDataSource
from data_sources.exceptions import FetchError
from data_sources.models import DataItem, SourceMetadata
from performance_analytics.config import MonitorConfig
from web_api import create_app


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class StaticSource(BaseDataSource):
    """Provider returning fixed items, or failing with a server error."""

    def __init__(self, name: str, items=None, fail: bool = False) -> None:
        super().__init__(max_retries=1)
        self._name = name
        self._items = list(items or [])
        self._fail = fail

    @property
    def name(self) -> str:
        return self._name

    async def fetch_raw(self, cancellation: Optional[CancellationToken] = None) -> Any:
        if self._fail:
            raise FetchError(f"{self._name} API returned status code 503", status_code=503)
        return self._items

    def normalize(self, raw_data: Any) -> list[DataItem]:
        return list(raw_data)

    def metadata(self) -> SourceMetadata:
        return SourceMetadata(name=self._name, display_name=self._name)


def item(source, n, relevance, minutes_ago=0, category=None):
    return DataItem(
        source=source,
        id=f"{source}-{n}",
        title=f"{source} {n}",
        description="",
        category=category or source,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        relevance_score=relevance,
    )


def make_client(require_all=False, weather_fails=True):
    config = AppConfig(
        aggregation=AggregationConfig(require_all_sources=require_all),
        monitor=MonitorConfig(check_interval_minutes=60),
    )
    providers = [
        StaticSource("News", [item("News", 1, 90), item("News", 2, 85, minutes_ago=5)]),
        StaticSource("Weather", fail=weather_fails),
        StaticSource("Users", [item("Users", 1, 75, minutes_ago=1, category="User")]),
    ]
    context = build_context(config, providers=providers, clock=MockClock(NOW))
    return TestClient(create_app(context)), context


# ============================================================
# AGGREGATION
# ============================================================

class TestAggregationEndpoints:
    """POST /api/aggregation/aggregate and GET /api/aggregation."""

    def test_partial_failure_is_reported(self):
        client, _ = make_client()
        with client:
            response = client.post("/api/aggregation/aggregate", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["metadata"]["total_items"] == 3
        assert data["metadata"]["successful_sources"] == ["News", "Users"]
        assert data["metadata"]["failed_sources"] == ["Weather"]
        assert data["metadata"]["from_cache"] is False
        assert [i["id"] for i in data["items"]] == ["News-1", "Users-1", "News-2"]

    def test_require_all_sources_returns_500(self):
        client, _ = make_client(require_all=True)
        with client:
            response = client.post("/api/aggregation/aggregate", json={})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Aggregation failed"
        assert "Weather" in body["message"]

    def test_sort_filter_and_limit(self):
        client, _ = make_client()
        with client:
            response = client.post(
                "/api/aggregation/aggregate",
                json={
                    "sources": ["news", "users"],
                    "sort_by": "relevance",
                    "sort_direction": "asc",
                    "max_items": 2,
                },
            )

        data = response.json()
        assert [i["relevance_score"] for i in data["items"]] == [75, 85]
        assert data["metadata"]["total_items"] == 2
        assert data["metadata"]["failed_sources"] == []

    def test_category_filter_via_query_string(self):
        client, _ = make_client()
        with client:
            response = client.get("/api/aggregation", params={"category": "user"})

        assert response.status_code == 200
        assert [i["id"] for i in response.json()["items"]] == ["Users-1"]

    def test_second_request_served_from_cache(self):
        client, _ = make_client()
        with client:
            client.get("/api/aggregation", params={"sources": "News"})
            response = client.get("/api/aggregation", params={"sources": "News"})

        assert response.json()["metadata"]["from_cache"] is True

    def test_negative_max_items_returns_400(self):
        client, _ = make_client()
        with client:
            response = client.post("/api/aggregation/aggregate", json={"max_items": -1})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_inverted_date_range_returns_400(self):
        client, _ = make_client()
        with client:
            response = client.get(
                "/api/aggregation",
                params={"from_date": "2024-06-02T00:00:00Z", "to_date": "2024-06-01T00:00:00Z"},
            )

        assert response.status_code == 400

    def test_malformed_body_returns_400(self):
        client, _ = make_client()
        with client:
            response = client.post("/api/aggregation/aggregate", json={"max_items": "many"})

        assert response.status_code == 400


# ============================================================
# STATISTICS
# ============================================================

class TestStatisticsEndpoints:
    """GET/DELETE /api/statistics."""

    def test_statistics_after_aggregation(self):
        client, _ = make_client()
        with client:
            client.post("/api/aggregation/aggregate", json={})
            response = client.get("/api/statistics")

        assert response.status_code == 200
        data = response.json()
        names = {s["source_name"] for s in data["source_stats"]}
        assert names == {"News", "Weather", "Users"}
        assert data["overall"]["total_requests"] == 3
        assert data["overall"]["success_rate"] == pytest.approx(66.67)

    def test_single_source_case_insensitive(self):
        client, _ = make_client()
        with client:
            client.post("/api/aggregation/aggregate", json={"sources": ["Weather"]})
            response = client.get("/api/statistics/weather")

        assert response.status_code == 200
        data = response.json()
        assert data["source_name"] == "Weather"
        assert data["failed_requests"] == 1
        assert len(data["recent_response_times_ms"]) == 1

    def test_unknown_source_returns_404(self):
        client, _ = make_client()
        with client:
            response = client.get("/api/statistics/Stocks")

        assert response.status_code == 404
        assert response.json()["error"] == "No statistics found for source: Stocks"

    def test_reset(self):
        client, context = make_client()
        with client:
            client.post("/api/aggregation/aggregate", json={})
            response = client.delete("/api/statistics")
            after = client.get("/api/statistics")

        assert response.json() == {"message": "Statistics reset successfully"}
        assert after.json()["source_stats"] == []
        assert context.recorder.tracked_sources() == []


# ============================================================
# HEALTH
# ============================================================

class TestHealthEndpoint:
    """GET /health."""

    def test_health_while_running(self):
        client, _ = make_client()
        with client:
            response = client.get("/health")

        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "ok"
        assert data["monitor_state"] == "running"
        assert [s["name"] for s in data["sources"]] == ["News", "Weather", "Users"]

    def test_health_reports_source_failures(self):
        client, _ = make_client()
        with client:
            client.post("/api/aggregation/aggregate", json={})
            data = client.get("/health").json()

        weather = next(s for s in data["sources"] if s["name"] == "Weather")
        news = next(s for s in data["sources"] if s["name"] == "News")
        assert weather["consecutive_failures"] == 1
        assert "503" in weather["last_error"]
        assert weather["display_name"] == "Weather"
        assert weather["requires_auth"] is False
        assert news["status"] == "healthy"
        assert data["cached_entries"] == 2

    def test_root(self):
        client, _ = make_client()
        with client:
            response = client.get("/")

        assert response.json()["status"] == "ok"


# ============================================================
# LIFECYCLE
# ============================================================

class TestRestart:
    """Stopping and starting the same context keeps every provider."""

    @pytest.mark.asyncio
    async def test_context_restart_keeps_sources(self):
        _, context = make_client(weather_fails=False)

        await context.start()
        await context.stop()
        await context.start()
        try:
            response = await context.engine.aggregate()
        finally:
            await context.stop()

        assert response.metadata.successful_sources == ["News", "Weather", "Users"]
        assert response.metadata.total_items == 3

    def test_lifespan_runs_twice_on_same_app(self):
        client, _ = make_client()
        with client:
            client.post("/api/aggregation/aggregate", json={})

        with client:
            health = client.get("/health").json()
            response = client.post("/api/aggregation/aggregate", json={"sources": ["Users"]})

        assert health["monitor_state"] == "running"
        assert [s["name"] for s in health["sources"]] == ["News", "Weather", "Users"]
        assert response.json()["metadata"]["successful_sources"] == ["Users"]
