"""
Tests for per-source request statistics.

============================================================
PURPOSE
============================================================
Verify latency bucketing, cache hit rates, the overall
summary, validation, reset and lossless concurrent recording.

============================================================
"""

import threading

import pytest

from core.results import ErrorCode
from source_metrics.models import ApiMetrics, MAX_LATENCY_SAMPLES
from source_metrics import (
    MetricsRecorder,
    PerformanceBucket,
    classify_latency,
)


# ============================================================
# BUCKETS
# ============================================================

class TestClassifyLatency:
    """Latency bucket boundaries."""

    @pytest.mark.parametrize(
        "latency,bucket",
        [
            (0, PerformanceBucket.FAST),
            (199, PerformanceBucket.FAST),
            (200, PerformanceBucket.AVERAGE),
            (500, PerformanceBucket.AVERAGE),
            (501, PerformanceBucket.SLOW),
        ],
    )
    def test_boundaries(self, latency, bucket):
        assert classify_latency(latency) == bucket

    def test_bucket_counts_sum_to_total(self):
        recorder = MetricsRecorder()
        for latency in (10, 199, 200, 500, 501, 2000):
            recorder.record_success("News", latency)

        stats = recorder.get_statistics("News").value

        assert stats.buckets.fast == 2
        assert stats.buckets.average == 2
        assert stats.buckets.slow == 2
        assert stats.buckets.fast + stats.buckets.average + stats.buckets.slow == stats.total_requests


# ============================================================
# PER-SOURCE STATISTICS
# ============================================================

class TestSourceStatistics:
    """Counters and rates for one source."""

    def test_success_and_failure_counts(self):
        recorder = MetricsRecorder()
        recorder.record_success("News", 100)
        recorder.record_failure("News", 300)

        stats = recorder.get_statistics("News").value

        assert stats.total_requests == 2
        assert stats.successful_requests == 1
        assert stats.failed_requests == 1
        assert stats.average_response_time_ms == 200.0

    def test_cache_hit_rate(self):
        recorder = MetricsRecorder()
        recorder.record_success("News", 150, from_cache=False)
        recorder.record_success("News", 0, from_cache=True)

        stats = recorder.get_statistics("News").value

        assert stats.cache_hit_rate == 50.0
        assert stats.average_response_time_ms == 75.0

    def test_average_is_rounded(self):
        recorder = MetricsRecorder()
        for latency in (1, 1, 2):
            recorder.record_success("Users", latency)

        assert recorder.get_statistics("Users").value.average_response_time_ms == 1.33

    def test_recent_response_times_keep_latest_in_order(self):
        recorder = MetricsRecorder()
        for latency in range(150):
            recorder.record_success("News", latency)

        stats = recorder.get_statistics("News").value

        assert stats.recent_response_times_ms == tuple(float(n) for n in range(50, 150))
        assert len(stats.recent_response_times_ms) == MAX_LATENCY_SAMPLES
        assert stats.total_requests == 150
        assert stats.to_dict()["recent_response_times_ms"][:2] == [50, 51]

    def test_unknown_source_returns_none(self):
        result = MetricsRecorder().get_statistics("Nope")

        assert result.success
        assert result.value is None

    def test_invalid_input_is_rejected(self):
        recorder = MetricsRecorder()

        assert recorder.record_success("", 10).error.code == ErrorCode.VALIDATION
        assert recorder.record_failure("News", -1).error.code == ErrorCode.VALIDATION
        assert recorder.tracked_sources() == []


# ============================================================
# OVERALL / RESET
# ============================================================

class TestOverallStatistics:
    """Summary across sources."""

    def test_empty(self):
        response = MetricsRecorder().get_all_statistics().value

        assert response.source_stats == []
        assert response.overall.total_requests == 0
        assert response.overall.average_response_time_ms == 0.0
        assert response.overall.success_rate == 0.0

    def test_overall_average_is_mean_of_source_averages(self):
        recorder = MetricsRecorder()
        recorder.record_success("News", 100)
        recorder.record_success("Weather", 300)
        recorder.record_success("Weather", 300)
        recorder.record_failure("Weather", 300)

        response = recorder.get_all_statistics().value

        assert [s.source_name for s in response.source_stats] == ["News", "Weather"]
        assert response.overall.total_requests == 4
        assert response.overall.average_response_time_ms == 200.0
        assert response.overall.success_rate == 75.0

    def test_reset(self):
        recorder = MetricsRecorder()
        recorder.record_success("News", 100)

        assert recorder.reset().success
        assert recorder.get_statistics("News").value is None
        assert recorder.get_all_statistics().value.source_stats == []

    def test_to_dict(self):
        recorder = MetricsRecorder()
        recorder.record_success("News", 100)

        data = recorder.get_all_statistics().value.to_dict()

        assert data["source_stats"][0]["buckets"] == {"fast": 1, "average": 0, "slow": 0}
        assert data["overall"]["success_rate"] == 100.0


# ============================================================
# CONCURRENCY
# ============================================================

class TestConcurrentRecording:
    """No increment is lost under concurrent use."""

    def test_parallel_recording(self):
        recorder = MetricsRecorder()

        def worker():
            for i in range(500):
                if i % 5 == 0:
                    recorder.record_failure("News", 600)
                else:
                    recorder.record_success("News", 50, from_cache=(i % 2 == 0))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = recorder.get_statistics("News").value
        assert stats.total_requests == 4000
        assert stats.failed_requests == 800
        assert stats.successful_requests == 3200
        assert stats.buckets.slow == 800
        assert stats.buckets.fast == 3200

    def test_reset_waits_for_in_flight_record(self, monkeypatch):
        recorder = MetricsRecorder()
        original_record = ApiMetrics.record
        reset_thread = threading.Thread(target=recorder.reset)
        blocked = []

        def record_then_race_reset(metrics, *args, **kwargs):
            if not reset_thread.is_alive() and not blocked:
                reset_thread.start()
                reset_thread.join(0.05)
                blocked.append(reset_thread.is_alive())
            return original_record(metrics, *args, **kwargs)

        monkeypatch.setattr(ApiMetrics, "record", record_then_race_reset)

        assert recorder.record_success("News", 50).success
        reset_thread.join(1.0)

        assert blocked == [True]
        assert recorder.get_statistics("News").value is None
        assert recorder.tracked_sources() == []
