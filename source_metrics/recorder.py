"""
Source Metrics - Recorder.

Cumulative per-source request statistics. Shared by every
in-flight aggregation. A record and a reset never interleave, so
no increment is lost, and reads return snapshots.

All operations return OperationResult so a statistics failure
never aborts the aggregation that triggered it.
"""

import threading
from typing import Dict, Optional
import logging

from core.results import ErrorCode, OperationResult
from source_metrics.models import (
    ApiMetrics,
    ApiStatistics,
    OverallStatistics,
    StatisticsResponse,
)


logger = logging.getLogger(__name__)


class MetricsRecorder:
    """
    Per-source counters, latency buckets and running averages.

    Usage:
        recorder = MetricsRecorder()
        recorder.record_success("News", 120, from_cache=False)
        stats = recorder.get_statistics("News").value
    """

    def __init__(self) -> None:
        self._metrics: Dict[str, ApiMetrics] = {}
        self._lock = threading.RLock()

    def _get_or_create(self, source_name: str) -> ApiMetrics:
        with self._lock:
            metrics = self._metrics.get(source_name)
            if metrics is None:
                metrics = ApiMetrics(source_name=source_name)
                self._metrics[source_name] = metrics
            return metrics

    @staticmethod
    def _validate(source_name: str, latency_ms: float) -> Optional[OperationResult[None]]:
        if not source_name:
            return OperationResult.fail(ErrorCode.VALIDATION, "source_name must not be empty")
        if latency_ms < 0:
            return OperationResult.fail(
                ErrorCode.VALIDATION,
                f"latency_ms must be non-negative, got {latency_ms}",
            )
        return None

    def record_success(
        self,
        source_name: str,
        latency_ms: float,
        from_cache: bool = False,
    ) -> OperationResult[None]:
        """Record a successful request."""
        invalid = self._validate(source_name, latency_ms)
        if invalid is not None:
            return invalid

        try:
            with self._lock:
                self._get_or_create(source_name).record(
                    latency_ms, success=True, from_cache=from_cache
                )
            return OperationResult.ok()
        except Exception as e:
            logger.error(f"Error recording success for {source_name}: {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.GENERIC, f"Error recording success: {e}", e)

    def record_failure(self, source_name: str, latency_ms: float) -> OperationResult[None]:
        """Record a failed request."""
        invalid = self._validate(source_name, latency_ms)
        if invalid is not None:
            return invalid

        try:
            with self._lock:
                self._get_or_create(source_name).record(latency_ms, success=False)
            return OperationResult.ok()
        except Exception as e:
            logger.error(f"Error recording failure for {source_name}: {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.GENERIC, f"Error recording failure: {e}", e)

    def get_statistics(self, source_name: str) -> OperationResult[Optional[ApiStatistics]]:
        """
        Get statistics for one source.

        Returns:
            ok(ApiStatistics), or ok(None) when nothing was recorded
            for the source
        """
        try:
            with self._lock:
                metrics = self._metrics.get(source_name)
            if metrics is None:
                return OperationResult.ok(None)
            return OperationResult.ok(metrics.snapshot())
        except Exception as e:
            logger.error(f"Error getting statistics for {source_name}: {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.GENERIC, f"Error getting statistics: {e}", e)

    def get_all_statistics(self) -> OperationResult[StatisticsResponse]:
        """
        Get statistics for every source plus the overall summary.

        Overall average latency is the mean of the per-source
        averages, not of the individual requests.
        """
        try:
            with self._lock:
                all_metrics = list(self._metrics.values())

            source_stats = [m.snapshot() for m in all_metrics]
            if not source_stats:
                return OperationResult.ok(StatisticsResponse())

            total = sum(s.total_requests for s in source_stats)
            successful = sum(s.successful_requests for s in source_stats)
            average = sum(s.average_response_time_ms for s in source_stats) / len(source_stats)

            overall = OverallStatistics(
                total_requests=total,
                average_response_time_ms=round(average, 2),
                success_rate=round(successful / total * 100, 2) if total else 0.0,
            )
            return OperationResult.ok(StatisticsResponse(source_stats=source_stats, overall=overall))

        except Exception as e:
            logger.error(f"Error getting all statistics: {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.GENERIC, f"Error getting all statistics: {e}", e)

    def reset(self) -> OperationResult[None]:
        """Discard all statistics."""
        with self._lock:
            self._metrics.clear()
        logger.info("Statistics reset")
        return OperationResult.ok()

    def tracked_sources(self) -> list[str]:
        """Names of sources with recorded statistics, in first-recorded order."""
        with self._lock:
            return list(self._metrics.keys())
