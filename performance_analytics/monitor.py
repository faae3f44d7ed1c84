"""
Performance Analytics - Anomaly Monitor.

============================================================
RESPONSIBILITY
============================================================

Periodically compares each source's recent average latency
with its all-time average:

    percent_increase = (recent - overall) / overall * 100

- percent_increase >= threshold -> AnomalyReport (WARNING)
- otherwise                     -> PerformanceObservation (DEBUG)

Sources without data in either average are skipped. A failure
analysing one source is logged and the pass continues; a
failure of the whole pass is logged and the loop continues.

============================================================
LIFECYCLE
============================================================

STOPPED -> start() -> RUNNING -> stop() -> STOPPED

The loop runs one pass, then waits for the check interval or
the stop event, whichever comes first.

============================================================
"""

import asyncio
from collections import deque
from typing import Callable, Deque, List, Optional
import logging

from core.clock import ClockProtocol, SystemClock
from performance_analytics.config import MonitorConfig
from performance_analytics.exceptions import MonitorObservationError
from performance_analytics.models import (
    AnalysisPass,
    AnomalyReport,
    MonitorState,
    PerformanceObservation,
)
from performance_analytics.store import TimeSeriesStore


logger = logging.getLogger(__name__)


class AnomalyMonitor:
    """
    Background latency anomaly detector.

    Usage:
        monitor = AnomalyMonitor(store, MonitorConfig())
        monitor.on_anomaly(lambda report: alert(report))
        await monitor.start()
        ...
        await monitor.stop()
    """

    MAX_RECENT_ANOMALIES = 100

    def __init__(
        self,
        store: TimeSeriesStore,
        config: Optional[MonitorConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._store = store
        self._config = config or MonitorConfig()
        self._clock = clock or SystemClock()

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._recent_anomalies: Deque[AnomalyReport] = deque(maxlen=self.MAX_RECENT_ANOMALIES)
        self._on_anomaly_callbacks: List[Callable[[AnomalyReport], None]] = []
        self._pass_count = 0

    @property
    def state(self) -> MonitorState:
        if self._task is not None and not self._task.done():
            return MonitorState.RUNNING
        return MonitorState.STOPPED

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def pass_count(self) -> int:
        return self._pass_count

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def start(self) -> None:
        """Start the background loop. No-op when already running."""
        if self.state == MonitorState.RUNNING:
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name="anomaly-monitor")
        logger.info(
            f"Performance monitor started. Checking every "
            f"{self._config.check_interval_minutes} minutes."
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish."""
        if self._task is None:
            return

        if self._stop_event is not None:
            self._stop_event.set()

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=5.0)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("Performance monitor stopped")

    async def _run_loop(self) -> None:
        """Background analysis loop."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                self.run_analysis_pass()
            except Exception as e:
                logger.error(f"Error occurred while analyzing performance metrics: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.check_interval_seconds,
                )
            except asyncio.TimeoutError:
                continue

    # =========================================================
    # ANALYSIS
    # =========================================================

    def run_analysis_pass(self) -> AnalysisPass:
        """
        Analyse every tracked source once.

        Returns:
            The pass findings

        Raises:
            MonitorObservationError: If the pass itself could not run
        """
        result = AnalysisPass(started_at=self._clock.now())
        self._pass_count += 1

        try:
            result.pruned_samples = self._store.prune_expired()
            tracked = sorted(self._store.get_tracked_sources())
        except Exception as e:
            raise MonitorObservationError(
                message=f"Analysis pass failed: {e}",
                original_error=e,
            ) from e

        if not tracked:
            logger.debug("No sources to analyze yet.")
            return result

        for source_name in tracked:
            try:
                self._analyze_source(source_name, result)
            except Exception as e:
                error = MonitorObservationError(
                    message=f"Error analyzing performance: {e}",
                    source_name=source_name,
                    original_error=e,
                )
                result.errors.append(error)
                logger.error(str(error), exc_info=True)

        return result

    def _analyze_source(self, source_name: str, result: AnalysisPass) -> None:
        window = self._config.window_minutes
        threshold = self._config.anomaly_threshold_percent

        recent = self._store.get_average_performance(source_name, window)
        overall = self._store.get_overall_average_performance(source_name)

        if recent is None or overall is None:
            logger.debug(f"Insufficient data for source {source_name}")
            result.skipped.append(source_name)
            return

        if overall == 0:
            # Only cache hits so far; no baseline to compare against
            logger.debug(f"Zero baseline latency for source {source_name}")
            result.skipped.append(source_name)
            return

        percent_increase = (recent - overall) / overall * 100

        if percent_increase >= threshold:
            report = AnomalyReport(
                source_name=source_name,
                recent_average_ms=recent,
                overall_average_ms=overall,
                window_minutes=window,
                percent_increase=percent_increase,
                threshold_percent=threshold,
                detected_at=self._clock.now(),
            )
            result.anomalies.append(report)
            self._recent_anomalies.append(report)

            logger.warning(
                f"PERFORMANCE ANOMALY DETECTED for source '{source_name}': "
                f"Recent average ({recent:.2f}ms over last {window:g} minutes) is "
                f"{percent_increase:.1f}% higher than overall average ({overall:.2f}ms). "
                f"This exceeds the {threshold:g}% threshold."
            )
            self._notify(report)
        else:
            result.observations.append(PerformanceObservation(
                source_name=source_name,
                recent_average_ms=recent,
                overall_average_ms=overall,
                percent_change=percent_increase,
            ))
            logger.debug(
                f"Source '{source_name}' performance is normal: "
                f"Recent={recent:.2f}ms, Overall={overall:.2f}ms, Change={percent_increase:.1f}%"
            )

    # =========================================================
    # CALLBACKS
    # =========================================================

    def on_anomaly(self, callback: Callable[[AnomalyReport], None]) -> None:
        """Register callback for detected anomalies."""
        self._on_anomaly_callbacks.append(callback)

    def _notify(self, report: AnomalyReport) -> None:
        for callback in self._on_anomaly_callbacks:
            try:
                callback(report)
            except Exception as e:
                logger.error(f"Anomaly callback error: {e}")

    def get_recent_anomalies(self, limit: int = 10) -> List[AnomalyReport]:
        """Get the most recent anomaly reports, newest last."""
        if limit <= 0:
            return []
        return list(self._recent_anomalies)[-limit:]
