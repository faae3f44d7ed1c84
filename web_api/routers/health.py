"""
Service health endpoint.
"""

from fastapi import APIRouter, Depends

from core.context import AppContext
from performance_analytics.models import MonitorState
from web_api.dependencies import get_context
from web_api.schemas import HealthResponse, SourceStatusResponse

router = APIRouter(prefix="/health", tags=["System Health"])


@router.get("", response_model=HealthResponse)
def get_health(context: AppContext = Depends(get_context)):
    """
    Service status, monitor state and per-source health.

    Status is "degraded" while the anomaly monitor is not running.
    """
    registry = context.registry
    health = registry.get_all_health()
    metadata = registry.get_all_metadata()

    sources = [
        SourceStatusResponse(
            name=name,
            display_name=metadata[name].display_name,
            requires_auth=metadata[name].requires_auth,
            enabled=registry.get_source(name).enabled,
            status=health[name].status.value,
            consecutive_failures=health[name].consecutive_failures,
            last_error=health[name].last_error,
        )
        for name in registry.list_sources()
    ]

    monitor_state = context.monitor.state
    return HealthResponse(
        status="ok" if monitor_state == MonitorState.RUNNING else "degraded",
        timestamp=context.clock.now(),
        monitor_state=monitor_state.value,
        sources=sources,
        cached_entries=len(context.cache),
        recent_anomalies=len(context.monitor.get_recent_anomalies(limit=context.monitor.MAX_RECENT_ANOMALIES)),
    )
