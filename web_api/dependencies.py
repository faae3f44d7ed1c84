"""
FastAPI dependencies resolving components from the application context.
"""
from fastapi import Request

from aggregation.engine import AggregationEngine
from core.context import AppContext
from source_metrics.recorder import MetricsRecorder


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_engine(request: Request) -> AggregationEngine:
    return get_context(request).engine


def get_recorder(request: Request) -> MetricsRecorder:
    return get_context(request).recorder
