"""
Aggregation Package - Multi-source fan-out, merge and partial-failure policy.
"""

from aggregation.config import AggregationConfig
from aggregation.engine import AggregationEngine, cache_key_for
from aggregation.exceptions import (
    AggregationError,
    AggregationFailure,
    RequestValidationError,
)
from aggregation.models import (
    AggregatedResponse,
    AggregationMetadata,
    AggregationRequest,
    SortDirection,
    SortField,
    SourceOutcome,
)


__all__ = [
    "AggregatedResponse",
    "AggregationConfig",
    "AggregationEngine",
    "AggregationError",
    "AggregationFailure",
    "AggregationMetadata",
    "AggregationRequest",
    "RequestValidationError",
    "SortDirection",
    "SortField",
    "SourceOutcome",
    "cache_key_for",
]
