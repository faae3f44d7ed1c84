"""
Pydantic schemas for the aggregation service API.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from aggregation.models import AggregatedResponse, AggregationRequest
from data_sources.models import DataItem
from source_metrics.models import ApiStatistics, StatisticsResponse

# =======================
# COMMON
# =======================

class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None

class MessageResponse(BaseModel):
    message: str

# =======================
# 1. AGGREGATION
# =======================

class AggregationRequestBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sources: Optional[List[str]] = Field(None, description="Source names; empty means all")
    category: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    sort_by: Optional[str] = Field("timestamp", description="timestamp | relevance | title")
    sort_direction: Optional[str] = Field("desc", description="asc | desc")
    max_items: Optional[int] = None

    def to_request(self) -> AggregationRequest:
        """Build the domain request. Raises RequestValidationError."""
        return AggregationRequest(
            sources=frozenset(self.sources or ()),
            category=self.category,
            from_date=self.from_date,
            to_date=self.to_date,
            sort_by=self.sort_by,
            sort_direction=self.sort_direction,
            max_items=self.max_items,
        )

class DataItemResponse(BaseModel):
    source: str
    id: str
    title: str
    description: str
    category: str
    timestamp: datetime
    relevance_score: int
    extra: Dict[str, str] = {}

    @classmethod
    def from_item(cls, item: DataItem) -> "DataItemResponse":
        return cls(
            source=item.source,
            id=item.id,
            title=item.title,
            description=item.description,
            category=item.category,
            timestamp=item.timestamp,
            relevance_score=item.relevance_score,
            extra=dict(item.extra),
        )

class AggregationMetadataResponse(BaseModel):
    total_items: int
    successful_sources: List[str]
    failed_sources: List[str]
    aggregated_at: datetime
    total_elapsed_ms: int
    from_cache: bool

class AggregatedDataResponse(BaseModel):
    items: List[DataItemResponse]
    metadata: AggregationMetadataResponse

    @classmethod
    def from_response(cls, response: AggregatedResponse) -> "AggregatedDataResponse":
        meta = response.metadata
        return cls(
            items=[DataItemResponse.from_item(i) for i in response.items],
            metadata=AggregationMetadataResponse(
                total_items=meta.total_items,
                successful_sources=list(meta.successful_sources),
                failed_sources=list(meta.failed_sources),
                aggregated_at=meta.aggregated_at,
                total_elapsed_ms=meta.total_elapsed_ms,
                from_cache=meta.from_cache,
            ),
        )

# =======================
# 2. STATISTICS
# =======================

class PerformanceBucketsResponse(BaseModel):
    fast: int
    average: int
    slow: int

class ApiStatisticsResponse(BaseModel):
    source_name: str
    total_requests: int
    successful_requests: int
    failed_requests: int
    average_response_time_ms: float
    buckets: PerformanceBucketsResponse
    cache_hit_rate: float
    recent_response_times_ms: List[float] = []

    @classmethod
    def from_stats(cls, stats: ApiStatistics) -> "ApiStatisticsResponse":
        return cls.model_validate(stats.to_dict())

class OverallStatisticsResponse(BaseModel):
    total_requests: int
    average_response_time_ms: float
    success_rate: float

class StatisticsSummaryResponse(BaseModel):
    source_stats: List[ApiStatisticsResponse]
    overall: OverallStatisticsResponse

    @classmethod
    def from_stats(cls, stats: StatisticsResponse) -> "StatisticsSummaryResponse":
        return cls.model_validate(stats.to_dict())

# =======================
# 3. HEALTH
# =======================

class SourceStatusResponse(BaseModel):
    name: str
    display_name: str
    requires_auth: bool
    enabled: bool
    status: str
    consecutive_failures: int
    last_error: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    monitor_state: str
    sources: List[SourceStatusResponse]
    cached_entries: int
    recent_anomalies: int
