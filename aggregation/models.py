"""
Aggregation - Request and Response Models.

============================================================
REQUEST NORMALIZATION
============================================================

- sources: de-duplicated, order irrelevant; empty means all
- category: blank means no filter
- dates: naive values are taken as UTC; from_date > to_date
  is rejected
- sort_by: timestamp | relevance | title; anything else falls
  back to timestamp
- sort_direction: asc | desc; anything else falls back to desc
- max_items: None means unbounded, 0 yields no items, negative
  is rejected

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple, Union
import logging

from aggregation.exceptions import RequestValidationError
from core.clock import ensure_utc
from data_sources.models import DataItem


logger = logging.getLogger(__name__)


class SortField(Enum):
    """Field the merged items are ordered by."""
    TIMESTAMP = "timestamp"
    RELEVANCE = "relevance"
    TITLE = "title"

    @classmethod
    def parse(cls, value: Union["SortField", str, None]) -> "SortField":
        """Lenient parse; unknown values fall back to TIMESTAMP."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.TIMESTAMP
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown sort field '{value}', falling back to timestamp")
            return cls.TIMESTAMP


class SortDirection(Enum):
    """Sort order."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Union["SortDirection", str, None]) -> "SortDirection":
        """Lenient parse; unknown values fall back to DESC."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.DESC
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown sort direction '{value}', falling back to desc")
            return cls.DESC


@dataclass(frozen=True)
class AggregationRequest:
    """One logical aggregation request."""
    sources: FrozenSet[str] = frozenset()
    category: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    sort_by: SortField = SortField.TIMESTAMP
    sort_direction: SortDirection = SortDirection.DESC
    max_items: Optional[int] = None

    def __post_init__(self) -> None:
        sources: Iterable[str] = self.sources or ()
        if isinstance(sources, str):
            sources = sources.split(",")
        object.__setattr__(
            self,
            "sources",
            frozenset(s.strip() for s in sources if s and s.strip()),
        )

        category = self.category.strip() if self.category else None
        object.__setattr__(self, "category", category or None)

        if self.from_date is not None:
            object.__setattr__(self, "from_date", ensure_utc(self.from_date))
        if self.to_date is not None:
            object.__setattr__(self, "to_date", ensure_utc(self.to_date))
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise RequestValidationError(
                "from_date must not be later than to_date",
                field_name="from_date",
            )

        object.__setattr__(self, "sort_by", SortField.parse(self.sort_by))
        object.__setattr__(self, "sort_direction", SortDirection.parse(self.sort_direction))

        if self.max_items is not None:
            if isinstance(self.max_items, bool) or not isinstance(self.max_items, int):
                raise RequestValidationError("max_items must be an integer", field_name="max_items")
            if self.max_items < 0:
                raise RequestValidationError("max_items must not be negative", field_name="max_items")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sources": sorted(self.sources),
            "category": self.category,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "sort_by": self.sort_by.value,
            "sort_direction": self.sort_direction.value,
            "max_items": self.max_items,
        }


@dataclass(frozen=True)
class SourceOutcome:
    """Result of one source within one aggregation."""
    source_name: str
    items: Tuple[DataItem, ...] = ()
    success: bool = True
    from_cache: bool = False
    error_message: Optional[str] = None
    elapsed_ms: int = 0

    @classmethod
    def succeeded(
        cls,
        source_name: str,
        items: Iterable[DataItem],
        elapsed_ms: int,
        from_cache: bool = False,
    ) -> "SourceOutcome":
        return cls(
            source_name=source_name,
            items=tuple(items),
            success=True,
            from_cache=from_cache,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def failed(cls, source_name: str, error_message: str, elapsed_ms: int) -> "SourceOutcome":
        return cls(
            source_name=source_name,
            success=False,
            error_message=error_message,
            elapsed_ms=elapsed_ms,
        )


@dataclass
class AggregationMetadata:
    """Summary of one aggregation."""
    total_items: int
    successful_sources: List[str]
    failed_sources: List[str]
    aggregated_at: datetime
    total_elapsed_ms: int
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_items": self.total_items,
            "successful_sources": list(self.successful_sources),
            "failed_sources": list(self.failed_sources),
            "aggregated_at": self.aggregated_at.isoformat(),
            "total_elapsed_ms": self.total_elapsed_ms,
            "from_cache": self.from_cache,
        }


@dataclass
class AggregatedResponse:
    """Merged, filtered, sorted and truncated items plus metadata."""
    items: List[DataItem]
    metadata: AggregationMetadata
    outcomes: List[SourceOutcome] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "items": [item.to_dict() for item in self.items],
            "metadata": self.metadata.to_dict(),
        }
