"""
Data Source Models - Normalized item structures.

Provides strict typing for item normalization across all providers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from core.clock import ensure_utc


class SourceStatus(Enum):
    """Health status of a data source."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DataItem:
    """
    Normalized item output - STRICT schema.

    All providers MUST normalize their payloads to this format.
    Immutable once produced; timestamps are always UTC-aware.
    """
    source: str
    id: str
    title: str
    description: str
    category: str
    timestamp: datetime
    relevance_score: int = 0
    extra: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "relevance_score": self.relevance_score,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DataItem":
        """Create from dictionary."""
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            source=data["source"],
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            timestamp=timestamp,
            relevance_score=int(data.get("relevance_score", 0)),
            extra={str(k): str(v) for k, v in (data.get("extra") or {}).items()},
        )


@dataclass
class SourceMetadata:
    """Metadata about a data source provider."""
    name: str
    display_name: str
    base_url: str = ""
    requires_auth: bool = False
    documentation_url: str = ""
    max_items: Optional[int] = None
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "base_url": self.base_url,
            "requires_auth": self.requires_auth,
            "documentation_url": self.documentation_url,
            "max_items": self.max_items,
            "tags": self.tags,
        }


@dataclass
class SourceHealth:
    """Health status of a data source, tracked by the provider itself."""
    status: SourceStatus
    last_check: datetime
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0

    def is_usable(self) -> bool:
        """Check if source can still be used (healthy, degraded or unknown)."""
        return self.status != SourceStatus.UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
        }
