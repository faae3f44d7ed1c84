"""
Aggregation - Exceptions.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional


class AggregationError(Exception):
    """Base exception for aggregation errors."""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message


class AggregationFailure(AggregationError):
    """
    Raised only when every source is required and at least one failed.

    The message names every failed source.
    """

    def __init__(self, failed_sources: Iterable[str]) -> None:
        self.failed_sources = list(failed_sources)
        super().__init__(
            f"One or more required sources failed: {', '.join(self.failed_sources)}",
            context={"failed_sources": self.failed_sources},
        )


class RequestValidationError(AggregationError):
    """Malformed aggregation request."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message, context={"field": field_name} if field_name else None)
        self.field_name = field_name
